from __future__ import annotations

import enum
import json
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any, Optional

from pastelink.errors import InternalError


class NotFoundReason(str, enum.Enum):
    NO_SUCH_ID = "no_such_id"
    EXPIRED = "expired"
    VIEW_LIMIT = "view_limit"


def format_epoch_ms(value: int) -> str:
    """Render epoch milliseconds as ISO-8601 UTC, e.g. ``2024-05-01T12:00:00.250Z``."""
    dt = datetime.fromtimestamp(value // 1000, tz=timezone.utc)
    return f"{dt:%Y-%m-%dT%H:%M:%S}.{value % 1000:03d}Z"


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class PasteRecord:
    """A stored paste. Serialized as a JSON blob by the store adapters."""

    content: str
    created_at: int
    expires_at: Optional[int] = None
    max_views: Optional[int] = None
    remaining_views: Optional[int] = None

    def __post_init__(self) -> None:
        if (self.max_views is None) != (self.remaining_views is None):
            raise InternalError(
                "remaining_views must be present if and only if max_views is present."
            )
        if self.max_views is not None and self.remaining_views > self.max_views:  # type: ignore[operator]
            raise InternalError("remaining_views cannot exceed max_views.")

    def with_remaining_views(self, remaining_views: int) -> PasteRecord:
        return replace(self, remaining_views=remaining_views)

    def to_json(self) -> str:
        return json.dumps(asdict(self), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str | bytes) -> PasteRecord:
        """
        Decode a stored blob.

        Anything that is not a JSON object with the expected field types is
        treated as a corrupt record and raises ``InternalError``.
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise InternalError("Stored paste record is not valid JSON.", cause=exc) from exc

        if not isinstance(data, dict) or not isinstance(data.get("content"), str):
            raise InternalError("Stored paste record has an unexpected shape.")

        created_at = data.get("created_at")
        if not _is_int(created_at):
            raise InternalError("Stored paste record has no created_at timestamp.")

        optional: dict[str, Optional[int]] = {}
        for key in ("expires_at", "max_views", "remaining_views"):
            value = data.get(key)
            if value is not None and not _is_int(value):
                raise InternalError(f"Stored paste record has a non-integer {key}.")
            optional[key] = value

        return cls(content=data["content"], created_at=created_at, **optional)


@dataclass(frozen=True)
class PasteView:
    """What a successful retrieval hands back: content plus post-decrement counters."""

    id: str
    content: str
    created_at: int
    expires_at: Optional[int]
    max_views: Optional[int]
    remaining_views: Optional[int]

    @classmethod
    def from_record(cls, paste_id: str, record: PasteRecord) -> PasteView:
        return cls(
            id=paste_id,
            content=record.content,
            created_at=record.created_at,
            expires_at=record.expires_at,
            max_views=record.max_views,
            remaining_views=record.remaining_views,
        )

    def expires_at_iso(self) -> Optional[str]:
        if self.expires_at is None:
            return None
        return format_epoch_ms(self.expires_at)

    def to_api_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "remaining_views": self.remaining_views,
            "expires_at": self.expires_at_iso(),
        }
