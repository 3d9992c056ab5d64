from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from pastelink.domain.clock import Clock, SystemClock
from pastelink.domain.models import NotFoundReason, PasteRecord, PasteView
from pastelink.domain.state_machine import (
    PasteState,
    consume_view,
    evaluate_state,
    not_found_reason,
    validate_transition,
)
from pastelink.errors import (
    ConfigurationError,
    NotFoundError,
    ServiceUnavailableError,
    ValidationError,
)
from pastelink.observability import get_correlation_id
from pastelink.services.helpers import (
    generate_paste_id,
    is_well_formed_id,
    resolve_base_url,
    share_url,
)
from pastelink.store import HealthStatus, PasteStore


logger = logging.getLogger(__name__)


MAX_CONTENT_BYTES = 512 * 1024  # 512 KiB
MAX_CAS_ATTEMPTS = 5
# 9999-12-31T23:59:59.999Z, the last instant an ISO-8601 year can show.
MAX_EXPIRES_AT_MS = 253_402_300_799_999


def _reject(field_name: str, message: str) -> ValidationError:
    logger.warning(
        "Invalid parameters when creating paste",
        extra={
            "event": "paste_create_invalid_parameters",
            "reason": field_name,
            "correlation_id": get_correlation_id(),
        },
    )
    return ValidationError(field_name, message)


def _validate_positive_int(field_name: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    # bool is an int subclass; JSON true must not pass as 1.
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise _reject(field_name, f"{field_name} must be an integer >= 1")
    return value


@dataclass
class PasteService:
    """
    Paste lifecycle: creation, and retrieval with expiry and view-limit rules.

    The store is injected once at startup and shared across requests. A
    ``None`` store means persistence is not configured; every operation that
    needs it raises ``ServiceUnavailableError``.
    """

    store: Optional[PasteStore]
    clock: Clock = field(default_factory=SystemClock)
    base_url: Optional[str] = None
    max_content_bytes: int = MAX_CONTENT_BYTES
    id_factory: Callable[[], str] = generate_paste_id

    def require_store(self) -> PasteStore:
        """Return the store, or raise ``ServiceUnavailableError`` if none is configured."""
        if self.store is None:
            raise ServiceUnavailableError("Paste store is not configured.")
        return self.store

    def _now(self, now_ms: Optional[int]) -> int:
        return self.clock.now_ms() if now_ms is None else now_ms

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------
    def create_paste(
        self,
        *,
        content: Any,
        ttl_seconds: Any = None,
        max_views: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        scheme: str = "http",
        now_ms: Optional[int] = None,
    ) -> dict[str, str]:
        """
        Create a new paste and return ``{"id", "url"}``.

        - ``content`` must be a string that is not blank after trimming
        - ``ttl_seconds`` and ``max_views``, when given, must be integers >= 1
        - the share URL origin comes from the request headers, then ``base_url``
        """
        store = self.require_store()

        if not isinstance(content, str) or not content.strip():
            raise _reject("content", "Content is required and must be a non-empty string")
        if len(content.encode("utf-8")) > self.max_content_bytes:
            raise _reject(
                "content",
                f"content must be at most {self.max_content_bytes} bytes when UTF-8 encoded",
            )
        ttl = _validate_positive_int("ttl_seconds", ttl_seconds)
        views = _validate_positive_int("max_views", max_views)

        now = self._now(now_ms)
        if ttl is not None and now + ttl * 1000 > MAX_EXPIRES_AT_MS:
            raise _reject("ttl_seconds", "ttl_seconds is too large")

        base = resolve_base_url(headers or {}, scheme=scheme, fallback=self.base_url)
        if base is None:
            raise ConfigurationError("Unable to determine base URL.")

        paste_id = self.id_factory()
        record = PasteRecord(
            content=content,
            created_at=now,
            expires_at=None if ttl is None else now + ttl * 1000,
            max_views=views,
            remaining_views=views,
        )
        store.put(paste_id, record, ttl_hint=ttl)

        logger.info(
            "Paste created",
            extra={
                "event": "paste_created",
                "paste_id": paste_id,
                "store_backend": store.backend_name,
                "correlation_id": get_correlation_id(),
            },
        )
        return {"id": paste_id, "url": share_url(base, paste_id)}

    # -------------------------------------------------------------------------
    # Retrieval / viewing
    # -------------------------------------------------------------------------
    def retrieve_paste(self, paste_id: str, *, now_ms: Optional[int] = None) -> PasteView:
        """
        Retrieve a paste for viewing, enforcing expiry and view rules.

        Rules, in order:
        - absent → NotFoundError(no_such_id)
        - ``now >= expires_at`` → delete, NotFoundError(expired)
        - ``remaining_views <= 0`` → delete, NotFoundError(view_limit)
        - otherwise decrement ``remaining_views`` (if limited); the view that
          reaches zero deletes the paste but is still served

        The decrement is a conditional write. If another request changed the
        record in between, the record is re-read and the rules re-applied.
        """
        store = self.require_store()
        now = self._now(now_ms)

        logger.info(
            "Paste access attempt",
            extra={
                "event": "paste_access_attempt",
                "paste_id": paste_id,
                "correlation_id": get_correlation_id(),
            },
        )

        if not is_well_formed_id(paste_id):
            raise self._not_found(paste_id, NotFoundReason.NO_SUCH_ID)

        for _ in range(MAX_CAS_ATTEMPTS):
            record = store.get(paste_id)
            if record is None:
                raise self._not_found(paste_id, NotFoundReason.NO_SUCH_ID)

            state = evaluate_state(record, now)
            if state is not PasteState.ACTIVE:
                validate_transition(state, PasteState.DELETED)
                store.delete(paste_id)
                logger.info(
                    "Paste deleted",
                    extra={
                        "event": "paste_deleted",
                        "paste_id": paste_id,
                        "reason": state.value,
                        "correlation_id": get_correlation_id(),
                    },
                )
                raise self._not_found(paste_id, not_found_reason(state))

            outcome = consume_view(record, now)
            if record.remaining_views is None:
                return self._served(paste_id, outcome.record)

            replacement = None if outcome.is_last_view else outcome.record
            if store.replace(paste_id, record, replacement):
                if outcome.is_last_view:
                    logger.info(
                        "Paste deleted",
                        extra={
                            "event": "paste_deleted",
                            "paste_id": paste_id,
                            "reason": PasteState.EXHAUSTED.value,
                            "correlation_id": get_correlation_id(),
                        },
                    )
                return self._served(paste_id, outcome.record)

            logger.info(
                "Paste changed during view; retrying",
                extra={
                    "event": "paste_view_conflict",
                    "paste_id": paste_id,
                    "correlation_id": get_correlation_id(),
                },
            )

        raise ServiceUnavailableError(
            f"Paste {paste_id} is under contention; gave up after {MAX_CAS_ATTEMPTS} attempts."
        )

    def _served(self, paste_id: str, record: PasteRecord) -> PasteView:
        logger.info(
            "Paste access successful",
            extra={
                "event": "paste_access_success",
                "paste_id": paste_id,
                "correlation_id": get_correlation_id(),
            },
        )
        return PasteView.from_record(paste_id, record)

    def _not_found(self, paste_id: str, reason: NotFoundReason) -> NotFoundError:
        logger.info(
            "Paste not available",
            extra={
                "event": "paste_not_found",
                "paste_id": paste_id,
                "reason": reason.value,
                "correlation_id": get_correlation_id(),
            },
        )
        return NotFoundError(paste_id, reason.value)

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------
    def health(self) -> HealthStatus:
        """Ping the store. Nothing configured means nothing to ping."""
        if self.store is None:
            return HealthStatus(ok=True)
        return self.store.health_check()
