"""
Key-value persistence for paste records.

Every backend stores a record as an opaque JSON blob under a namespaced key
(``paste:<id>`` by default) and honours an optional TTL hint, after which the
store evicts the key on its own. The hint is padded with a grace period so
that store-level eviction never beats the application-level expiry check.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import urlsplit

from pastelink.domain.clock import Clock
from pastelink.domain.models import PasteRecord


DEFAULT_KEY_PREFIX = "paste:"
DEFAULT_TTL_GRACE_SECONDS = 60

REDIS_SCHEMES = frozenset({"redis", "rediss", "unix"})
MEMORY_SCHEMES = frozenset({"memory"})


@dataclass(frozen=True)
class HealthStatus:
    ok: bool
    error: Optional[str] = None

    def to_dict(self) -> dict:
        if self.ok:
            return {"ok": True}
        return {"ok": False, "error": self.error}


class PasteStore(Protocol):
    backend_name: str

    def put(self, paste_id: str, record: PasteRecord, ttl_hint: Optional[int] = None) -> None: ...

    def get(self, paste_id: str) -> Optional[PasteRecord]: ...

    def delete(self, paste_id: str) -> None: ...

    def replace(
        self,
        paste_id: str,
        expected: PasteRecord,
        new: Optional[PasteRecord],
    ) -> bool: ...

    def health_check(self) -> HealthStatus: ...


class KeyNamespace:
    """Maps paste ids to store keys and TTL hints to eviction times."""

    def __init__(
        self,
        prefix: str = DEFAULT_KEY_PREFIX,
        ttl_grace_seconds: int = DEFAULT_TTL_GRACE_SECONDS,
    ) -> None:
        if ttl_grace_seconds < 0:
            raise ValueError("ttl_grace_seconds must be >= 0.")
        self.prefix = prefix
        self.ttl_grace_seconds = ttl_grace_seconds

    def key(self, paste_id: str) -> str:
        return f"{self.prefix}{paste_id}"

    def eviction_seconds(self, ttl_hint: Optional[int]) -> Optional[int]:
        if ttl_hint is None:
            return None
        return ttl_hint + self.ttl_grace_seconds


def build_store(
    url: Optional[str],
    *,
    password: Optional[str] = None,
    key_prefix: str = DEFAULT_KEY_PREFIX,
    ttl_grace_seconds: int = DEFAULT_TTL_GRACE_SECONDS,
    clock: Optional[Clock] = None,
    create_schema: bool = False,
) -> Optional[PasteStore]:
    """
    Build a store from a connection URL, or return ``None`` when no URL is set.

    ``redis://``, ``rediss://`` and ``unix://`` select Redis, ``memory://``
    selects the in-process store, anything else is handed to SQLAlchemy.
    """
    if not url:
        return None

    namespace = KeyNamespace(prefix=key_prefix, ttl_grace_seconds=ttl_grace_seconds)
    scheme = urlsplit(url).scheme.lower()

    if scheme in REDIS_SCHEMES:
        from .redis_store import RedisPasteStore

        return RedisPasteStore.from_url(url, password=password, namespace=namespace)

    if scheme in MEMORY_SCHEMES:
        from .memory_store import InMemoryPasteStore

        return InMemoryPasteStore(namespace=namespace, clock=clock)

    from .sql_store import SqlPasteStore

    return SqlPasteStore.from_url(
        url,
        namespace=namespace,
        clock=clock,
        create_schema=create_schema,
    )
