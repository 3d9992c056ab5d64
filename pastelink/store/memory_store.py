from __future__ import annotations

import threading
from typing import Optional

from pastelink.domain.clock import Clock, SystemClock
from pastelink.domain.models import PasteRecord

from . import HealthStatus, KeyNamespace


class InMemoryPasteStore:
    """
    Process-local store for development and tests.

    Entries carry their own eviction deadline so TTL hints behave like a
    real key-value store.
    """

    backend_name = "memory"

    def __init__(
        self,
        namespace: Optional[KeyNamespace] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._namespace = namespace or KeyNamespace()
        self._clock = clock or SystemClock()
        self._data: dict[str, tuple[str, Optional[int]]] = {}
        self._lock = threading.Lock()

    def _live_blob(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        blob, evict_at_ms = entry
        if evict_at_ms is not None and self._clock.now_ms() >= evict_at_ms:
            del self._data[key]
            return None
        return blob

    def put(self, paste_id: str, record: PasteRecord, ttl_hint: Optional[int] = None) -> None:
        seconds = self._namespace.eviction_seconds(ttl_hint)
        evict_at_ms = None if seconds is None else self._clock.now_ms() + seconds * 1000
        with self._lock:
            self._data[self._namespace.key(paste_id)] = (record.to_json(), evict_at_ms)

    def get(self, paste_id: str) -> Optional[PasteRecord]:
        with self._lock:
            blob = self._live_blob(self._namespace.key(paste_id))
        return None if blob is None else PasteRecord.from_json(blob)

    def delete(self, paste_id: str) -> None:
        with self._lock:
            self._data.pop(self._namespace.key(paste_id), None)

    def replace(
        self,
        paste_id: str,
        expected: PasteRecord,
        new: Optional[PasteRecord],
    ) -> bool:
        key = self._namespace.key(paste_id)
        with self._lock:
            blob = self._live_blob(key)
            if blob is None or PasteRecord.from_json(blob) != expected:
                return False
            if new is None:
                del self._data[key]
            else:
                _, evict_at_ms = self._data[key]
                self._data[key] = (new.to_json(), evict_at_ms)
            return True

    def health_check(self) -> HealthStatus:
        return HealthStatus(ok=True)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)
