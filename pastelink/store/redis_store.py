from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError, WatchError

from pastelink.domain.models import PasteRecord
from pastelink.errors import InternalError, ServiceUnavailableError
from pastelink.observability import get_correlation_id

from . import HealthStatus, KeyNamespace


logger = logging.getLogger(__name__)


class RedisPasteStore:
    """
    Paste store backed by Redis.

    Store-level expiry uses ``SET ... EX`` so the value and its TTL land in
    one command. View-count rewrites use ``KEEPTTL`` (Redis >= 6.0) so the
    backup eviction survives the update.
    """

    backend_name = "redis"

    def __init__(self, client: redis.Redis, namespace: Optional[KeyNamespace] = None) -> None:
        self._client = client
        self._namespace = namespace or KeyNamespace()

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        password: Optional[str] = None,
        namespace: Optional[KeyNamespace] = None,
    ) -> RedisPasteStore:
        options: dict[str, Any] = {"decode_responses": True}
        if password:
            options["password"] = password
        return cls(redis.Redis.from_url(url, **options), namespace=namespace)

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except (RedisConnectionError, RedisTimeoutError) as exc:
            logger.warning(
                "Redis unreachable",
                extra={
                    "event": "store_unavailable",
                    "store_backend": self.backend_name,
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise ServiceUnavailableError(f"Redis {operation} failed: {exc}") from exc
        except WatchError:
            raise
        except RedisError as exc:
            raise InternalError(f"Redis {operation} failed: {exc}", cause=exc) from exc

    def put(self, paste_id: str, record: PasteRecord, ttl_hint: Optional[int] = None) -> None:
        with self._translate_errors("put"):
            self._client.set(
                self._namespace.key(paste_id),
                record.to_json(),
                ex=self._namespace.eviction_seconds(ttl_hint),
            )

    def get(self, paste_id: str) -> Optional[PasteRecord]:
        with self._translate_errors("get"):
            raw = self._client.get(self._namespace.key(paste_id))
        if raw is None:
            return None
        return PasteRecord.from_json(raw)

    def delete(self, paste_id: str) -> None:
        with self._translate_errors("delete"):
            self._client.delete(self._namespace.key(paste_id))

    def replace(
        self,
        paste_id: str,
        expected: PasteRecord,
        new: Optional[PasteRecord],
    ) -> bool:
        """
        Optimistic compare-and-set using WATCH/MULTI.

        Returns False if the key changed or disappeared after it was read.
        """
        key = self._namespace.key(paste_id)
        with self._translate_errors("replace"):
            with self._client.pipeline() as pipe:
                try:
                    pipe.watch(key)
                    raw = pipe.get(key)
                    if raw is None or PasteRecord.from_json(raw) != expected:
                        pipe.unwatch()
                        return False
                    pipe.multi()
                    if new is None:
                        pipe.delete(key)
                    else:
                        pipe.set(key, new.to_json(), keepttl=True)
                    pipe.execute()
                except WatchError:
                    return False
        return True

    def health_check(self) -> HealthStatus:
        try:
            self._client.ping()
        except RedisError as exc:
            return HealthStatus(ok=False, error=str(exc))
        return HealthStatus(ok=True)
