from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import delete, inspect, or_, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from pastelink.db import Base, PasteEntry, make_engine, make_session_factory
from pastelink.domain.clock import Clock, SystemClock
from pastelink.domain.models import PasteRecord
from pastelink.errors import InternalError, ServiceUnavailableError
from pastelink.observability import get_correlation_id

from . import HealthStatus, KeyNamespace


logger = logging.getLogger(__name__)


class SqlPasteStore:
    """
    Paste store on a relational database via SQLAlchemy.

    Rows past their eviction deadline are invisible to reads; the expiry
    sweeper removes them for good. Each operation runs in its own session:
    commit on success, rollback on exception, close in ``finally``.
    """

    backend_name = "sql"

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        namespace: Optional[KeyNamespace] = None,
        clock: Optional[Clock] = None,
        engine: Optional[Engine] = None,
    ) -> None:
        self._session_factory = session_factory
        self._namespace = namespace or KeyNamespace()
        self._clock = clock or SystemClock()
        self._engine = engine

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        namespace: Optional[KeyNamespace] = None,
        clock: Optional[Clock] = None,
        create_schema: bool = False,
    ) -> SqlPasteStore:
        engine = make_engine(url)
        store = cls(
            make_session_factory(engine),
            namespace=namespace,
            clock=clock,
            engine=engine,
        )
        if create_schema:
            store.create_schema()
        return store

    @property
    def engine(self) -> Optional[Engine]:
        return self._engine

    def create_schema(self) -> None:
        """Create the table directly. Deployments use the Alembic migrations instead."""
        if self._engine is None:
            raise RuntimeError("SqlPasteStore was built without an engine.")
        Base.metadata.create_all(self._engine)

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except OperationalError as exc:
            session.rollback()
            logger.warning(
                "Database unreachable",
                extra={
                    "event": "store_unavailable",
                    "store_backend": self.backend_name,
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise ServiceUnavailableError(f"SQL store {operation} failed.") from exc
        except SQLAlchemyError as exc:
            session.rollback()
            raise InternalError(f"SQL store {operation} failed.", cause=exc) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _live(self, key: str):
        now_ms = self._clock.now_ms()
        return select(PasteEntry).where(
            PasteEntry.key == key,
            or_(PasteEntry.expires_at_ms.is_(None), PasteEntry.expires_at_ms > now_ms),
        )

    def put(self, paste_id: str, record: PasteRecord, ttl_hint: Optional[int] = None) -> None:
        seconds = self._namespace.eviction_seconds(ttl_hint)
        expires_at_ms = None if seconds is None else self._clock.now_ms() + seconds * 1000
        with self._session("put") as session:
            session.merge(
                PasteEntry(
                    key=self._namespace.key(paste_id),
                    value=record.to_json(),
                    expires_at_ms=expires_at_ms,
                )
            )

    def get(self, paste_id: str) -> Optional[PasteRecord]:
        with self._session("get") as session:
            entry = session.execute(self._live(self._namespace.key(paste_id))).scalar_one_or_none()
            raw = None if entry is None else entry.value
        if raw is None:
            return None
        return PasteRecord.from_json(raw)

    def delete(self, paste_id: str) -> None:
        with self._session("delete") as session:
            session.execute(delete(PasteEntry).where(PasteEntry.key == self._namespace.key(paste_id)))

    def replace(
        self,
        paste_id: str,
        expected: PasteRecord,
        new: Optional[PasteRecord],
    ) -> bool:
        """
        Conditional update keyed on the exact stored blob.

        The UPDATE/DELETE only matches if the row still holds the value that
        was compared, so a concurrent writer makes ``rowcount`` zero.
        """
        key = self._namespace.key(paste_id)
        with self._session("replace") as session:
            entry = session.execute(self._live(key)).scalar_one_or_none()
            if entry is None:
                return False
            raw = entry.value
            if PasteRecord.from_json(raw) != expected:
                return False

            if new is None:
                stmt = delete(PasteEntry).where(PasteEntry.key == key, PasteEntry.value == raw)
            else:
                stmt = (
                    update(PasteEntry)
                    .where(PasteEntry.key == key, PasteEntry.value == raw)
                    .values(value=new.to_json())
                )
            result = session.execute(stmt.execution_options(synchronize_session=False))
            return result.rowcount == 1

    def purge_expired(self, now_ms: Optional[int] = None) -> int:
        """Delete every row past its eviction deadline. Returns the number removed."""
        cutoff = self._clock.now_ms() if now_ms is None else now_ms
        with self._session("purge") as session:
            result = session.execute(
                delete(PasteEntry)
                .where(PasteEntry.expires_at_ms.isnot(None), PasteEntry.expires_at_ms <= cutoff)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0

    def has_schema(self) -> bool:
        if self._engine is None:
            return True
        return inspect(self._engine).has_table(PasteEntry.__tablename__)

    def health_check(self) -> HealthStatus:
        try:
            with self._session("health_check") as session:
                session.execute(text("SELECT 1"))
        except (ServiceUnavailableError, InternalError) as exc:
            return HealthStatus(ok=False, error=str(exc.__cause__ or exc))
        return HealthStatus(ok=True)
