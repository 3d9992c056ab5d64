from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, String, Text, create_engine, func
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool


Base = declarative_base()


class PasteEntry(Base):
    """
    One key-value pair of the SQL-backed paste store.

    ``value`` holds the serialized paste record; ``expires_at_ms`` is the
    store-level eviction deadline derived from the TTL hint.
    """

    __tablename__ = "paste_entries"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at_ms: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        nullable=True,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


def make_engine(database_uri: str, *, echo: bool = False) -> Engine:
    """
    Create the engine for the SQL store.

    In-memory SQLite gets a single shared connection; otherwise every
    session would see its own empty database.
    """
    if not database_uri:
        raise RuntimeError("A database URL is required for the SQL paste store.")

    if database_uri.startswith("sqlite") and ":memory:" in database_uri:
        return create_engine(
            database_uri,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_uri, echo=echo, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
