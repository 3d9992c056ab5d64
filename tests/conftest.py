from __future__ import annotations

from typing import Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient

from pastelink import create_app
from pastelink.domain.clock import FixedClock
from pastelink.services.paste_service import PasteService
from pastelink.store import KeyNamespace
from pastelink.store.memory_store import InMemoryPasteStore
from pastelink.store.sql_store import SqlPasteStore


START_MS = 1_700_000_000_000


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START_MS)


@pytest.fixture
def memory_store(clock: FixedClock) -> InMemoryPasteStore:
    return InMemoryPasteStore(clock=clock)


@pytest.fixture
def sql_store(clock: FixedClock) -> Generator[SqlPasteStore, None, None]:
    """
    SQL store on a fresh in-memory SQLite database for each test function.
    """

    store = SqlPasteStore.from_url(
        "sqlite+pysqlite:///:memory:",
        namespace=KeyNamespace(),
        clock=clock,
        create_schema=True,
    )
    try:
        yield store
    finally:
        assert store.engine is not None
        store.engine.dispose()


@pytest.fixture
def paste_service(memory_store: InMemoryPasteStore, clock: FixedClock) -> PasteService:
    return PasteService(store=memory_store, clock=clock, base_url="https://paste.test")


@pytest.fixture
def app(memory_store: InMemoryPasteStore, clock: FixedClock) -> Flask:
    return create_app("testing", store=memory_store, clock=clock)


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()
