from __future__ import annotations

from typing import Callable, Optional

import pytest

from pastelink.domain.clock import FixedClock
from pastelink.domain.models import PasteRecord, PasteView
from pastelink.errors import (
    ConfigurationError,
    NotFoundError,
    ServiceUnavailableError,
    ValidationError,
)
from pastelink.services.helpers import ID_ALPHABET, resolve_base_url
from pastelink.services.paste_service import MAX_CAS_ATTEMPTS, MAX_EXPIRES_AT_MS, PasteService
from pastelink.store.memory_store import InMemoryPasteStore


class _InterleavingStore(InMemoryPasteStore):
    """Runs ``on_next_get`` right after the next read, before the caller writes back."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.on_next_get: Optional[Callable[[], None]] = None

    def get(self, paste_id: str) -> Optional[PasteRecord]:
        record = super().get(paste_id)
        hook, self.on_next_get = self.on_next_get, None
        if hook is not None:
            hook()
        return record


class _AlwaysConflictingStore(InMemoryPasteStore):
    def replace(self, paste_id, expected, new) -> bool:  # type: ignore[override]
        return False


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def test_create_returns_id_and_share_url(paste_service: PasteService) -> None:
    created = paste_service.create_paste(content="hello")

    assert len(created["id"]) == 10
    assert set(created["id"]) <= set(ID_ALPHABET)
    assert created["url"] == f"https://paste.test/p/{created['id']}"


def test_create_then_retrieve_round_trips_content(paste_service: PasteService) -> None:
    content = "  line one\n\tline two  "
    created = paste_service.create_paste(content=content)

    view = paste_service.retrieve_paste(created["id"])
    assert view.content == content
    assert view.remaining_views is None
    assert view.expires_at is None


def test_create_records_expiry_and_views(
    paste_service: PasteService,
    memory_store: InMemoryPasteStore,
    clock: FixedClock,
) -> None:
    created = paste_service.create_paste(content="x", ttl_seconds=300, max_views=2)
    record = memory_store.get(created["id"])

    assert record is not None
    assert record.created_at == clock.now_ms()
    assert record.expires_at == clock.now_ms() + 300_000
    assert record.max_views == 2
    assert record.remaining_views == 2


def test_ids_are_unique(paste_service: PasteService) -> None:
    ids = {paste_service.create_paste(content="x")["id"] for _ in range(200)}
    assert len(ids) == 200


@pytest.mark.parametrize("content", ["", "   ", "\n\t", None, 42, ["a"]])
def test_blank_or_non_string_content_is_rejected(paste_service: PasteService, content) -> None:
    with pytest.raises(ValidationError) as excinfo:
        paste_service.create_paste(content=content)
    assert excinfo.value.field == "content"


@pytest.mark.parametrize("field_name", ["ttl_seconds", "max_views"])
@pytest.mark.parametrize("value", [0, -1, 1.5, 2.0, "5", True])
def test_non_positive_or_non_integer_limits_are_rejected(
    paste_service: PasteService,
    field_name: str,
    value,
) -> None:
    with pytest.raises(ValidationError) as excinfo:
        paste_service.create_paste(content="x", **{field_name: value})
    assert excinfo.value.field == field_name


def test_ttl_past_year_9999_is_rejected(
    paste_service: PasteService,
    memory_store: InMemoryPasteStore,
    clock: FixedClock,
) -> None:
    with pytest.raises(ValidationError) as excinfo:
        paste_service.create_paste(content="x", ttl_seconds=10**12, max_views=3)
    assert excinfo.value.field == "ttl_seconds"
    assert memory_store.keys() == []

    # The largest TTL that still lands on 9999-12-31T23:59:59 is accepted and renders.
    largest = (MAX_EXPIRES_AT_MS - clock.now_ms()) // 1000
    created = paste_service.create_paste(content="x", ttl_seconds=largest)
    view = paste_service.retrieve_paste(created["id"])
    assert view.expires_at_iso().startswith("9999-12-31T23:59:59")


def test_oversized_content_is_rejected(memory_store: InMemoryPasteStore) -> None:
    service = PasteService(store=memory_store, base_url="https://paste.test", max_content_bytes=4)
    with pytest.raises(ValidationError):
        service.create_paste(content="ééé")


def test_create_without_any_base_url_fails(memory_store: InMemoryPasteStore) -> None:
    service = PasteService(store=memory_store, base_url=None)
    with pytest.raises(ConfigurationError):
        service.create_paste(content="x", headers={})


def test_unconfigured_store_is_unavailable() -> None:
    service = PasteService(store=None, base_url="https://paste.test")
    with pytest.raises(ServiceUnavailableError):
        service.create_paste(content="x")
    with pytest.raises(ServiceUnavailableError):
        service.retrieve_paste("abcdefghij")
    assert service.health().ok is True


# ---------------------------------------------------------------------------
# Base URL resolution
# ---------------------------------------------------------------------------


def test_origin_header_wins() -> None:
    headers = {"Origin": "https://a.example", "Referer": "https://b.example/x", "Host": "c.example"}
    assert resolve_base_url(headers, fallback="https://d.example") == "https://a.example"


def test_referer_origin_used_without_origin() -> None:
    headers = {"Referer": "https://b.example/some/page?q=1", "Host": "c.example"}
    assert resolve_base_url(headers) == "https://b.example"


def test_host_header_used_with_request_scheme() -> None:
    assert resolve_base_url({"Host": "c.example:8080"}, scheme="https") == "https://c.example:8080"


def test_fallback_used_last_and_trailing_slash_stripped() -> None:
    assert resolve_base_url({"Origin": "null"}, fallback="https://d.example/") == "https://d.example"
    assert resolve_base_url({}) is None


# ---------------------------------------------------------------------------
# Retrieval rules
# ---------------------------------------------------------------------------


def test_unknown_id_is_not_found(paste_service: PasteService) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        paste_service.retrieve_paste("doesnotexist")
    assert excinfo.value.reason == "no_such_id"


def test_malformed_id_is_not_found_without_store_lookup(paste_service: PasteService) -> None:
    with pytest.raises(NotFoundError):
        paste_service.retrieve_paste("../../etc/passwd")


def test_single_view_paste(paste_service: PasteService, memory_store: InMemoryPasteStore) -> None:
    created = paste_service.create_paste(content="once", max_views=1)

    view = paste_service.retrieve_paste(created["id"])
    assert view.content == "once"
    assert view.remaining_views == 0
    assert memory_store.get(created["id"]) is None

    with pytest.raises(NotFoundError):
        paste_service.retrieve_paste(created["id"])


def test_three_view_paste_counts_down_then_disappears(
    paste_service: PasteService,
    memory_store: InMemoryPasteStore,
) -> None:
    created = paste_service.create_paste(content="thrice", max_views=3)

    remaining = [paste_service.retrieve_paste(created["id"]).remaining_views for _ in range(3)]
    assert remaining == [2, 1, 0]
    assert memory_store.get(created["id"]) is None

    with pytest.raises(NotFoundError):
        paste_service.retrieve_paste(created["id"])


def test_ttl_expiry_with_simulated_time(paste_service: PasteService, clock: FixedClock) -> None:
    created = paste_service.create_paste(content="short lived", ttl_seconds=10)
    start = clock.now_ms()

    view = paste_service.retrieve_paste(created["id"], now_ms=start + 5_000)
    assert view.content == "short lived"

    with pytest.raises(NotFoundError) as excinfo:
        paste_service.retrieve_paste(created["id"], now_ms=start + 11_000)
    assert excinfo.value.reason == "expired"


def test_expired_record_is_deleted_on_access(
    paste_service: PasteService,
    memory_store: InMemoryPasteStore,
    clock: FixedClock,
) -> None:
    created = paste_service.create_paste(content="x", ttl_seconds=1)
    clock.advance(seconds=1)

    with pytest.raises(NotFoundError):
        paste_service.retrieve_paste(created["id"])
    assert memory_store.keys() == []


def test_exhausted_record_in_store_is_deleted_with_view_limit_reason(
    paste_service: PasteService,
    memory_store: InMemoryPasteStore,
    clock: FixedClock,
) -> None:
    memory_store.put(
        "leftover01",
        PasteRecord(content="x", created_at=clock.now_ms(), max_views=1, remaining_views=0),
    )

    with pytest.raises(NotFoundError) as excinfo:
        paste_service.retrieve_paste("leftover01")
    assert excinfo.value.reason == "view_limit"
    assert memory_store.get("leftover01") is None


def test_expired_and_exhausted_reports_expired(
    paste_service: PasteService,
    memory_store: InMemoryPasteStore,
    clock: FixedClock,
) -> None:
    memory_store.put(
        "bothgone01",
        PasteRecord(
            content="x",
            created_at=clock.now_ms() - 10_000,
            expires_at=clock.now_ms() - 1,
            max_views=1,
            remaining_views=0,
        ),
    )

    with pytest.raises(NotFoundError) as excinfo:
        paste_service.retrieve_paste("bothgone01")
    assert excinfo.value.reason == "expired"


def test_view_returns_post_decrement_counters(paste_service: PasteService, clock: FixedClock) -> None:
    created = paste_service.create_paste(content="hello", ttl_seconds=300, max_views=2)

    view = paste_service.retrieve_paste(created["id"])
    assert isinstance(view, PasteView)
    assert view.remaining_views == 1
    assert view.max_views == 2
    assert view.expires_at == clock.now_ms() + 300_000


# ---------------------------------------------------------------------------
# Concurrent retrievals
# ---------------------------------------------------------------------------


def test_concurrent_last_view_is_served_exactly_once(clock: FixedClock) -> None:
    store = _InterleavingStore(clock=clock)
    service = PasteService(store=store, clock=clock, base_url="https://paste.test")
    paste_id = service.create_paste(content="one view", max_views=1)["id"]

    served: list[PasteView] = []
    store.on_next_get = lambda: served.append(service.retrieve_paste(paste_id))

    # The outer read sees remaining_views=1, but the nested retrieval consumes
    # the view before the outer one writes back.
    with pytest.raises(NotFoundError):
        service.retrieve_paste(paste_id)

    assert [v.remaining_views for v in served] == [0]
    assert store.get(paste_id) is None


def test_concurrent_views_are_both_counted(clock: FixedClock) -> None:
    store = _InterleavingStore(clock=clock)
    service = PasteService(store=store, clock=clock, base_url="https://paste.test")
    paste_id = service.create_paste(content="three views", max_views=3)["id"]

    inner: list[PasteView] = []
    store.on_next_get = lambda: inner.append(service.retrieve_paste(paste_id))

    outer = service.retrieve_paste(paste_id)

    assert inner[0].remaining_views == 2
    assert outer.remaining_views == 1
    record = store.get(paste_id)
    assert record is not None and record.remaining_views == 1


def test_persistent_conflicts_give_up(clock: FixedClock) -> None:
    store = _AlwaysConflictingStore(clock=clock)
    service = PasteService(store=store, clock=clock, base_url="https://paste.test")
    paste_id = service.create_paste(content="x", max_views=5)["id"]

    with pytest.raises(ServiceUnavailableError):
        service.retrieve_paste(paste_id)
    assert MAX_CAS_ATTEMPTS > 1
