from __future__ import annotations

import logging
import threading
import time
from typing import NoReturn

from pastelink.errors import PasteError
from pastelink.store.sql_store import SqlPasteStore


logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 30.0

_worker_started = False
_worker_lock = threading.Lock()


def sweep_once(store: SqlPasteStore) -> int:
    """
    Remove rows whose store-level TTL has passed.

    Returns the number of rows removed, or 0 if the table does not exist yet.
    """
    if not store.has_schema():
        logger.info(
            "Expiry sweeper: 'paste_entries' table not found; skipping cycle",
            extra={
                "event": "expiry_sweeper_no_table",
                "correlation_id": "expiry-sweeper",
            },
        )
        return 0

    removed = store.purge_expired()
    if removed:
        logger.info(
            "Expiry sweeper: removed expired entries",
            extra={
                "event": "expiry_sweep",
                "removed": removed,
                "correlation_id": "expiry-sweeper",
            },
        )
    return removed


def _expiry_loop(store: SqlPasteStore, interval: float) -> NoReturn:
    """Background loop that periodically evicts expired entries."""

    while True:
        try:
            sweep_once(store)
        except PasteError:
            logger.warning(
                "Expiry sweeper: store not reachable; skipping cycle",
                extra={
                    "event": "expiry_sweeper_store_error",
                    "correlation_id": "expiry-sweeper",
                },
            )
        except Exception:  # pragma: no cover - keep the thread alive
            logger.exception(
                "Error in expiry sweeper loop",
                extra={
                    "event": "expiry_sweeper_error",
                    "correlation_id": "expiry-sweeper",
                },
            )

        time.sleep(interval)


def start_expiry_worker(
    store: SqlPasteStore,
    interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> bool:
    """
    Start the expiry sweeper in a background thread.

    This function is idempotent and will only start a single worker thread.
    Returns True if this call started it.
    """

    global _worker_started
    with _worker_lock:
        if _worker_started:
            return False

        thread = threading.Thread(
            target=_expiry_loop,
            args=(store, interval),
            name="expiry-sweeper",
            daemon=True,
        )
        thread.start()
        _worker_started = True
        return True
