from __future__ import annotations

import os
from typing import Optional

from flask import Flask
from flask_cors import CORS

from .api.context import EXTENSION_KEY
from .api.pages import pages_bp
from .api.pastes import api_bp
from .config import get_config
from .domain.clock import Clock, SystemClock
from .observability import init_observability
from .services.paste_service import PasteService
from .store import PasteStore, build_store
from .store.sql_store import SqlPasteStore
from .worker.expiry_worker import start_expiry_worker

_UNSET = object()


def create_app(
    env_name: str | None = None,
    *,
    store: Optional[PasteStore] | object = _UNSET,
    clock: Optional[Clock] = None,
) -> Flask:
    """
    Application factory for the Flask backend.

    The configuration is selected based on the provided ``env_name`` or,
    if not given, the ``APP_ENV`` environment variable (falling back to
    ``development``).

    ``store`` and ``clock`` are injected as-is when given; ``store=None``
    explicitly runs without persistence. Otherwise the store is built once
    from ``STORE_URL`` and reused for every request.
    """
    if env_name is None:
        env_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__)
    app_config = get_config(env_name)
    app.config.from_object(app_config)

    CORS(app)

    init_observability(app)

    clock = clock or SystemClock()
    if store is _UNSET:
        store = build_store(
            app.config.get("STORE_URL"),
            password=app.config.get("STORE_PASSWORD"),
            key_prefix=app.config["STORE_KEY_PREFIX"],
            ttl_grace_seconds=app.config["STORE_TTL_GRACE_SECONDS"],
            clock=clock,
            create_schema=app.config.get("STORE_CREATE_SCHEMA", False),
        )

    app.extensions[EXTENSION_KEY] = PasteService(
        store=store,  # type: ignore[arg-type]
        clock=clock,
        base_url=app.config.get("BASE_URL"),
        max_content_bytes=app.config["MAX_CONTENT_BYTES"],
    )

    app.register_blueprint(api_bp)
    app.register_blueprint(pages_bp)

    # Redis evicts on its own; the SQL store needs the sweeper (disabled in testing)
    if isinstance(store, SqlPasteStore) and not app.config.get("TESTING", False):
        start_expiry_worker(store, app.config["EXPIRY_SWEEP_INTERVAL_SECONDS"])

    return app
