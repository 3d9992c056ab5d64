from __future__ import annotations

from typing import Optional

from flask import current_app, request

from pastelink.services.paste_service import PasteService


EXTENSION_KEY = "pastelink"
TEST_NOW_HEADER = "X-Test-Now-Ms"


def get_paste_service() -> PasteService:
    return current_app.extensions[EXTENSION_KEY]


def request_now_ms() -> Optional[int]:
    """
    The request's idea of "now", or ``None`` to use the service clock.

    Only honoured when ``TEST_MODE`` is on; malformed values are ignored.
    """
    if not current_app.config.get("TEST_MODE", False):
        return None
    raw = request.headers.get(TEST_NOW_HEADER)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None
