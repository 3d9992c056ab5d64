from __future__ import annotations

import logging
from http import HTTPStatus

from flask import Blueprint, render_template
from werkzeug.exceptions import HTTPException

from pastelink.api.context import get_paste_service, request_now_ms
from pastelink.errors import NotFoundError, PasteError, ServiceUnavailableError
from pastelink.observability import get_correlation_id

logger = logging.getLogger(__name__)

pages_bp = Blueprint("pages", __name__)


@pages_bp.errorhandler(NotFoundError)
def _not_found(_exc: NotFoundError) -> tuple[str, int]:
    # One page for missing, expired and used-up pastes alike.
    return render_template("not_found.html"), HTTPStatus.NOT_FOUND


@pages_bp.errorhandler(ServiceUnavailableError)
def _unavailable(_exc: ServiceUnavailableError) -> tuple[str, int]:
    return render_template("error.html", title="Service Unavailable", status=503), HTTPStatus.SERVICE_UNAVAILABLE


@pages_bp.errorhandler(Exception)
def _unexpected(exc: Exception):
    if isinstance(exc, HTTPException):
        return exc
    if not isinstance(exc, PasteError) or exc.http_status >= 500:
        logger.exception(
            "Unhandled error rendering paste page",
            extra={
                "event": "internal_error",
                "error_type": type(exc).__name__,
                "correlation_id": get_correlation_id(),
            },
        )
    return render_template("error.html", title="Something Went Wrong", status=500), HTTPStatus.INTERNAL_SERVER_ERROR


@pages_bp.route("/p/<paste_id>", methods=["GET"])
def view_paste(paste_id: str) -> tuple[str, int]:
    """HTML view of a paste. Counts as a view, same as the JSON endpoint."""

    view = get_paste_service().retrieve_paste(paste_id, now_ms=request_now_ms())
    return render_template("paste.html", paste=view), HTTPStatus.OK
