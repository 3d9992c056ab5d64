from __future__ import annotations

import logging
from http import HTTPStatus

import pydantic
from flask import Blueprint, request
from werkzeug.exceptions import HTTPException

from pastelink.api.context import get_paste_service, request_now_ms
from pastelink.api.schemas import (
    HealthResponse,
    PasteCreateRequest,
    PasteCreatedResponse,
    PasteResponse,
)
from pastelink.errors import InternalError, PasteError, ValidationError
from pastelink.observability import get_correlation_id

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")

_FIELD_MESSAGES = {
    "content": "Content is required and must be a non-empty string",
    "ttl_seconds": "ttl_seconds must be an integer >= 1",
    "max_views": "max_views must be an integer >= 1",
}


def _validation_error_from(exc: pydantic.ValidationError) -> ValidationError:
    first = exc.errors()[0]
    loc = first.get("loc") or ("body",)
    field_name = str(loc[0])
    return ValidationError(field_name, _FIELD_MESSAGES.get(field_name, first.get("msg", "Invalid value")))


@api_bp.errorhandler(PasteError)
def _handle_paste_error(exc: PasteError) -> tuple[dict, int]:
    if isinstance(exc, InternalError):
        logger.error(
            "Internal error",
            exc_info=exc,
            extra={
                "event": "internal_error",
                "error_type": type(exc).__name__,
                "correlation_id": get_correlation_id(),
            },
        )
    return exc.to_dict(), exc.http_status


@api_bp.errorhandler(Exception)
def _handle_unexpected(exc: Exception):
    if isinstance(exc, HTTPException):
        return exc
    logger.exception(
        "Unhandled error in API",
        extra={
            "event": "internal_error",
            "error_type": type(exc).__name__,
            "correlation_id": get_correlation_id(),
        },
    )
    return InternalError().to_dict(), HTTPStatus.INTERNAL_SERVER_ERROR


@api_bp.route("/healthz", methods=["GET"])
def health() -> tuple[dict, int]:
    """Store reachability. Always 200; failures are reported in the body."""

    status = get_paste_service().health()
    body = HealthResponse(ok=status.ok, error=status.error).model_dump(exclude_none=True)
    return body, HTTPStatus.OK


@api_bp.route("/pastes", methods=["POST"])
def create_paste() -> tuple[dict, int]:
    """
    Create a new paste.

    Body shape is checked by Pydantic; business rules by the service layer.
    """
    service = get_paste_service()
    service.require_store()

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("body", "Request body must be a JSON object")

    # An explicit null is a value, not an omitted field.
    for field_name in ("ttl_seconds", "max_views"):
        if field_name in data and data[field_name] is None:
            raise ValidationError(field_name, _FIELD_MESSAGES[field_name])

    try:
        payload = PasteCreateRequest.model_validate(data)
    except pydantic.ValidationError as exc:
        raise _validation_error_from(exc) from exc

    created = service.create_paste(
        content=payload.content,
        ttl_seconds=payload.ttl_seconds,
        max_views=payload.max_views,
        headers=request.headers,
        scheme=request.scheme,
        now_ms=request_now_ms(),
    )
    return PasteCreatedResponse(**created).model_dump(), HTTPStatus.CREATED


@api_bp.route("/pastes/<paste_id>", methods=["GET"])
def get_paste(paste_id: str) -> tuple[dict, int]:
    view = get_paste_service().retrieve_paste(paste_id, now_ms=request_now_ms())
    return PasteResponse(**view.to_api_dict()).model_dump(), HTTPStatus.OK
