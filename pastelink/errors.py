from __future__ import annotations

from http import HTTPStatus
from typing import Any, Optional


class PasteError(Exception):
    """Base class for paste-related errors."""

    http_status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    public_message: str = "Internal server error"

    def to_dict(self) -> dict[str, Any]:
        """Body returned to API clients. Never includes internal detail."""
        return {"error": self.public_message}


class ValidationError(PasteError):
    """Raised when a paste is submitted with invalid parameters."""

    http_status = HTTPStatus.BAD_REQUEST

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "field": self.field}


class NotFoundError(PasteError):
    """
    Raised when a paste is absent, expired, or has used up its views.

    ``reason`` is kept for logging only; every reason maps to the same
    external status and message.
    """

    http_status = HTTPStatus.NOT_FOUND
    public_message = "Paste not found"

    def __init__(self, paste_id: str, reason: str) -> None:
        super().__init__(f"Paste {paste_id} not found ({reason}).")
        self.paste_id = paste_id
        self.reason = reason


class ServiceUnavailableError(PasteError):
    """Raised when the store is not configured or cannot be reached."""

    http_status = HTTPStatus.SERVICE_UNAVAILABLE
    public_message = "Service temporarily unavailable"


class ConfigurationError(PasteError):
    """Raised when no base URL can be resolved for a share link."""

    http_status = HTTPStatus.INTERNAL_SERVER_ERROR
    public_message = "Unable to determine base URL"


class InternalError(PasteError):
    """Anything unexpected, including corrupt stored records."""

    http_status = HTTPStatus.INTERNAL_SERVER_ERROR
    public_message = "Internal server error"

    def __init__(self, message: str = "Internal server error", *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause
