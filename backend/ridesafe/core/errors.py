"""Exception hierarchy and FastAPI error handlers.

Every error raised on purpose by the service layer derives from
``RideSafeError`` and carries the HTTP status it maps to. Handlers render all
of them as ``{"success": false, "error": ..., "details": ...}``.

Channel errors (``ChannelConfigError``, ``ChannelSendError``) never reach a
client: the dispatcher turns them into ``failed`` outcomes.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class RideSafeError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ValidationError(RideSafeError):
    """Bad user input (400)."""

    def __init__(self, message: str, *, field: str | None = None, **details: Any):
        d = {**details}
        if field:
            d["field"] = field
        super().__init__(message, status_code=400, error_code="VALIDATION_ERROR", details=d)


class AuthenticationError(RideSafeError):
    """Missing or invalid credentials (401)."""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message, status_code=401, error_code="NOT_AUTHENTICATED")


class NotFoundError(RideSafeError):
    """Resource not found or not owned by the caller (404)."""

    def __init__(self, resource: str, message: str | None = None, **identifiers: Any):
        super().__init__(
            message or f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"resource": resource, **identifiers},
        )


class NoContactsError(RideSafeError):
    """User has no active emergency contact with a phone number (404)."""

    def __init__(self, message: str = "No emergency contacts with phone numbers found"):
        super().__init__(
            message,
            status_code=404,
            error_code="NO_CONTACTS",
            details={"hint": "Add an emergency contact with a phone number and try again."},
        )


class DispatchPreconditionError(RideSafeError):
    """Dispatcher called without any recipient (400)."""

    def __init__(self, message: str = "No recipients to dispatch to"):
        super().__init__(message, status_code=400, error_code="DISPATCH_PRECONDITION")


class StorageError(RideSafeError, LookupError):
    """Backing store unreachable or a write failed (500)."""

    def __init__(self, message: str, **details: Any):
        super().__init__(message, status_code=500, error_code="STORAGE_ERROR", details=details)


class InvalidTransitionError(RideSafeError):
    """Illegal SOS status transition (409)."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot move SOS event from '{current}' to '{target}'",
            status_code=409,
            error_code="INVALID_TRANSITION",
            details={"current": current, "target": target},
        )


class ChannelConfigError(RideSafeError):
    """A channel client has no usable provider credentials."""

    def __init__(self, channel: str, problems: list[str] | None = None):
        problems = problems or []
        message = f"{channel} channel not configured"
        if problems:
            message += ": " + ", ".join(problems)
        super().__init__(
            message,
            status_code=500,
            error_code="CHANNEL_CONFIG_ERROR",
            details={"channel": channel, "problems": problems},
        )


class ChannelSendError(RideSafeError):
    """One recipient's send failed at the provider."""

    def __init__(self, channel: str, message: str, *, invalid_recipient: bool = False):
        super().__init__(
            message,
            status_code=502,
            error_code="CHANNEL_SEND_ERROR",
            details={"channel": channel, "invalid_recipient": invalid_recipient},
        )
        self.invalid_recipient = invalid_recipient


def error_body(message: str, details: Any = None, **extra: Any) -> dict[str, Any]:
    """Build the JSON error payload shared by every route."""
    body: dict[str, Any] = {"success": False, "error": message}
    if details:
        body["details"] = details
    body.update(extra)
    return body


def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(RideSafeError)
    async def handle_app_error(request: Request, exc: RideSafeError):
        if exc.status_code >= 500:
            logger.error("API error [%s] %s: %s | details=%s", exc.error_code, request.url.path, exc.message, exc.details)
        else:
            logger.info("API error [%s] %s: %s", exc.error_code, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content=error_body("Invalid request", {"errors": errors}))

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s", request.url.path)
        return JSONResponse(status_code=500, content=error_body("Internal server error"))
