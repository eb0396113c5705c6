"""Error types and the handlers that turn them into the sync JSON envelope.

Every failure leaves the API as ``{"success": false, "message": ..., "error": ...}``;
nothing propagates to the client as an unhandled fault.
"""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import settings
from app.logging import get_logger

logger = get_logger(__name__)


class SyncError(Exception):
    """Base exception for buffer sync failures."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(SyncError):
    """Required input missing or empty (e.g. an empty id list)."""

    status_code = status.HTTP_400_BAD_REQUEST


class StoreUnavailable(SyncError):
    """Connectivity or query failure against the buffer store."""


class UpstreamRefreshFailure(SyncError):
    """The Sage buffer-population procedure failed."""


def error_envelope(message: str, detail: str | None = None) -> dict:
    body: dict = {"success": False, "message": message}
    if detail and settings.expose_error_details:
        body["error"] = detail
    return body


async def _sync_error_handler(request: Request, exc: SyncError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.message, exc.detail, extra={"path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content=error_envelope(exc.message, exc.detail))


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    detail = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}" for err in errors
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_envelope("Invalid request", detail),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope("Internal server error", str(exc)),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SyncError, _sync_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
