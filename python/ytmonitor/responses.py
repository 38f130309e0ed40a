"""API error envelope helpers and exception handlers.

Success responses use the plain JSON shapes the extension protocol expects
(e.g. {"device_id": ..., "api_key": ...}). Errors use a consistent envelope:

    { "error": { "code": "E_...", "message": "...", "request_id": "...", "details": ... } }

The request_id is included in error responses for debugging and support.
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from ytmonitor.errors import ApiError, ApiErrorCode, StorageUnavailableError
from ytmonitor.logging import get_logger, get_request_id

logger = get_logger(__name__)


def error_response(
    code: ApiErrorCode,
    message: str,
    request_id: str | None = None,
    details: Any = None,
) -> dict[str, Any]:
    """Create an error response envelope.

    Args:
        code: The error code enum value.
        message: Human-readable error message.
        request_id: Optional request ID for correlation (auto-populated from context if None).
        details: Optional machine-readable details (omitted when None).

    Returns:
        Dict with "error" key containing code, message, and request_id.
    """
    if request_id is None:
        request_id = get_request_id()

    error: dict[str, Any] = {"code": code.value, "message": message}
    if request_id:
        error["request_id"] = request_id
    if details is not None:
        error["details"] = details

    return {"error": error}


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Handle ApiError exceptions and return proper JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, details=exc.details),
    )


async def http_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle Starlette HTTPException (404 on unknown paths, 405, ...)."""
    status_to_code = {
        400: ApiErrorCode.E_INVALID_REQUEST,
        401: ApiErrorCode.E_UNAUTHENTICATED,
        403: ApiErrorCode.E_FORBIDDEN,
        404: ApiErrorCode.E_NOT_FOUND,
        405: ApiErrorCode.E_INVALID_REQUEST,
        422: ApiErrorCode.E_INVALID_REQUEST,
        429: ApiErrorCode.E_RATE_LIMITED,
    }
    code = status_to_code.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    message = str(exc.detail) if exc.detail else "An error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, message),
    )


async def storage_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """Map storage-level operational failures (locked DB, lost connection) to 503.

    These are transient: the client retries on its next scheduled tick.
    """
    logger.warning("storage_unavailable", error=str(exc.orig) if exc.orig else str(exc))
    error = StorageUnavailableError()
    return JSONResponse(
        status_code=error.status_code,
        content=error_response(error.code, error.message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions and return 500 with E_INTERNAL.

    Logs the exception server-side but never leaks details to client.
    """
    logger.exception("unhandled_exception", error_type=type(exc).__name__)

    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
    )
