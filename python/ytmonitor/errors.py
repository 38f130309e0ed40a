"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
"""

from enum import Enum
from typing import Any


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"
    E_MANAGEMENT_ONLY = "E_MANAGEMENT_ONLY"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_DEVICE_NOT_FOUND = "E_DEVICE_NOT_FOUND"
    E_BLOCK_NOT_FOUND = "E_BLOCK_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_DEVICE_ID = "E_INVALID_DEVICE_ID"
    E_INVALID_URL = "E_INVALID_URL"
    E_HISTORY_BATCH_INVALID = "E_HISTORY_BATCH_INVALID"

    # Throttling (429)
    E_RATE_LIMITED = "E_RATE_LIMITED"

    # Server errors
    E_STORAGE_UNAVAILABLE = "E_STORAGE_UNAVAILABLE"  # 503
    E_INTERNAL = "E_INTERNAL"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_MANAGEMENT_ONLY: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_DEVICE_NOT_FOUND: 404,
    ApiErrorCode.E_BLOCK_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_INVALID_DEVICE_ID: 400,
    ApiErrorCode.E_INVALID_URL: 400,
    ApiErrorCode.E_HISTORY_BATCH_INVALID: 400,
    ApiErrorCode.E_RATE_LIMITED: 429,
    ApiErrorCode.E_STORAGE_UNAVAILABLE: 503,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
        details: Optional machine-readable detail payload (e.g. itemized row failures)
    """

    def __init__(self, code: ApiErrorCode, message: str, details: Any = None):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class UnauthenticatedError(ApiError):
    """Missing, malformed, or unknown credential."""

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_UNAUTHENTICATED,
        message: str = "Authentication required",
    ):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Authorization failure error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_FORBIDDEN, message: str = "Forbidden"):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST,
        message: str = "Invalid request",
        details: Any = None,
    ):
        super().__init__(code, message, details)


class RateLimitedError(ApiError):
    """Too many requests from one source."""

    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(ApiErrorCode.E_RATE_LIMITED, message)


class StorageUnavailableError(ApiError):
    """Transient storage failure; safe for the caller to retry later."""

    def __init__(self, message: str = "Storage temporarily unavailable"):
        super().__init__(ApiErrorCode.E_STORAGE_UNAVAILABLE, message)
