"""Request correlation and access logging.

Every request gets an X-Request-ID (the caller's, when well-formed, else a
fresh UUID4) that is echoed on the response and carried by every log event
emitted while handling it.

The access entry is keyed by route template, not raw path: device routes
embed the device id (/api/v1/heartbeat/{device_id}), and the device is logged
separately from request.state.device once the API-key dependency resolved it.
Outcome decides the level:
- 2xx/3xx: request_completed (info)
- 401/403/429: request_rejected (warning), the agent's credential or budget
  problem, not a service fault
- other 4xx: request_completed (info)
- 5xx: request_failed (error)

Added LAST so it runs FIRST (FastAPI middleware runs in reverse order), so
auth and validation failures still carry X-Request-ID.
"""

import re
import time
import uuid
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ytmonitor.logging import clear_request_context, get_logger, set_request_context

REQUEST_ID_HEADER = "X-Request-ID"
REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
REJECTED_STATUSES = frozenset({401, 403, 429})

logger = get_logger(__name__)


def is_valid_request_id(value: str) -> bool:
    return bool(REQUEST_ID_PATTERN.match(value))


def normalize_request_id(value: str) -> str:
    """Canonical lowercase form for UUIDs; anything else unchanged."""
    try:
        return str(uuid.UUID(value)) if len(value) == 36 else value
    except ValueError:
        return value


def resolve_request_id(incoming: str | None) -> str:
    if incoming and is_valid_request_id(incoming):
        return normalize_request_id(incoming)
    return str(uuid.uuid4())


def route_template(request: Request) -> str:
    """The matched route's path template, or the raw path when none matched."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def access_log_fields(request: Request, status_code: int, duration_ms: float) -> dict[str, Any]:
    device = getattr(request.state, "device", None)
    return {
        "method": request.method,
        "route": route_template(request),
        "status_code": status_code,
        "device_id": device.device_id if device else None,
        "duration_ms": round(duration_ms, 2),
    }


def log_access(fields: dict[str, Any]) -> None:
    status_code = fields["status_code"]
    if status_code >= 500:
        logger.error("request_failed", **fields)
    elif status_code in REJECTED_STATUSES:
        logger.warning("request_rejected", **fields)
    else:
        logger.info("request_completed", **fields)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns the request ID, binds log context, writes the access entry.

    Args:
        app: The ASGI application.
        log_requests: If True, log one access entry per request.
    """

    def __init__(self, app, log_requests: bool = True):
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.monotonic()
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        set_request_context(request_id, path=request.url.path, method=request.method)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            if self.log_requests:
                duration_ms = (time.monotonic() - start_time) * 1000
                log_access(access_log_fields(request, response.status_code, duration_ms))
            return response
        except Exception:
            logger.exception("request_crashed", route=route_template(request))
            raise
        finally:
            clear_request_context()
