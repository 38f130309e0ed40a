"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, request-id middleware, and routes.

Authentication:
- Device endpoints resolve the API key per route (ytmonitor.auth.api_key)
- Management endpoints check the shared secret per route (ytmonitor.auth.management)
- /health and / are public

Middleware Ordering:
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including auth failures) get X-Request-ID

Storage Lifecycle:
- Embedded mode (SQLite) creates the schema at startup when
  YTM_AUTO_CREATE_SCHEMA is set; server-grade deployments run Alembic instead
- The rate limiter is created with in-memory storage and switched to Redis
  storage at startup when REDIS_URL is configured and reachable
"""

import json
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import Engine
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ytmonitor import __version__
from ytmonitor.api.routes import create_api_router
from ytmonitor.config import Environment, get_settings
from ytmonitor.db.engine import get_engine
from ytmonitor.db.models import Base
from ytmonitor.db.session import create_session_factory
from ytmonitor.errors import ApiError, ApiErrorCode
from ytmonitor.logging import configure_logging, get_logger
from ytmonitor.middleware.request_id import RequestIDMiddleware
from ytmonitor.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    storage_error_handler,
    unhandled_exception_handler,
)
from ytmonitor.services.rate_limit import RateLimiter

logger = get_logger(__name__)


def validation_details(exc: RequestValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors into JSON-safe {field, message} items."""
    details = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "path", "query")]
        details.append({"field": ".".join(loc) or "body", "message": err.get("msg", "invalid")})
    return details


def validation_error_code(exc: RequestValidationError) -> ApiErrorCode:
    for err in exc.errors():
        loc = err.get("loc", ())
        if loc and loc[-1] == "device_id":
            return ApiErrorCode.E_INVALID_DEVICE_ID
    return ApiErrorCode.E_INVALID_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle resources.

    - Creates the schema in embedded mode
    - Moves the rate limiter onto Redis storage when configured
    """
    settings = get_settings()

    if settings.auto_create_schema:
        engine = app.state.engine or get_engine()
        Base.metadata.create_all(engine)
        logger.info("schema_ensured", dialect=engine.dialect.name)

    if settings.redis_url:
        shared = RateLimiter(settings.redis_url)
        if shared.storage_available:
            app.state.rate_limiter = shared
            logger.info("rate_limit_storage_attached", backend=shared.backend)
        else:
            logger.warning("rate_limit_storage_unreachable", backend=shared.backend)

    yield

    logger.info("service_stopped")


def create_app(engine: Engine | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        engine: Optional engine for schema creation and request sessions
            (tests pass their temporary database here). Defaults to the
            DATABASE_URL engine.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()
    configure_logging(json_format=settings.ytm_env != Environment.LOCAL)

    app = FastAPI(
        title="YouTube Monitor API",
        description="Device registration, watch-history sync and block rules",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine) if engine is not None else None
    app.state.rate_limiter = RateLimiter()

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(OperationalError, storage_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors as 400 with per-field details."""
        return JSONResponse(
            status_code=400,
            content=error_response(
                validation_error_code(exc),
                "Invalid request",
                details=validation_details(exc),
            ),
        )

    # Handle JSON decode errors from malformed JSON bodies
    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Catch JSON decode errors before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    # Use router factory to avoid import-time settings loading
    app.include_router(create_api_router())

    logger.info(
        "app_created",
        env=settings.ytm_env.value,
        management_secret_required=settings.requires_management_secret,
    )

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    This ensures every response includes X-Request-ID, including auth failures.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log access entries for each request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
