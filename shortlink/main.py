"""FastAPI application entry point for the shortlink service.

This module configures the FastAPI application with middleware, lifecycle
management, error rendering and route registration.

Application Lifecycle Diagram
=============================
::
    ┌──────────────┐
    │   uvicorn    │
    │   startup    │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ init_db()    │
    │ initialize() │  (Redis ping with retries, store, cache, service)
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Serve HTTP   │
    │ requests     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ cleanup()    │  (drain cache populations, close Redis)
    │ close_db()   │
    └──────────────┘

How to Use
===========
**Step 1: Run with uvicorn**::
    uvicorn shortlink.main:app --host 0.0.0.0 --port 8080

**Step 2: Make API calls**::
    # Create a random alias
    curl -X POST http://localhost:8080/api/v1/url \
         -H "Content-Type: application/json" \
         -d '{"url": "https://example.com"}'

    # Follow it
    curl -i "http://localhost:8080/api/v1/url?alias=Ab3xYz"

    # Delete it
    curl -X DELETE "http://localhost:8080/api/v1/url?alias=Ab3xYz"

Key Behaviours
===============
- Database tables are created automatically on startup.
- Startup fails if Redis does not answer a ping after the configured retries.
- Every ShortlinkError becomes an ErrorResponse with the matching status code.
- Each request gets an X-Request-ID (the caller's, or a fresh one) that is
  echoed back and stamped on every log line written while serving it.
- Clients are limited to REQUEST_LIMIT requests per REQUEST_WINDOW_SECONDS,
  keyed by their real IP; excess requests get 429.
- Prometheus metrics are exposed at /metrics.
"""

__all__ = ["app", "create_app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from shortlink.config import get_settings
from shortlink.database import close_db, init_db
from shortlink.dependencies import _service_manager
from shortlink.errors import ShortlinkError
from shortlink.middleware import REQUEST_ID_HEADER, AccessLogMiddleware, FixedWindowRateLimiter, RateLimitMiddleware
from shortlink.routes import request_validation_error_handler, router, shortlink_error_handler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    await init_db()
    await _service_manager.initialize()
    yield
    # Shutdown
    await _service_manager.cleanup()
    await close_db()


def create_app() -> FastAPI:
    settings = get_settings()

    application = FastAPI(
        title=settings.APP_NAME,
        version="1.0.0",
        description="URL alias resolution and allocation service",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=False,
        should_respect_env_var=False,
    ).instrument(application).expose(application)

    application.state.rate_limiter = None
    if settings.RATE_LIMIT_ENABLED:
        application.state.rate_limiter = FixedWindowRateLimiter(settings.REQUEST_LIMIT, settings.REQUEST_WINDOW_SECONDS)
        application.add_middleware(RateLimitMiddleware, limiter=application.state.rate_limiter)
    # Outermost, so 429s and unhandled errors are logged too.
    application.add_middleware(AccessLogMiddleware)

    application.add_exception_handler(ShortlinkError, shortlink_error_handler)
    application.add_exception_handler(RequestValidationError, request_validation_error_handler)
    application.include_router(router)
    return application


app = create_app()
