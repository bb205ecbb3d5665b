"""HTTP middleware: request ids with access logging, and per-client rate limiting.

Middleware Stack
================
::
    request
       │
       ▼
    ┌──────────────────────────┐
    │ AccessLogMiddleware       │  accept or assign X-Request-ID, time the request,
    │                           │  log one line with the final status, echo the id
    └────────────┬─────────────┘
                 ▼
    ┌──────────────────────────┐
    │ RateLimitMiddleware       │  count per client IP ──── over limit ───▶ 429
    └────────────┬─────────────┘
                 ▼
            routes / handlers

Key Behaviours
===============
- Every finished request is logged, including 4xx/5xx responses rendered by
  exception handlers and 429s from the limiter.
- The request id lives in a context variable for the duration of the request,
  so ``RequestIdFilter`` stamps it on every record logged while serving it.
- The limiter uses fixed windows of ``REQUEST_WINDOW_SECONDS`` and keeps its
  counters in process memory; each worker process limits independently.
"""

import logging
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from shortlink.schemas import ErrorResponse

__all__ = [
    "REQUEST_ID_HEADER",
    "AccessLogMiddleware",
    "FixedWindowRateLimiter",
    "RateLimitMiddleware",
    "RequestIdFilter",
    "client_ip",
    "request_id_var",
]

REQUEST_ID_HEADER = "X-Request-ID"

# Paths that are never rate limited
EXEMPT_PATHS = frozenset(["/health", "/metrics"])

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

access_logger = logging.getLogger("shortlink.access")


class RequestIdFilter(logging.Filter):
    """Guarantee a ``request_id`` attribute on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get()
        return True


def client_ip(request: Request) -> str:
    """Real client address, honouring the usual proxy headers."""
    for header in ("true-client-ip", "x-real-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        start_time = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception:
                duration_ms = (time.perf_counter() - start_time) * 1000
                access_logger.exception(
                    f"{request.method} {request.url.path} failed after {duration_ms:.1f}ms",
                    extra={"request_id": request_id},
                )
                raise

            duration_ms = (time.perf_counter() - start_time) * 1000
            access_logger.info(
                f"{request.method} {request.url.path} {response.status_code} {duration_ms:.1f}ms "
                f"client={client_ip(request)}",
                extra={"request_id": request_id},
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_var.reset(token)


class FixedWindowRateLimiter:
    """Counts hits per key in fixed time windows.

    Args:
        limit: Hits allowed per key and window.
        window_seconds: Window length.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._window = -1
        self._hits: dict[str, int] = {}

    def hit(self, key: str) -> bool:
        """Record one hit for ``key``; False once the key is over its limit."""
        window = int(self._clock() // self.window_seconds)
        if window != self._window:
            # Counters of the previous window are never read again.
            self._window = window
            self._hits.clear()
        count = self._hits.get(key, 0) + 1
        self._hits[key] = count
        return count <= self.limit

    def retry_after(self) -> int:
        elapsed = self._clock() % self.window_seconds
        return max(1, int(self.window_seconds - elapsed + 0.999))

    def reset(self) -> None:
        self._window = -1
        self._hits.clear()


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: FixedWindowRateLimiter) -> None:
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        ip = client_ip(request)
        if not self.limiter.hit(ip):
            access_logger.warning(f"Request limit exceeded for {ip}")
            body = ErrorResponse(error="too many requests")
            return JSONResponse(
                status_code=429,
                content=body.model_dump(mode="json", exclude_none=True),
                headers={"Retry-After": str(self.limiter.retry_after())},
            )
        return await call_next(request)
