"""FastAPI route definitions for the shortlink REST API.

API Endpoint Overview
=====================
::
    GET    /health
        └─ HealthResponse (200)

    GET    /api/v1/url?alias=<alias>
        └─ 302 Redirect, 400 or 404

    POST   /api/v1/url
        ├─ AliasCreate (request body)
        └─ AliasResponse (201), 400, 409 or 503

    DELETE /api/v1/url?alias=<alias>
        └─ AliasResponse (200), 400 or 404

Error Mapping
=============
::
    NOT_FOUND             ──▶ 404
    ALREADY_EXISTS        ──▶ 409
    INVALID_INPUT         ──▶ 400
    MAX_RETRIES_EXCEEDED  ──▶ 503
    INTERNAL              ──▶ 500  ("internal server error", no detail)

Key Behaviours
===============
- Routes are thin: they validate transport concerns and delegate every
  decision to AliasService.
- Every ShortlinkError is rendered by one exception handler into an
  ErrorResponse body. Body validation failures use the same shape with 400.
- Any route may also answer 429 from the rate limiter.
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.config import Settings, get_settings
from shortlink.database import get_db
from shortlink.dependencies import RequestContext, ServiceManager, get_alias_service, get_request_context, get_service_manager
from shortlink.enums import ErrorKind, HealthStatus
from shortlink.errors import InternalError, InvalidInputError, ShortlinkError
from shortlink.schemas import AliasCreate, AliasResponse, ErrorResponse, HealthResponse
from shortlink.url_service import AliasService

__all__ = ["STATUS_BY_KIND", "request_validation_error_handler", "router", "shortlink_error_handler"]

router = APIRouter()

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.MAX_RETRIES_EXCEEDED: 503,
    ErrorKind.INTERNAL: 500,
}


async def shortlink_error_handler(request: Request, exc: ShortlinkError) -> JSONResponse:
    status_code = STATUS_BY_KIND[exc.kind]
    message = InternalError.default_message if exc.kind is ErrorKind.INTERNAL else exc.message
    body = ErrorResponse(error=message, alias=exc.alias)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


def _validation_message(error: dict) -> str:
    # Validators raise ValueError; pydantic keeps the original under ctx.error.
    cause = (error.get("ctx") or {}).get("error")
    if cause is not None:
        return str(cause)
    msg = str(error.get("msg", InvalidInputError.default_message)).removeprefix("Value error, ")
    loc = [str(part) for part in error.get("loc", ()) if part != "body"]
    return f"{'.'.join(loc)}: {msg}" if loc else msg


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = _validation_message(errors[0]) if errors else InvalidInputError.default_message
    body = ErrorResponse(error=message)
    return JSONResponse(
        status_code=STATUS_BY_KIND[ErrorKind.INVALID_INPUT],
        content=body.model_dump(mode="json", exclude_none=True),
    )


def _require_alias(alias: str) -> str:
    alias = alias.strip()
    if not alias:
        raise InvalidInputError("alias must not be empty")
    return alias


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
    manager: ServiceManager = Depends(get_service_manager),
) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    cache_status = HealthStatus.HEALTHY

    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    try:
        await manager.cache_client.ping()
    except Exception as e:
        ctx.logger.error(f"Cache health check failed: {e}")
        cache_status = HealthStatus.UNHEALTHY

    status = (
        HealthStatus.HEALTHY
        if db_status is HealthStatus.HEALTHY and cache_status is HealthStatus.HEALTHY
        else HealthStatus.UNHEALTHY
    )
    return HealthResponse(status=status, database=db_status, cache=cache_status)


@router.get("/api/v1/url", tags=["redirect"])
async def redirect_to_url(
    alias: str = Query(""),
    ctx: RequestContext = Depends(get_request_context),
    service: AliasService = Depends(get_alias_service),
) -> RedirectResponse:
    alias = _require_alias(alias)
    target = await service.resolve(alias)
    ctx.logger.info(f"Redirecting {alias} -> {target} ({ctx.get_duration():.1f}ms)")
    return RedirectResponse(url=target, status_code=302)


@router.post("/api/v1/url", response_model=AliasResponse, status_code=201, tags=["urls"])
async def save_url(
    payload: AliasCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: AliasService = Depends(get_alias_service),
    settings: Settings = Depends(get_settings),
) -> AliasResponse:
    if payload.alias is None:
        alias = await service.allocate(payload.url, settings.STD_ALIAS_LENGTH, settings.ALIAS_MAX_ATTEMPTS)
    else:
        alias = payload.alias
        await service.save(payload.url, alias)

    ctx.logger.info(f"Alias {alias} created for {payload.url} ({ctx.get_duration():.1f}ms)")
    return AliasResponse(alias=alias)


@router.delete("/api/v1/url", response_model=AliasResponse, tags=["urls"])
async def delete_url(
    alias: str = Query(""),
    ctx: RequestContext = Depends(get_request_context),
    service: AliasService = Depends(get_alias_service),
) -> AliasResponse:
    alias = _require_alias(alias)
    await service.remove(alias)
    ctx.logger.info(f"Alias {alias} deleted ({ctx.get_duration():.1f}ms)")
    return AliasResponse(alias=alias)
