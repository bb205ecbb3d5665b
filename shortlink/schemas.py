"""Pydantic schemas for request validation and response serialization.

Schema Hierarchy
=================
::
    AliasCreate (Input)
    ├─ url: str (http/https, validated)
    └─ alias: str | None (optional, alphanumeric)

    AliasResponse (Output)
    ├─ status: "OK"
    └─ alias: str

    ErrorResponse (Output)
    ├─ status: "error"
    ├─ error: str
    └─ alias: str | None

    HealthResponse (Output)
    ├─ status: HealthStatus
    ├─ database: HealthStatus
    └─ cache: HealthStatus

Key Behaviours
===============
- URL validation uses the validators library and only accepts http/https.
- A blank alias is treated as "no alias": the service allocates one.
- Explicit aliases must be alphanumeric and at most ALIAS_MAX_LENGTH long.

Classes:
    AliasCreate:  Input schema for POST /api/v1/url.
    AliasResponse:  Output schema for created or deleted aliases.
    ErrorResponse:  Output schema for every error.
    HealthResponse:  Output schema for health checks.
"""

from urllib.parse import urlsplit

import validators
from pydantic import BaseModel, field_validator

from shortlink.config import get_settings
from shortlink.enums import HealthStatus, ResponseStatus

__all__ = ["AliasCreate", "AliasResponse", "ErrorResponse", "HealthResponse"]

ALLOWED_SCHEMES = frozenset({"http", "https"})


class AliasCreate(BaseModel):
    url: str
    alias: str | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("url must not be empty")
        if not validators.url(v) or urlsplit(v).scheme.lower() not in ALLOWED_SCHEMES:
            raise ValueError("invalid url format")
        return v

    @field_validator("alias")
    @classmethod
    def validate_alias(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            return None
        max_length = get_settings().ALIAS_MAX_LENGTH
        if len(v) > max_length:
            raise ValueError(f"alias must be at most {max_length} characters")
        if not v.isascii() or not v.isalnum():
            raise ValueError("alias must be alphanumeric")
        return v


class AliasResponse(BaseModel):
    status: ResponseStatus = ResponseStatus.OK
    alias: str


class ErrorResponse(BaseModel):
    status: ResponseStatus = ResponseStatus.ERROR
    error: str
    alias: str | None = None


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus
