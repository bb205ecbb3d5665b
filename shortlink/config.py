"""Configuration management for the shortlink service.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram: get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1: Import**::
    from shortlink.config import get_settings

**Step 2: Get settings**::
    settings = get_settings()
    ttl = settings.CACHE_TTL_SECONDS

Key Behaviours
===============
- Settings are cached after first access.
- Environment variables override defaults automatically.
- Invalid values (unknown log level, non-positive lengths) raise ValidationError.

Classes:
    Settings:  Pydantic model for all configuration values.

"""

__all__ = ["Settings", "get_settings"]

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "shortlink"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # PostgreSQL
    DATABASE_URL: str = "postgresql+asyncpg://shortlink:shortlink@db:5432/shortlink"
    DB_POOL_SIZE: int = Field(10, gt=0)
    DB_MAX_OVERFLOW: int = Field(5, ge=0)

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_PING_RETRIES: int = Field(5, gt=0)
    REDIS_PING_DELAY_SECONDS: float = 0.5

    # Cache-aside read path
    CACHE_TTL_SECONDS: int = Field(3600, gt=0)
    CACHE_KEY_PREFIX: str = "url:"
    CACHE_SET_TIMEOUT_SECONDS: float = Field(1.0, gt=0)

    # Alias allocation
    STD_ALIAS_LENGTH: int = Field(6, gt=0)
    ALIAS_MAX_ATTEMPTS: int = Field(10, gt=0)
    ALIAS_MAX_LENGTH: int = Field(32, gt=0)

    # Per-client-IP rate limiting
    RATE_LIMIT_ENABLED: bool = True
    REQUEST_LIMIT: int = Field(100, gt=0)
    REQUEST_WINDOW_SECONDS: float = Field(60.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v!r}")
        return level


@lru_cache()
def get_settings() -> Settings:
    return Settings()
