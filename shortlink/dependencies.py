"""Dependency injection with a singleton service manager.

This module owns the long-lived resources (settings, logger, Redis client,
database session factory) and wires them into one shared AliasService. Routes
receive the service and a lightweight per-request context through FastAPI's
``Depends``.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request

from shortlink.allocator import AliasAllocator
from shortlink.cache import RedisAliasCache
from shortlink.config import Settings, get_settings
from shortlink.database import get_session_factory
from shortlink.middleware import RequestIdFilter, client_ip
from shortlink.redis import close_redis, get_redis
from shortlink.store import PostgresAliasStore
from shortlink.url_service import AliasService

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton owner of shared resources.

    Resources are created once at startup instead of per request, and the
    alias service built from them is shared by every request.
    """

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False
    _init_lock: asyncio.Lock | None = None

    def __new__(cls) -> "ServiceManager":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(self) -> None:
        """Initialize shared resources once, even when called concurrently."""
        if self._initialized:
            return
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        async with self._init_lock:
            await self._initialize()

    async def _initialize(self) -> None:
        if not self._initialized:
            self.settings = get_settings()
            self.logger = self._setup_logger(self.settings)
            self.cache_client = await get_redis()
            self.cache = RedisAliasCache(
                self.cache_client,
                ttl_seconds=self.settings.CACHE_TTL_SECONDS,
                key_prefix=self.settings.CACHE_KEY_PREFIX,
            )
            self.store = PostgresAliasStore(get_session_factory(), AliasAllocator())
            self.alias_service = AliasService.from_settings(self.store, self.cache, self.settings, logger=self.logger)
            self._initialized = True
            self.logger.info(f"{self.settings.APP_NAME} initialized (env={self.settings.APP_ENV})")

    def _setup_logger(self, settings: Settings) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("shortlink")
        if not logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            handler.addFilter(RequestIdFilter())
            logger.addHandler(handler)
        logger.setLevel(settings.LOG_LEVEL)
        return logger

    async def cleanup(self) -> None:
        """Cleanup shared resources at shutdown."""
        if hasattr(self, "alias_service"):
            await self.alias_service.drain()
        if hasattr(self, "store"):
            await self.store.close()
        if hasattr(self, "cache"):
            await self.cache.close()
        await close_redis()
        self._initialized = False
        # The lock is bound to the loop that ran startup.
        self._init_lock = None


# Global singleton instance
_service_manager = ServiceManager()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request tracking data.

    Attributes:
        request_id: Unique identifier for this request (or the caller's X-Request-ID)
        client_ip: Client IP address
        user_agent: Client user agent string
        start_time: Request start timestamp
    """

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    start_time: float = field(default_factory=time.time)

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger with request context attached to every record."""
        return logging.LoggerAdapter(
            logging.getLogger("shortlink"),
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
            },
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    if not _service_manager._initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(request: Request) -> RequestContext:
    request_id = getattr(request.state, "request_id", None) or request.headers.get("x-request-id") or str(uuid.uuid4())
    return RequestContext(
        request_id=request_id,
        client_ip=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


async def get_alias_service(manager: ServiceManager = Depends(get_service_manager)) -> AliasService:
    return manager.alias_service
