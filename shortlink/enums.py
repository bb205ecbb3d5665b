"""Shared enums for the shortlink service.

This module defines all status and kind enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["CacheStatus", "ErrorKind", "HealthStatus", "RequestStatus", "ResponseStatus"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class ErrorKind(StrEnum):
    """Closed set of failure kinds carried by every ShortlinkError.

    Only NOT_FOUND, ALREADY_EXISTS, MAX_RETRIES_EXCEEDED and INVALID_INPUT
    carry meaning to callers; INTERNAL collapses every other failure.
    """

    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    MAX_RETRIES_EXCEEDED = "max_retries_exceeded"
    INVALID_INPUT = "invalid_input"
    INTERNAL = "internal"


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    ERROR = "error"
    NOT_FOUND = "not_found"

    @classmethod
    def from_kind(cls, kind: ErrorKind) -> "RequestStatus":
        """Map an error kind onto the coarser metrics label."""
        if kind is ErrorKind.NOT_FOUND:
            return cls.NOT_FOUND
        if kind in (ErrorKind.INVALID_INPUT, ErrorKind.ALREADY_EXISTS):
            return cls.VALIDATION_ERROR
        return cls.ERROR


class CacheStatus(StrEnum):
    """Cache status values for metrics."""

    HIT = "true"
    MISS = "false"


class ResponseStatus(StrEnum):
    """Top-level ``status`` field of every JSON response body."""

    OK = "OK"
    ERROR = "error"
