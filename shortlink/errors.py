"""Error taxonomy shared by the store, the cache and the alias service.

Every failure raised by the core is a ``ShortlinkError`` whose ``kind``
attribute is one member of :class:`~shortlink.enums.ErrorKind`. Callers
classify failures by comparing ``exc.kind`` against enum members, never by
inspecting message text.

Hierarchy
=========
::
    ShortlinkError
    ├─ NotFoundError              (NOT_FOUND)
    │  └─ CacheKeyNotFoundError   (NOT_FOUND, cache miss)
    ├─ AlreadyExistsError         (ALREADY_EXISTS)
    ├─ MaxRetriesExceededError    (MAX_RETRIES_EXCEEDED)
    ├─ InvalidInputError          (INVALID_INPUT)
    └─ InternalError              (INTERNAL)
       ├─ StoreError              (INTERNAL, database transport)
       └─ CacheUnavailableError   (INTERNAL, cache transport)

Driver adapters translate library exceptions into this hierarchy with
``raise ... from exc`` so the original traceback stays attached.
"""

from shortlink.enums import ErrorKind

__all__ = [
    "AlreadyExistsError",
    "CacheKeyNotFoundError",
    "CacheUnavailableError",
    "InternalError",
    "InvalidInputError",
    "MaxRetriesExceededError",
    "NotFoundError",
    "ShortlinkError",
    "StoreError",
    "error_kind",
]


class ShortlinkError(Exception):
    """Base class for every failure surfaced by the core."""

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message = "internal server error"

    def __init__(self, message: str | None = None, *, alias: str | None = None) -> None:
        self.message = message or self.default_message
        self.alias = alias
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r}, alias={self.alias!r})"


class NotFoundError(ShortlinkError):
    kind = ErrorKind.NOT_FOUND
    default_message = "url not found"


class CacheKeyNotFoundError(NotFoundError):
    """The cache holds no entry for the key (expired, evicted or never set)."""

    default_message = "key does not exist"


class AlreadyExistsError(ShortlinkError):
    kind = ErrorKind.ALREADY_EXISTS
    default_message = "alias already exists"


class MaxRetriesExceededError(ShortlinkError):
    """The allocator spent its whole attempt budget on taken candidates.

    Signals a saturated keyspace for the requested length, not a transient
    fault: retrying with the same parameters is pointless.
    """

    kind = ErrorKind.MAX_RETRIES_EXCEEDED
    default_message = "could not generate random unique alias, please try again"

    def __init__(self, message: str | None = None, *, attempts: int = 0, length: int = 0) -> None:
        self.attempts = attempts
        self.length = length
        super().__init__(message)


class InvalidInputError(ShortlinkError):
    kind = ErrorKind.INVALID_INPUT
    default_message = "invalid input"


class InternalError(ShortlinkError):
    kind = ErrorKind.INTERNAL


class StoreError(InternalError):
    """Database transport or unexpected driver failure."""


class CacheUnavailableError(InternalError):
    """Cache transport failure (connection refused, timeout, protocol error)."""


def error_kind(exc: BaseException) -> ErrorKind:
    """Return the kind of ``exc``; anything outside the hierarchy is INTERNAL."""
    if isinstance(exc, ShortlinkError):
        return exc.kind
    return ErrorKind.INTERNAL
