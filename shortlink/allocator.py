"""Random alias allocation against a store's uniqueness constraint.

Flow Diagram: AliasAllocator.allocate()
========================================
::
    ┌──────────────┐
    │ validate      │──── bad args ───▶ InvalidInputError
    │ target/length │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ attempt N of  │◀─────────────┐
    │ max_attempts  │              │
    └──────┬───────┘              │
           ▼                      │
    ┌──────────────┐              │
    │ draw random   │              │
    │ candidate     │              │
    └──────┬───────┘              │
           ▼                      │
    ┌──────────────┐  ALREADY_    │
    │ save(target,  │──EXISTS──────┘
    │ candidate)    │
    └──────┬───────┘
     OK    │  other error ───▶ re-raised unchanged
           ▼
      return candidate

    budget spent ───▶ MaxRetriesExceededError

Key Behaviours
===============
- Candidates are drawn with ``nanoid.non_secure_generate``: the goal is
  collision resistance, not unpredictability, so a fast PRNG is enough.
- Uniqueness is never pre-checked; each insert attempt is its own atomic
  check, so concurrent allocators need no shared lock.
- The random source is injectable, which makes the attempt budget testable
  with a degenerate generator.

Collision probability per attempt is roughly ``taken / len(ALPHABET) ** length``.
"""

import logging
from collections.abc import Awaitable, Callable

from nanoid import non_secure_generate
from prometheus_client import Counter

from shortlink.enums import ErrorKind
from shortlink.errors import InvalidInputError, MaxRetriesExceededError, ShortlinkError

__all__ = ["ALPHABET", "AliasAllocator", "RandomSource", "Saver"]

ALPHABET = "DdNOegJKLMfPQabvRSTEFwc56hijZqrsUnV789WXYAC2tklGHImoBp10uxyz34"

RandomSource = Callable[[str, int], str]  # (alphabet, length) -> candidate
Saver = Callable[[str, str], Awaitable[None]]  # (target, alias) -> None

ALIAS_ALLOCATION_ATTEMPTS_TOTAL = Counter(
    "shortlink_alias_allocation_attempts_total",
    "Insert attempts made by the random alias allocator",
)
ALIAS_COLLISIONS_TOTAL = Counter(
    "shortlink_alias_collisions_total",
    "Allocator candidates rejected by the store's unique constraint",
)
ALIAS_ALLOCATION_EXHAUSTED_TOTAL = Counter(
    "shortlink_alias_allocation_exhausted_total",
    "Allocations that spent their whole attempt budget",
)

logger = logging.getLogger("shortlink.allocator")


class AliasAllocator:
    """Draws random aliases and retries on unique-constraint collisions.

    Example:
        >>> allocator = AliasAllocator()
        >>> alias = await allocator.allocate(store.save, "https://example.com", 6, 10)
    """

    def __init__(self, random_source: RandomSource | None = None, alphabet: str = ALPHABET) -> None:
        if not alphabet:
            raise ValueError("alphabet must not be empty")
        self._random_source = random_source or non_secure_generate
        self._alphabet = alphabet

    def generate_candidate(self, length: int) -> str:
        """Draw one candidate alias of exactly ``length`` characters."""
        if length <= 0:
            raise InvalidInputError(f"alias length must be positive, got {length}")
        return self._random_source(self._alphabet, length)

    async def allocate(self, save: Saver, target: str, length: int, max_attempts: int) -> str:
        """Insert ``target`` under a fresh random alias and return that alias.

        Args:
            save: Atomic "insert if alias absent" operation of the store. Must
                raise an ALREADY_EXISTS error on a unique violation.
            target: URL the alias will point to.
            length: Exact length of the alias.
            max_attempts: Upper bound on insert attempts.

        Returns:
            str: The alias that was inserted.

        Raises:
            InvalidInputError: Empty target, non-positive length or budget.
            MaxRetriesExceededError: Every attempt collided.
            ShortlinkError: Any other store failure, unchanged.
        """
        validate_allocation_args(target, length, max_attempts)

        for attempt in range(1, max_attempts + 1):
            candidate = self.generate_candidate(length)
            ALIAS_ALLOCATION_ATTEMPTS_TOTAL.inc()
            try:
                await save(target, candidate)
            except ShortlinkError as exc:
                if exc.kind is not ErrorKind.ALREADY_EXISTS:
                    raise
                ALIAS_COLLISIONS_TOTAL.inc()
                logger.debug(f"Alias collision on attempt {attempt}/{max_attempts}: {candidate}")
                continue
            return candidate

        ALIAS_ALLOCATION_EXHAUSTED_TOTAL.inc()
        raise MaxRetriesExceededError(attempts=max_attempts, length=length)


def validate_allocation_args(target: str, length: int, max_attempts: int) -> None:
    if not target:
        raise InvalidInputError("url must not be empty")
    if length <= 0:
        raise InvalidInputError(f"alias length must be positive, got {length}")
    if max_attempts <= 0:
        raise InvalidInputError(f"max attempts must be positive, got {max_attempts}")
