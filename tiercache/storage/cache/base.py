"""Abstract base class for cache stores.

Every store (file-backed, in-memory, or a chain of stores) implements the
same contract, so stores can be composed freely. Entries carry an absolute
expiry and are treated as absent once it has passed.
"""

import math
from abc import ABC, abstractmethod
from typing import Any

from tiercache.consts import FAR_FUTURE


class Store(ABC):
    """Abstract base class for cache store implementations.

    A TTL of 0 means the entry never expires. A stored value of None is
    indistinguishable from a missing entry.
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Get a value from the store.

        Args:
            key: Cache key.
            default: Returned when the key is missing, expired or unreadable.

        Returns:
            Cached value if found and not expired, default otherwise.
        """
        ...

    @abstractmethod
    def get_entry(self, key: str) -> tuple[Any, int] | None:
        """Get a live value together with its remaining lifetime.

        Returns:
            Tuple of (value, remaining TTL in seconds), where a TTL of 0 means
            the entry never expires, or None on a miss.
        """
        ...

    @abstractmethod
    def put(self, key: str, value: Any, ttl: int = 0) -> bool:
        """Store a value, replacing any previous entry for the key.

        Args:
            key: Cache key.
            value: Value to cache.
            ttl: Time-to-live in seconds. 0 means no expiration.

        Returns:
            True if the entry was written, False otherwise.
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete an entry. Deleting a missing key succeeds."""
        ...

    @abstractmethod
    def if_put(self, key: str, value: Any, ttl: int = 0) -> bool:
        """Store a value only if no live entry exists for the key.

        Returns:
            True if the value was written, False if the key was already present
            or the write failed.
        """
        ...

    @abstractmethod
    def increment(self, key: str, delta: int = 1) -> int:
        """Add delta to the integer value of an entry.

        Missing or non-numeric values count as 0. The entry keeps its
        remaining lifetime.

        Returns:
            The new value.
        """
        ...

    @abstractmethod
    def flush(self) -> bool:
        """Remove every entry from the store."""
        ...

    @abstractmethod
    def set_prefix(self, prefix: str) -> "Store":
        """Set the key prefix used by all subsequent operations."""
        ...

    def exists(self, key: str) -> bool:
        """Check if a key has a live (non-expired) entry."""
        return self.get(key) is not None

    def decrement(self, key: str, delta: int = 1) -> int:
        """Subtract delta from the integer value of an entry."""
        return self.increment(key, -delta)


def remaining_ttl(expiry: int, now: float) -> int:
    """Convert an absolute expiry to a TTL that reproduces it from now.

    Returns 0 for entries that never expire, and at least 1 for live entries.
    """
    if expiry >= FAR_FUTURE:
        return 0
    return max(math.ceil(expiry - now), 1)


def to_int(value: Any) -> int:
    """Coerce a cached value to an integer, treating anything unusable as 0."""
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
