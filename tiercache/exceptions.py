"""
Exception hierarchy for tiercache.

All exceptions inherit from CacheError, which carries optional context
for structured logging. Read-path errors (corrupt payloads) are recovered
inside the stores; configuration and directory errors reach the caller.
"""

from typing import Any


class CacheError(Exception):
    """Base exception for all cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(CacheError):
    """Raised when a store is constructed with a missing or invalid path."""

    pass


class CorruptPayloadError(CacheError):
    """Raised when an on-disk entry has a missing or malformed expiry header."""

    pass


class DeserializationError(CorruptPayloadError):
    """Raised when the value segment of an entry cannot be deserialized."""

    pass


class DirectoryCreateError(CacheError):
    """Raised when a cache directory cannot be created.

    Context should include:
        - path: The directory that could not be created
    """

    pass
