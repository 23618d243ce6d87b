"""tiercache - file-backed key-value cache with TTL expiry and store chaining."""

from tiercache.exceptions import (
    CacheError,
    ConfigurationError,
    CorruptPayloadError,
    DeserializationError,
    DirectoryCreateError,
)
from tiercache.storage import FileStore, MemoryStore, MultipleCache, Store

__version__ = "0.1.0"

__all__ = [
    "CacheError",
    "ConfigurationError",
    "CorruptPayloadError",
    "DeserializationError",
    "DirectoryCreateError",
    "FileStore",
    "MemoryStore",
    "MultipleCache",
    "Store",
]
