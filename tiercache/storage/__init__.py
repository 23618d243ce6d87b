"""Storage backends for cached data.

This module provides:
- Store: Abstract base class for cache stores
- FileStore: File-based store with TTL support and per-file locking
- MemoryStore: In-process dict-backed store
- MultipleCache: Ordered chain of stores with fallback reads
- PathMapper / PayloadCodec: Entry path derivation and on-disk encoding
"""

from tiercache.storage.cache.base import Store
from tiercache.storage.cache.file_store import FileStore
from tiercache.storage.cache.memory_store import MemoryStore
from tiercache.storage.cache.multiple import MultipleCache
from tiercache.storage.cache.path_mapper import PathMapper
from tiercache.storage.cache.payload import JsonSerializer, PayloadCodec, PickleSerializer

__all__ = [
    "FileStore",
    "JsonSerializer",
    "MemoryStore",
    "MultipleCache",
    "PathMapper",
    "PayloadCodec",
    "PickleSerializer",
    "Store",
]
