"""In-process cache store.

Keeps entries in a dict with the same expiry rules as FileStore, which makes
it a natural first tier in front of a file-backed store.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from tiercache.consts import FAR_FUTURE
from tiercache.storage.cache.base import Store, remaining_ttl, to_int

logger = logging.getLogger(__name__)


class MemoryStore(Store):
    """Dict-backed store with TTL support. Thread-safe within one process."""

    def __init__(self, prefix: str = "", clock: Callable[[], float] = time.time):
        self.prefix = prefix or ""
        self._clock = clock
        self._entries: dict[str, tuple[Any, int]] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._entries)

    def set_prefix(self, prefix: str) -> "MemoryStore":
        self.prefix = prefix or ""
        return self

    def _expiration(self, ttl: int) -> int:
        if ttl == 0:
            return FAR_FUTURE
        return max(min(int(self._clock()) + int(ttl), FAR_FUTURE), 0)

    def _live(self, name: str) -> tuple[Any, int] | None:
        """Return the live entry for a prefixed name, evicting it if expired."""
        entry = self._entries.get(name)
        if entry is None:
            return None
        if self._clock() >= entry[1]:
            logger.debug(f"Memory cache expired for key={name}")
            del self._entries[name]
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._live(self.prefix + key)
        if entry is None or entry[0] is None:
            return default
        return entry[0]

    def get_entry(self, key: str) -> tuple[Any, int] | None:
        with self._lock:
            entry = self._live(self.prefix + key)
        if entry is None or entry[0] is None:
            return None
        return entry[0], remaining_ttl(entry[1], self._clock())

    def put(self, key: str, value: Any, ttl: int = 0) -> bool:
        with self._lock:
            self._entries[self.prefix + key] = (value, self._expiration(ttl))
        return True

    def if_put(self, key: str, value: Any, ttl: int = 0) -> bool:
        with self._lock:
            entry = self._live(self.prefix + key)
            if entry is not None and entry[0] is not None:
                return False
            return self.put(key, value, ttl)

    def increment(self, key: str, delta: int = 1) -> int:
        name = self.prefix + key
        with self._lock:
            entry = self._live(name)
            current, expiry = (0, FAR_FUTURE) if entry is None else (to_int(entry[0]), entry[1])
            new_value = current + delta
            self._entries[name] = (new_value, expiry)
        return new_value

    def delete(self, key: str) -> bool:
        with self._lock:
            self._entries.pop(self.prefix + key, None)
        return True

    def flush(self) -> bool:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Flushed {count} entries from memory cache")
        return True
