"""Chain of cache stores acting as a single store.

Reads fall through the chain in order and the first hit wins; writes,
deletes, prefix changes and flushes are broadcast to every store. There is
no transaction across stores: if one store fails, the others keep whatever
was applied to them.
"""

import logging
from collections.abc import Iterator
from typing import Any

from pydantic import ValidationError

from tiercache.exceptions import ConfigurationError
from tiercache.models.model_config import ChainConfig
from tiercache.storage.cache.base import Store
from tiercache.storage.cache.file_store import FileStore

logger = logging.getLogger(__name__)


class MultipleCache(Store):
    """Ordered chain of stores, fastest first.

    Stores need not share a type. The chain owns its members for prefix
    propagation and flushing.

    Increments are broadcast as deltas, so each store applies the delta to
    its own current value. Stores holding different values stay different.
    """

    def __init__(self, *stores: Store, backfill: bool = False):
        """Initialize MultipleCache.

        Args:
            stores: Initial stores, in lookup order. May be empty.
            backfill: On a hit in a later store, copy the value into every
                earlier store with the hit entry's remaining TTL.
        """
        self._stores: list[Store] = []
        self.backfill = backfill
        if stores:
            self.push(*stores)

    @classmethod
    def from_config(cls, config: ChainConfig | dict[str, Any], **kwargs: Any) -> "MultipleCache":
        """Build a chain of FileStores from a ChainConfig or a plain mapping.

        Extra keyword arguments are passed to every FileStore.

        Raises:
            ConfigurationError: If any store configuration is invalid.
        """
        if not isinstance(config, ChainConfig):
            try:
                config = ChainConfig.model_validate(config)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid chain configuration: {e}") from e
        stores = [FileStore.from_config(sc, **kwargs) for sc in config.stores]
        return cls(*stores, backfill=config.backfill)

    def push(self, store: Store, *stores: Store) -> "MultipleCache":
        """Append one or more stores to the end of the chain."""
        self._stores.extend((store, *stores))
        return self

    @property
    def stores(self) -> tuple[Store, ...]:
        return tuple(self._stores)

    def __len__(self) -> int:
        return len(self._stores)

    def __iter__(self) -> Iterator[Store]:
        return iter(self._stores)

    def get(self, key: str, default: Any = None) -> Any:
        entry = self.get_entry(key)
        return default if entry is None else entry[0]

    def get_entry(self, key: str) -> tuple[Any, int] | None:
        for index, store in enumerate(self._stores):
            entry = store.get_entry(key)
            if entry is not None:
                if self.backfill and index > 0:
                    self._backfill(key, entry, index)
                return entry
        return None

    def _backfill(self, key: str, entry: tuple[Any, int], index: int) -> None:
        value, ttl = entry
        logger.debug(f"Backfilling key={key} into {index} earlier store(s) (ttl={ttl})")
        for store in self._stores[:index]:
            store.put(key, value, ttl)

    def put_each(self, key: str, value: Any, ttl: int = 0) -> list[bool]:
        """Put to every store and return each store's result."""
        return [store.put(key, value, ttl) for store in self._stores]

    def put(self, key: str, value: Any, ttl: int = 0) -> bool:
        results = self.put_each(key, value, ttl)
        if not all(results):
            logger.warning(f"Put of key={key} failed in {results.count(False)} store(s)")
        return all(results)

    def delete_each(self, key: str) -> list[bool]:
        """Delete from every store and return each store's result."""
        return [store.delete(key) for store in self._stores]

    def delete(self, key: str) -> bool:
        return all(self.delete_each(key))

    def exists(self, key: str) -> bool:
        return any(store.exists(key) for store in self._stores)

    def if_put(self, key: str, value: Any, ttl: int = 0) -> bool:
        """Put to every store unless some store already holds the key.

        The check and the writes are separate steps, so concurrent callers
        can both see the key as missing and both write.
        """
        if self.exists(key):
            return False
        return self.put(key, value, ttl)

    def increment_each(self, key: str, delta: int = 1) -> list[int]:
        """Increment in every store and return each store's new value."""
        return [store.increment(key, delta) for store in self._stores]

    def increment(self, key: str, delta: int = 1) -> int:
        """Increment in every store.

        Returns:
            The first store's new value, or 0 for an empty chain.
        """
        values = self.increment_each(key, delta)
        return values[0] if values else 0

    def set_prefix(self, prefix: str) -> "MultipleCache":
        for store in self._stores:
            store.set_prefix(prefix)
        return self

    def flush_each(self) -> list[bool]:
        """Flush every store and return each store's result."""
        return [store.flush() for store in self._stores]

    def flush(self) -> bool:
        return all(self.flush_each())
