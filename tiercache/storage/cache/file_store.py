"""File-backed cache store.

Each entry lives in its own file, named by the SHA-1 digest of the prefixed
key and sharded into two directory levels. The file holds the absolute
expiry followed by the serialized value. Expired entries are removed lazily
when they are read.

Locking uses POSIX advisory locks (fcntl.flock) on the entry file itself:
shared for reads, exclusive for writes. Compound operations (increment,
if_put) hold one exclusive lock across both their read and their write.

The default codec pickles values, and unpickling runs code chosen by whoever
wrote the file. Only point a pickle-backed store at a root that untrusted
users cannot write to; otherwise pass a PayloadCodec(JsonSerializer()).
"""

import contextlib
import fcntl
import logging
import os
import time
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import IO, Any

from pydantic import ValidationError

from tiercache.consts import (
    FAR_FUTURE,
    LOCK_RETRIES,
    LOCK_RETRY_DELAY,
    PATH_SHARD_DEPTH,
    PATH_SHARD_WIDTH,
)
from tiercache.exceptions import ConfigurationError, CorruptPayloadError
from tiercache.models.model_config import StoreConfig
from tiercache.storage import filesystem
from tiercache.storage.cache.base import Store, remaining_ttl, to_int
from tiercache.storage.cache.path_mapper import PathMapper
from tiercache.storage.cache.payload import PayloadCodec

logger = logging.getLogger(__name__)


def _acquire(fd: int, operation: int) -> None:
    """Take a flock without blocking indefinitely.

    Raises:
        BlockingIOError: If the lock is still held after LOCK_RETRIES attempts.
    """
    for _ in range(LOCK_RETRIES - 1):
        try:
            fcntl.flock(fd, operation | fcntl.LOCK_NB)
            return
        except BlockingIOError:
            time.sleep(LOCK_RETRY_DELAY)
    fcntl.flock(fd, operation | fcntl.LOCK_NB)


@contextlib.contextmanager
def _open_locked(path: Path, exclusive: bool = False) -> Iterator[IO[bytes]]:
    """Open an entry file and hold a flock on it for the duration of the block.

    Shared opens are read-only and require the file to exist. Exclusive opens
    create the file if needed but never truncate before the lock is held. If
    the file was unlinked or replaced while waiting for the lock, the open is
    retried so the caller never writes to an orphaned inode.
    """
    operation = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
    flags = os.O_RDWR | os.O_CREAT if exclusive else os.O_RDONLY

    for _ in range(LOCK_RETRIES):
        fd = os.open(path, flags, 0o644)
        f = os.fdopen(fd, "r+b" if exclusive else "rb")
        try:
            _acquire(f.fileno(), operation)
            try:
                if exclusive and not _is_current(f, path):
                    continue
                yield f
                return
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        finally:
            f.close()

    raise BlockingIOError(f"Entry file kept changing while locking: {path}")


def _is_current(f: IO[bytes], path: Path) -> bool:
    """Check that an open file is still the one linked at path."""
    try:
        return os.path.samestat(os.fstat(f.fileno()), os.stat(path))
    except FileNotFoundError:
        return False


class FileStore(Store):
    """File-based store with TTL support and per-file locking.

    Directory structure:
        {path}/
        └── {sha1[0:2]}/
            └── {sha1[2:4]}/
                └── {sha1}       # expiry header + serialized value
    """

    def __init__(
        self,
        path: Path | str,
        prefix: str = "",
        codec: PayloadCodec | None = None,
        clock: Callable[[], float] = time.time,
        fs: Any = filesystem,
        shard_width: int = PATH_SHARD_WIDTH,
        shard_depth: int = PATH_SHARD_DEPTH,
    ):
        """Initialize FileStore.

        Args:
            path: Root directory for cache entries.
            prefix: Prepended to every key before hashing.
            codec: Payload codec. Defaults to a pickle-backed PayloadCodec.
            clock: Returns the current Unix time in seconds.
            fs: Provider of ensure_dir, clean_dir, remove_file and
                directory_exists.
            shard_width: Hex characters per directory level.
            shard_depth: Directory levels below the root.

        Raises:
            ConfigurationError: If path is missing or not a string/Path.
            ValueError: If the sharding does not fit in the digest.
        """
        if not isinstance(path, str | Path) or not str(path).strip():
            raise ConfigurationError(
                "Storage path undefined or formatted incorrectly", context={"path": path}
            )

        self.path = Path(path)
        self.prefix = prefix or ""
        self.codec = codec or PayloadCodec()
        self.fs = fs
        self._clock = clock
        self._mapper = PathMapper(self.path, shard_width, shard_depth)

    @classmethod
    def from_config(
        cls, config: StoreConfig | dict[str, Any] | None, **kwargs: Any
    ) -> "FileStore":
        """Build a FileStore from a StoreConfig or a plain mapping.

        Raises:
            ConfigurationError: If the configuration is missing or invalid.
        """
        if config is None:
            raise ConfigurationError("Store configuration is missing")
        if not isinstance(config, StoreConfig):
            try:
                config = StoreConfig.model_validate(config)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid store configuration: {e}") from e

        kwargs.setdefault("codec", PayloadCodec(fixed_width=config.fixed_width_header))
        kwargs.setdefault("shard_width", config.shard_width)
        kwargs.setdefault("shard_depth", config.shard_depth)
        return cls(config.path, prefix=config.prefix, **kwargs)

    def path_for(self, key: str) -> Path:
        """Get the file path for a key under the current prefix."""
        return self._mapper.derive(self.prefix, key)

    def set_prefix(self, prefix: str) -> "FileStore":
        """Set the key prefix. Entries written under the old prefix are not moved."""
        self.prefix = prefix or ""
        return self

    def _expiration(self, ttl: int) -> int:
        """Convert a TTL in seconds to an absolute expiry."""
        if ttl == 0:
            return FAR_FUTURE
        return max(min(int(self._clock()) + int(ttl), FAR_FUTURE), 0)

    def _is_expired(self, expiry: int) -> bool:
        return self._clock() >= expiry

    def _decode(self, data: bytes, path: Path) -> tuple[Any, int] | None:
        """Decode raw entry bytes, treating empty or corrupt data as absent."""
        if not data:
            return None
        try:
            return self.codec.decode(data)
        except CorruptPayloadError as e:
            logger.warning(f"Ignoring corrupt cache entry {path}: {e}")
            return None

    def _read(self, key: str) -> tuple[Any, int] | None:
        """Read a live entry as (value, expiry), evicting it if expired."""
        path = self.path_for(key)
        try:
            with _open_locked(path) as f:
                data = f.read()
        except FileNotFoundError:
            logger.debug(f"Cache miss for key={key}")
            return None
        except OSError as e:
            logger.debug(f"Failed to read cache entry for key={key}: {e}")
            return None

        entry = self._decode(data, path)
        if entry is None:
            return None

        if self._is_expired(entry[1]):
            logger.debug(f"Cache expired for key={key}")
            self._evict(path)
            return None
        return entry

    def _evict(self, path: Path) -> None:
        """Remove an entry file if it is still expired under an exclusive lock."""
        if not path.exists():
            return
        try:
            with _open_locked(path, exclusive=True) as f:
                entry = self._decode(f.read(), path)
                if entry is None or self._is_expired(entry[1]):
                    self.fs.remove_file(path)
        except OSError as e:
            logger.debug(f"Failed to evict expired entry {path}: {e}")

    def _write(self, f: IO[bytes], payload: bytes) -> bool:
        """Replace the content of a locked entry file."""
        f.seek(0)
        f.truncate()
        written = f.write(payload)
        f.flush()
        return written > 0

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value from the cache.

        Args:
            key: Cache key.
            default: Returned on a miss.

        Returns:
            Cached value if found and not expired, default otherwise.
        """
        entry = self._read(key)
        if entry is None or entry[0] is None:
            return default
        logger.debug(f"Cache hit for key={key}")
        return entry[0]

    def get_entry(self, key: str) -> tuple[Any, int] | None:
        """Get a live value with its remaining TTL (0 for entries that never expire)."""
        entry = self._read(key)
        if entry is None or entry[0] is None:
            return None
        return entry[0], remaining_ttl(entry[1], self._clock())

    def put(self, key: str, value: Any, ttl: int = 0) -> bool:
        """Store a value in the cache.

        Args:
            key: Cache key.
            value: Value to cache (must be serializable by the codec).
            ttl: Time-to-live in seconds. 0 means no expiration.

        Returns:
            True if a non-empty entry was written, False on I/O failure.

        Raises:
            DirectoryCreateError: If the entry directory cannot be created.
        """
        path = self.path_for(key)
        if not self.fs.ensure_dir(path.parent):
            return False

        expiry = self._expiration(ttl)
        payload = self.codec.encode(value, expiry)
        try:
            with _open_locked(path, exclusive=True) as f:
                ok = self._write(f, payload)
        except OSError as e:
            logger.warning(f"Failed to write cache entry for key={key}: {e}")
            return False

        logger.debug(f"Cached key={key} (expiry={expiry})")
        return ok

    def if_put(self, key: str, value: Any, ttl: int = 0) -> bool:
        """Store a value only if the key has no live entry.

        The existence check and the write happen under one exclusive lock.

        Returns:
            True if the value was written.
        """
        path = self.path_for(key)
        if not self.fs.ensure_dir(path.parent):
            return False

        payload = self.codec.encode(value, self._expiration(ttl))
        try:
            with _open_locked(path, exclusive=True) as f:
                entry = self._decode(f.read(), path)
                if entry is not None and entry[0] is not None and not self._is_expired(entry[1]):
                    return False
                ok = self._write(f, payload)
        except OSError as e:
            logger.warning(f"Failed to write cache entry for key={key}: {e}")
            return False

        logger.debug(f"Cached key={key} (if absent)")
        return ok

    def increment(self, key: str, delta: int = 1) -> int:
        """Add delta to the integer value of an entry.

        Missing, expired or non-numeric values count as 0. The original
        expiry is kept; a new entry never expires.

        Returns:
            The new value. If the write fails the computed value is still
            returned and a warning is logged.
        """
        path = self.path_for(key)
        self.fs.ensure_dir(path.parent)

        new_value = delta
        try:
            with _open_locked(path, exclusive=True) as f:
                entry = self._decode(f.read(), path)
                if entry is None or self._is_expired(entry[1]):
                    current, expiry = 0, FAR_FUTURE
                else:
                    current, expiry = to_int(entry[0]), entry[1]
                new_value = current + delta
                self._write(f, self.codec.encode(new_value, expiry))
        except OSError as e:
            logger.warning(f"Failed to update counter for key={key}: {e}")

        return new_value

    def delete(self, key: str) -> bool:
        """Delete an entry. Deleting a missing key succeeds."""
        path = self.path_for(key)
        removed = self.fs.remove_file(path)
        if removed:
            logger.debug(f"Deleted cache key={key}")
        return removed

    def flush(self) -> bool:
        """Remove every entry below the root, keeping the root directory.

        Returns:
            False if the root directory does not exist or a removal failed.
        """
        if not self.fs.directory_exists(self.path):
            return False
        ok = self.fs.clean_dir(self.path)
        logger.info(f"Flushed cache at {self.path}")
        return ok
