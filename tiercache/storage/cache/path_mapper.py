"""Key-to-path derivation for the file-backed store."""

import hashlib
from pathlib import Path

from tiercache.consts import PATH_SHARD_DEPTH, PATH_SHARD_WIDTH


class PathMapper:
    """Maps (prefix, key) pairs to sharded file paths under a root.

    The key is hashed with SHA-1 so arbitrary key characters never reach
    the filesystem. The leading hex characters of the digest become nested
    directories to bound the number of entries per directory.

    Directory structure (default fan-out):
        {root}/
        └── {hex[0:2]}/
            └── {hex[2:4]}/
                └── {hex}
    """

    def __init__(
        self,
        root: Path | str,
        shard_width: int = PATH_SHARD_WIDTH,
        shard_depth: int = PATH_SHARD_DEPTH,
    ):
        if shard_width < 1 or shard_depth < 0 or shard_width * shard_depth > 40:
            msg = f"Invalid sharding: width={shard_width}, depth={shard_depth}"
            raise ValueError(msg)
        self.root = Path(root)
        self.shard_width = shard_width
        self.shard_depth = shard_depth

    @staticmethod
    def digest(prefix: str, key: str) -> str:
        """Return the 40-character hex digest for a prefixed key."""
        return hashlib.sha1(f"{prefix}{key}".encode()).hexdigest()

    def derive(self, prefix: str, key: str) -> Path:
        """Return the entry path for a key under the given prefix."""
        digest = self.digest(prefix, key)
        w = self.shard_width
        parts = [digest[i * w : (i + 1) * w] for i in range(self.shard_depth)]
        return self.root.joinpath(*parts, digest)
