from pathlib import Path

DEFAULT_DATA_DIR = (Path(__file__).parent.parent.resolve() / "data").absolute().resolve()
DEFAULT_CACHE_DIR = DEFAULT_DATA_DIR / "cache"

# Expiry header
FAR_FUTURE = 9999999999  # "No expiry" marker, still compared numerically on read
FIXED_HEADER_WIDTH = 10  # Digits in the fixed-width (legacy) header
HEADER_SEPARATOR = b":"  # Terminates the self-describing header

# Path sharding
PATH_SHARD_WIDTH = 2  # Hex characters per directory level
PATH_SHARD_DEPTH = 2  # Directory levels below the root

# File locking
LOCK_RETRIES = 50  # Attempts before a lock is considered unavailable
LOCK_RETRY_DELAY = 0.01  # Seconds between attempts

# CLI
ROOT_ENV_VAR = "TIERCACHE_ROOT"
