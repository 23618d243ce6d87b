"""Filesystem helpers consumed by the file-backed store.

These are kept as plain functions so a store can be handed substitutes
(for tests, or for a different filesystem layer).
"""

import logging
import shutil
from pathlib import Path

from tiercache.exceptions import DirectoryCreateError

logger = logging.getLogger(__name__)


def directory_exists(path: Path | str) -> bool:
    """Return True if path is an existing directory."""
    return Path(path).is_dir()


def ensure_dir(path: Path | str) -> bool:
    """Create a directory and any missing parents.

    Returns:
        True once the directory exists.

    Raises:
        DirectoryCreateError: If the directory could not be created.
    """
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryCreateError(
            f"Failed to create cache directory: {e}", context={"path": str(path)}
        ) from e
    return True


def clean_dir(path: Path | str) -> bool:
    """Remove everything below a directory, keeping the directory itself.

    Returns:
        True if every child was removed, False if any removal failed.
    """
    path = Path(path)
    ok = True
    for child in path.iterdir():
        try:
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning(f"Failed to remove {child}: {e}")
            ok = False
    return ok


def remove_file(path: Path | str) -> bool:
    """Remove a single file. A file that is already gone counts as removed."""
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to remove {path}: {e}")
        return False
    return True
