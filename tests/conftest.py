"""Pytest configuration and fixtures."""

import tempfile
from pathlib import Path

import pytest

from tiercache.storage.cache.file_store import FileStore
from tiercache.storage.cache.memory_store import MemoryStore

START_TIME = 1_700_000_000


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock starting at a fixed time."""
    return FakeClock()


@pytest.fixture
def file_store(temp_dir: Path, clock: FakeClock) -> FileStore:
    """Create a FileStore rooted in a temporary directory."""
    return FileStore(temp_dir, clock=clock)


@pytest.fixture
def memory_store(clock: FakeClock) -> MemoryStore:
    """Create a MemoryStore sharing the fake clock."""
    return MemoryStore(clock=clock)
