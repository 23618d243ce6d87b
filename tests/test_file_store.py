"""Tests for the file-backed cache store."""

import threading
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from tiercache.consts import FAR_FUTURE
from tiercache.exceptions import ConfigurationError, DirectoryCreateError
from tiercache.models.model_config import StoreConfig
from tiercache.storage import filesystem
from tiercache.storage.cache.file_store import FileStore
from tiercache.storage.cache.payload import JsonSerializer, PayloadCodec


def _expiry_on_disk(store: FileStore, key: str) -> int:
    return store.codec.decode_expiry(store.path_for(key).read_bytes())[0]


class TestFileStore:
    """Tests for FileStore class."""

    def test_put_and_get(self, file_store: FileStore) -> None:
        """Test basic put and get operations."""
        assert file_store.put("key1", "value1")
        assert file_store.get("key1") == "value1"

    def test_get_nonexistent(self, file_store: FileStore) -> None:
        assert file_store.get("nonexistent") is None

    def test_get_default(self, file_store: FileStore) -> None:
        assert file_store.get("nonexistent", "fallback") == "fallback"

    def test_put_complex_value(self, file_store: FileStore) -> None:
        """Test putting arbitrary Python values."""
        value = {
            "string": "test",
            "number": 42,
            "list": [1, 2, 3],
            "tuple": (1, "a"),
            "set": {1, 2},
            "nested": {"key": b"bytes"},
        }
        file_store.put("complex", value)
        assert file_store.get("complex") == value

    def test_stored_none_is_a_miss(self, file_store: FileStore) -> None:
        file_store.put("none", None)
        assert file_store.get("none", "default") == "default"
        assert not file_store.exists("none")

    def test_falsy_values_are_hits(self, file_store: FileStore) -> None:
        for key, value in [("zero", 0), ("empty", ""), ("false", False)]:
            file_store.put(key, value)
            assert file_store.get(key, "default") == value
            assert file_store.exists(key)

    def test_overwrite_existing(self, file_store: FileStore) -> None:
        file_store.put("key1", "a much longer first value")
        file_store.put("key1", "short")
        assert file_store.get("key1") == "short"

    def test_directory_structure(self, file_store: FileStore, temp_dir: Path) -> None:
        """Test that entries are sharded into two directory levels."""
        file_store.put("key1", "value1")

        path = file_store.path_for("key1")
        assert path.exists()
        digest = path.name
        assert len(digest) == 40
        assert path.parent.name == digest[2:4]
        assert path.parent.parent.name == digest[:2]
        assert path.parent.parent.parent == temp_dir

    def test_special_characters_in_key(self, file_store: FileStore) -> None:
        special_keys = [
            "key/with/slashes",
            "key:with:colons",
            "key with spaces",
            "key@with#symbols",
            "ключ",
        ]
        for key in special_keys:
            file_store.put(key, f"value_for_{key}")
            assert file_store.get(key) == f"value_for_{key}"


class TestExpiry:
    """Tests for TTL handling and lazy eviction."""

    def test_ttl_expiration(self, file_store: FileStore, clock) -> None:
        file_store.put("key1", "value1", 10)
        assert file_store.get("key1") == "value1"

        clock.advance(9)
        assert file_store.get("key1") == "value1"

        clock.advance(1)
        assert file_store.get("key1") is None

    def test_get_removes_expired_file(self, file_store: FileStore, clock) -> None:
        file_store.put("key1", "value1", 1)
        path = file_store.path_for("key1")
        assert path.exists()

        clock.advance(2)
        assert file_store.get("key1", "default") == "default"
        assert not path.exists()

    def test_exists_removes_expired_file(self, file_store: FileStore, clock) -> None:
        file_store.put("key1", "value1", 1)
        path = file_store.path_for("key1")

        clock.advance(2)
        assert not file_store.exists("key1")
        assert not path.exists()

    def test_no_ttl(self, file_store: FileStore, clock) -> None:
        """Test that ttl=0 stores the far-future marker."""
        file_store.put("key1", "value1", 0)
        assert _expiry_on_disk(file_store, "key1") == FAR_FUTURE

        clock.advance(10 * 365 * 24 * 3600)
        assert file_store.get("key1") == "value1"

    def test_far_future_is_still_compared(self, file_store: FileStore, clock) -> None:
        """Test that the no-expiry marker is a timestamp, not infinity."""
        file_store.put("key1", "value1")
        clock.now = FAR_FUTURE
        assert file_store.get("key1") is None

    def test_ttl_clamped_to_far_future(self, file_store: FileStore) -> None:
        file_store.put("key1", "value1", FAR_FUTURE)
        assert _expiry_on_disk(file_store, "key1") == FAR_FUTURE

    def test_absolute_expiry_on_disk(self, file_store: FileStore, clock) -> None:
        file_store.put("key1", "value1", 30)
        assert _expiry_on_disk(file_store, "key1") == int(clock.now) + 30

    def test_negative_ttl_is_already_expired(self, file_store: FileStore) -> None:
        assert file_store.put("key1", "value1", -5)
        assert file_store.get("key1") is None

    def test_ttl_per_entry(self, file_store: FileStore, clock) -> None:
        file_store.put("short", "value", 1)
        file_store.put("long", "value", 100)

        clock.advance(2)
        assert not file_store.exists("short")
        assert file_store.exists("long")

    def test_get_entry_remaining_ttl(self, file_store: FileStore, clock) -> None:
        file_store.put("key1", "value1", 30)
        assert file_store.get_entry("key1") == ("value1", 30)

        clock.advance(12.5)
        assert file_store.get_entry("key1") == ("value1", 18)

        clock.advance(17.5)
        assert file_store.get_entry("key1") is None

    def test_get_entry_no_expiry(self, file_store: FileStore) -> None:
        """Test that entries without expiry report a TTL of 0."""
        file_store.put("key1", "value1")
        assert file_store.get_entry("key1") == ("value1", 0)
        assert file_store.get_entry("missing") is None

    def test_prefixed_scenario(self, temp_dir: Path, clock) -> None:
        """Test expiry of a prefixed key down to the file on disk."""
        store = FileStore(temp_dir / "c", prefix="t:", clock=clock)
        store.put("x", 42, 2)
        assert store.get("x") == 42

        clock.advance(3)
        assert store.get("x") is None

        unprefixed = FileStore(temp_dir / "c", clock=clock)
        assert not unprefixed.path_for("t:x").exists()


class TestDelete:
    """Tests for delete and flush."""

    def test_delete(self, file_store: FileStore) -> None:
        file_store.put("key1", "value1")
        assert file_store.delete("key1")
        assert not file_store.exists("key1")
        assert not file_store.path_for("key1").exists()

    def test_delete_nonexistent(self, file_store: FileStore) -> None:
        """Test that deleting a missing key succeeds."""
        assert file_store.delete("nonexistent")

    def test_flush(self, file_store: FileStore, temp_dir: Path) -> None:
        file_store.put("key1", "value1")
        file_store.put("key2", "value2")

        assert file_store.flush()
        assert not file_store.exists("key1")
        assert not file_store.exists("key2")
        assert temp_dir.is_dir()
        assert list(temp_dir.iterdir()) == []

    def test_flush_missing_root(self, temp_dir: Path) -> None:
        store = FileStore(temp_dir / "missing")
        assert not store.flush()

    def test_flush_empty_root(self, file_store: FileStore) -> None:
        assert file_store.flush()


class TestIfPut:
    """Tests for if_put."""

    def test_if_put_absent(self, file_store: FileStore) -> None:
        assert file_store.if_put("key1", "v1")
        assert file_store.get("key1") == "v1"

    def test_if_put_present(self, file_store: FileStore) -> None:
        """Test that a second if_put is a no-op."""
        assert file_store.if_put("key1", "v1")
        assert not file_store.if_put("key1", "v2")
        assert file_store.get("key1") == "v1"

    def test_if_put_after_expiry(self, file_store: FileStore, clock) -> None:
        file_store.put("key1", "v1", 1)
        clock.advance(2)
        assert file_store.if_put("key1", "v2")
        assert file_store.get("key1") == "v2"

    def test_if_put_concurrent_single_winner(self, file_store: FileStore) -> None:
        """Test that racing threads produce exactly one writer."""
        results: list[bool] = []
        barrier = threading.Barrier(8)

        def worker(n: int) -> None:
            barrier.wait()
            results.append(file_store.if_put("race", n))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert file_store.get("race") in range(8)


class TestCounters:
    """Tests for increment and decrement."""

    def test_increment_nonexistent(self, file_store: FileStore) -> None:
        assert file_store.increment("counter", 5) == 5
        assert file_store.get("counter") == 5
        assert _expiry_on_disk(file_store, "counter") == FAR_FUTURE

    def test_increment_default_delta(self, file_store: FileStore) -> None:
        assert file_store.increment("counter") == 1
        assert file_store.increment("counter") == 2

    def test_increment_then_decrement(self, file_store: FileStore) -> None:
        file_store.put("counter", 10)
        file_store.increment("counter", 7)
        assert file_store.decrement("counter", 7) == 10
        assert _expiry_on_disk(file_store, "counter") == FAR_FUTURE

    def test_decrement_below_zero(self, file_store: FileStore) -> None:
        assert file_store.decrement("counter", 3) == -3

    def test_increment_keeps_remaining_ttl(self, file_store: FileStore, clock) -> None:
        file_store.put("counter", 1, 60)
        expiry = _expiry_on_disk(file_store, "counter")

        clock.advance(20)
        assert file_store.increment("counter") == 2
        assert _expiry_on_disk(file_store, "counter") == expiry

        clock.advance(40)
        assert file_store.get("counter") is None

    def test_increment_expired_starts_over(self, file_store: FileStore, clock) -> None:
        file_store.put("counter", 100, 5)
        clock.advance(10)
        assert file_store.increment("counter") == 1
        assert _expiry_on_disk(file_store, "counter") == FAR_FUTURE

    def test_increment_numeric_string(self, file_store: FileStore) -> None:
        file_store.put("counter", "41")
        assert file_store.increment("counter") == 42

    def test_increment_non_numeric(self, file_store: FileStore) -> None:
        file_store.put("counter", "abc")
        assert file_store.increment("counter", 3) == 3

    def test_increment_concurrent(self, file_store: FileStore) -> None:
        """Test that concurrent increments are not lost."""

        def worker() -> None:
            for _ in range(25):
                file_store.increment("counter")

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert file_store.get("counter") == 100


class TestPrefix:
    """Tests for key prefixing."""

    def test_set_prefix_changes_path(self, file_store: FileStore) -> None:
        before = file_store.path_for("key1")
        assert file_store.set_prefix("app:") is file_store
        assert file_store.path_for("key1") != before

    def test_old_prefix_entries_unreachable(self, file_store: FileStore) -> None:
        file_store.set_prefix("a:")
        file_store.put("key1", "under a")

        file_store.set_prefix("b:")
        assert file_store.get("key1") is None

        file_store.set_prefix("a:")
        assert file_store.get("key1") == "under a"

    def test_constructor_prefix(self, temp_dir: Path) -> None:
        store = FileStore(temp_dir, prefix="p:")
        store.put("key1", "value1")
        assert FileStore(temp_dir).get("p:key1") == "value1"


class TestFailures:
    """Tests for read and write failure handling."""

    def test_corrupt_entry_is_a_miss(self, file_store: FileStore) -> None:
        path = file_store.path_for("corrupt")
        path.parent.mkdir(parents=True)
        path.write_bytes(b"not a payload")

        assert file_store.get("corrupt", "default") == "default"
        assert not file_store.exists("corrupt")

    def test_undeserializable_body_is_a_miss(self, file_store: FileStore) -> None:
        path = file_store.path_for("corrupt")
        path.parent.mkdir(parents=True)
        path.write_bytes(b"9999999999:garbage")

        assert file_store.get("corrupt") is None

    def test_empty_file_is_a_miss(self, file_store: FileStore) -> None:
        path = file_store.path_for("empty")
        path.parent.mkdir(parents=True)
        path.touch()

        assert file_store.get("empty") is None
        assert file_store.if_put("empty", "filled")
        assert file_store.get("empty") == "filled"

    def test_directory_create_failure_raises(self, temp_dir: Path) -> None:
        """Test that directory creation errors propagate from put."""
        blocker = temp_dir / "blocker"
        blocker.write_text("a file where the root should be")
        store = FileStore(blocker)

        with pytest.raises(DirectoryCreateError):
            store.put("key1", "value1")

    def test_ensure_dir_false_returns_false(self, temp_dir: Path) -> None:
        fs = SimpleNamespace(
            ensure_dir=lambda path: False,
            clean_dir=filesystem.clean_dir,
            remove_file=filesystem.remove_file,
            directory_exists=filesystem.directory_exists,
        )
        store = FileStore(temp_dir, fs=fs)
        assert not store.put("key1", "value1")

    def test_write_failure_returns_false(self, file_store: FileStore) -> None:
        with patch("tiercache.storage.cache.file_store.os.open", side_effect=PermissionError):
            assert not file_store.put("key1", "value1")

    def test_read_failure_is_a_miss(self, file_store: FileStore) -> None:
        file_store.put("key1", "value1")
        with patch("tiercache.storage.cache.file_store.os.open", side_effect=PermissionError):
            assert file_store.get("key1", "default") == "default"

    def test_unserializable_value_raises(self, file_store: FileStore) -> None:
        store = FileStore(file_store.path, codec=PayloadCodec(JsonSerializer()))
        circular: list = []
        circular.append(circular)
        with pytest.raises(ValueError):
            store.put("key1", circular)
        assert not store.path_for("key1").exists()

        with pytest.raises(ValueError):
            store.if_put("key1", circular)
        assert not store.path_for("key1").exists()
        assert store.if_put("key1", "value1")

    def test_unserializable_value_keeps_previous_entry(self, file_store: FileStore) -> None:
        """Test that a failed overwrite leaves the stored value intact."""
        store = FileStore(file_store.path, codec=PayloadCodec(JsonSerializer()))
        store.put("key1", "value1")
        circular: list = []
        circular.append(circular)
        with pytest.raises(ValueError):
            store.put("key1", circular)
        assert store.get("key1") == "value1"


class TestConstruction:
    """Tests for store construction and configuration."""

    @pytest.mark.parametrize("path", ["", "   ", None, 123])
    def test_invalid_path(self, path: object) -> None:
        with pytest.raises(ConfigurationError):
            FileStore(path)  # type: ignore[arg-type]

    def test_from_config(self, temp_dir: Path) -> None:
        store = FileStore.from_config(StoreConfig(path=str(temp_dir), prefix="cfg:"))
        assert store.path == temp_dir
        assert store.prefix == "cfg:"
        assert not store.codec.fixed_width

    def test_from_dict(self, temp_dir: Path) -> None:
        store = FileStore.from_config({"path": str(temp_dir), "fixed_width_header": True})
        assert store.prefix == ""
        assert store.codec.fixed_width

    @pytest.mark.parametrize("config", [None, {}, {"path": ""}, {"path": 5}, {"prefix": "p"}])
    def test_from_config_invalid(self, config: object) -> None:
        with pytest.raises(ConfigurationError):
            FileStore.from_config(config)  # type: ignore[arg-type]

    def test_custom_sharding(self, temp_dir: Path) -> None:
        store = FileStore(temp_dir, shard_width=3, shard_depth=1)
        digest = store._mapper.digest("", "key1")
        assert store.path_for("key1") == temp_dir / digest[:3] / digest

        assert store.put("key1", "value1")
        assert store.get("key1") == "value1"

    def test_invalid_sharding(self, temp_dir: Path) -> None:
        with pytest.raises(ValueError):
            FileStore(temp_dir, shard_width=21, shard_depth=2)

    def test_sharding_from_config(self, temp_dir: Path) -> None:
        store = FileStore.from_config({"path": str(temp_dir), "shard_width": 1, "shard_depth": 3})
        digest = store._mapper.digest("", "key1")
        assert store.path_for("key1") == temp_dir / digest[0] / digest[1] / digest[2] / digest

    def test_sharding_from_config_invalid(self, temp_dir: Path) -> None:
        with pytest.raises(ConfigurationError):
            FileStore.from_config({"path": str(temp_dir), "shard_width": 21, "shard_depth": 2})

    def test_fixed_width_store_layout(self, temp_dir: Path, clock) -> None:
        """Test that a fixed-width store writes a bare 10-digit header."""
        store = FileStore.from_config({"path": str(temp_dir), "fixed_width_header": True}, clock=clock)
        store.put("key1", "value1", 60)

        data = store.path_for("key1").read_bytes()
        assert data[:10] == str(int(clock.now) + 60).encode()
        assert store.get("key1") == "value1"
