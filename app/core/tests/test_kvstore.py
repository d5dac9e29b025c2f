"""
Tests for the key-value store implementations.

These tests verify:
- put / get / delete semantics, including only_if_absent
- Compare-and-swap against expected values
- Prefix scans
- Per-key locking
- Redis command mapping (with a mocked client)
"""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from core.exceptions import LockAcquisitionError
from core.kvstore import InMemoryKeyValueStore, RedisKeyValueStore
from core.locks import DistributedLock
from core.protocols import KeyValueStore


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


class TestInMemoryKeyValueStore:
    """Test the process-local store."""

    def test_satisfies_protocol(self, store):
        assert isinstance(store, KeyValueStore)

    def test_put_get_delete(self, store):
        assert store.get("k") is None

        assert store.put("k", "v1") is True
        assert store.get("k") == "v1"

        assert store.delete("k") is True
        assert store.delete("k") is False
        assert store.get("k") is None

    def test_only_if_absent(self, store):
        assert store.put("k", "first", only_if_absent=True) is True
        assert store.put("k", "second", only_if_absent=True) is False
        assert store.get("k") == "first"

    def test_compare_and_swap(self, store):
        store.put("k", "v1")

        assert store.compare_and_swap("k", "stale", "v2") is False
        assert store.get("k") == "v1"

        assert store.compare_and_swap("k", "v1", "v2") is True
        assert store.get("k") == "v2"

    def test_compare_and_swap_from_absent(self, store):
        assert store.compare_and_swap("k", None, "v1") is True
        assert store.compare_and_swap("k", None, "v2") is False

    def test_ttl_expiry(self, store, mocker):
        clock = mocker.patch("core.kvstore.time").monotonic
        clock.return_value = 1000.0
        store.put("k", "v", ttl=10)

        clock.return_value = 1009.0
        assert store.get("k") == "v"

        clock.return_value = 1010.0
        assert store.get("k") is None
        assert list(store.scan("")) == []

    def test_scan_by_prefix(self, store):
        store.put("session:a", "1")
        store.put("session:b", "2")
        store.put("other:c", "3")

        assert sorted(store.scan("session:")) == ["session:a", "session:b"]

    def test_lock_excludes_other_threads(self, store):
        acquired = threading.Event()
        release = threading.Event()

        def holder():
            with store.lock("k"):
                acquired.set()
                release.wait(timeout=5)

        thread = threading.Thread(target=holder)
        thread.start()
        acquired.wait(timeout=5)
        try:
            with pytest.raises(LockAcquisitionError):
                with store.lock("k", timeout=0.05):
                    pass
            with store.lock("other", timeout=0.05):
                pass
        finally:
            release.set()
            thread.join()

        with store.lock("k", timeout=0.05):
            pass

    def test_lock_released_on_error(self, store):
        with pytest.raises(ValueError):
            with store.lock("k"):
                raise ValueError("boom")

        with store.lock("k", timeout=0.05):
            pass


class TestRedisKeyValueStore:
    """Test Redis command mapping."""

    @pytest.fixture
    def redis(self):
        return MagicMock()

    @pytest.fixture
    def redis_store(self, redis):
        return RedisKeyValueStore(namespace="upload-sessions", lock_ttl=60, redis=redis)

    def test_get_decodes_bytes(self, redis_store, redis):
        redis.get.return_value = b'{"a": 1}'

        assert redis_store.get("session:x") == '{"a": 1}'
        redis.get.assert_called_once_with("upload-sessions:session:x")

    def test_put_maps_ttl_and_nx(self, redis_store, redis):
        redis.set.return_value = None

        assert redis_store.put("k", "v", ttl=30, only_if_absent=True) is False
        redis.set.assert_called_once_with("upload-sessions:k", "v", ex=30, nx=True)

    def test_compare_and_swap_runs_script(self, redis_store, redis):
        redis.eval.return_value = 1

        assert redis_store.compare_and_swap("k", "old", "new", ttl=7200) is True

        args = redis.eval.call_args.args
        assert args[0] == RedisKeyValueStore.COMPARE_AND_SWAP_SCRIPT
        assert args[1:] == (1, "upload-sessions:k", "0", "old", "new", 7200)

    def test_compare_and_swap_expecting_absent(self, redis_store, redis):
        redis.eval.return_value = 0

        assert redis_store.compare_and_swap("k", None, "new") is False
        assert redis.eval.call_args.args[3:] == ("1", "", "new", 0)

    def test_scan_strips_namespace(self, redis_store, redis):
        redis.scan_iter.return_value = [b"upload-sessions:session:a", b"upload-sessions:session:b"]

        assert list(redis_store.scan("session:")) == ["session:a", "session:b"]
        redis.scan_iter.assert_called_once_with(match="upload-sessions:session:*")

    def test_lock_uses_distributed_lock(self, redis_store, redis):
        lock = redis_store.lock("session:a", timeout=2.0)

        assert isinstance(lock, DistributedLock)
        assert lock.key == "lock:upload-sessions:session:a"
        assert lock.ttl == 60
        assert lock.timeout == 2.0

    def test_connection_is_lazy(self, mocker):
        get_connection = mocker.patch("core.kvstore.get_redis_connection")
        redis_store = RedisKeyValueStore(alias="default")

        get_connection.assert_not_called()
        assert redis_store.redis is get_connection.return_value
        get_connection.assert_called_once_with("default")
