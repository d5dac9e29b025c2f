"""
Key-value store implementations.

Two implementations of core.protocols.KeyValueStore:

    InMemoryKeyValueStore: Process-local dict guarded by threading locks.
        Suitable for tests and single-process development servers only.

    RedisKeyValueStore: Shared store backed by the django-redis connection.
        Compare-and-swap runs as a Lua script so the read and the write are
        atomic on the server; per-key mutual exclusion uses DistributedLock.

Usage:
    from core.kvstore import RedisKeyValueStore

    store = RedisKeyValueStore(namespace="upload-sessions")
    store.put("abc", '{"state": "new"}', ttl=3600, only_if_absent=True)

    with store.lock("abc"):
        current = store.get("abc")
        store.compare_and_swap("abc", current, '{"state": "next"}', ttl=3600)
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from django_redis import get_redis_connection

from core.exceptions import LockAcquisitionError
from core.locks import DistributedLock

if TYPE_CHECKING:
    from collections.abc import Iterator

    from redis import Redis


class InMemoryKeyValueStore:
    """
    Thread-safe in-process key-value store.

    TTLs are honoured lazily: expired keys are dropped when read or scanned.
    """

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, float | None]] = {}
        self._mutex = threading.Lock()
        self._named_locks: dict[str, threading.Lock] = {}

    def _expiry(self, ttl: int | None) -> float | None:
        return time.monotonic() + ttl if ttl else None

    def _live_value(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._data[key]
            return None
        return value

    def get(self, key: str) -> str | None:
        with self._mutex:
            return self._live_value(key)

    def put(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
        only_if_absent: bool = False,
    ) -> bool:
        with self._mutex:
            if only_if_absent and self._live_value(key) is not None:
                return False
            self._data[key] = (value, self._expiry(ttl))
            return True

    def delete(self, key: str) -> bool:
        with self._mutex:
            return self._data.pop(key, None) is not None

    def compare_and_swap(
        self,
        key: str,
        expected: str | None,
        new: str,
        ttl: int | None = None,
    ) -> bool:
        with self._mutex:
            if self._live_value(key) != expected:
                return False
            self._data[key] = (new, self._expiry(ttl))
            return True

    def scan(self, prefix: str) -> Iterator[str]:
        with self._mutex:
            keys = [key for key in list(self._data) if key.startswith(prefix)]
            live = [key for key in keys if self._live_value(key) is not None]
        yield from live

    @contextmanager
    def lock(self, name: str, timeout: float = 10.0) -> Iterator[None]:
        with self._mutex:
            named = self._named_locks.setdefault(name, threading.Lock())
        if not named.acquire(timeout=timeout):
            raise LockAcquisitionError(
                f"Failed to acquire lock '{name}' within {timeout}s",
                details={"key": name, "timeout": timeout},
            )
        try:
            yield
        finally:
            named.release()


class RedisKeyValueStore:
    """
    Redis-backed key-value store shared by every web and worker process.

    Args:
        namespace: Prefix applied to every key (keeps stores apart in one DB)
        alias: django-redis cache alias to take the connection from
        lock_ttl: TTL in seconds for locks taken through lock()
        redis: Optional explicit client (tests inject a mock here)
    """

    # KEYS[1] = key
    # ARGV[1] = "1" when the caller expects the key to be absent
    # ARGV[2] = expected value, ARGV[3] = new value, ARGV[4] = ttl (0 = none)
    COMPARE_AND_SWAP_SCRIPT = """
    local current = redis.call("get", KEYS[1])
    if ARGV[1] == "1" then
        if current then
            return 0
        end
    elseif current ~= ARGV[2] then
        return 0
    end
    if tonumber(ARGV[4]) > 0 then
        redis.call("set", KEYS[1], ARGV[3], "EX", ARGV[4])
    else
        redis.call("set", KEYS[1], ARGV[3])
    end
    return 1
    """

    def __init__(
        self,
        namespace: str = "kv",
        alias: str = "default",
        lock_ttl: int = 30,
        redis: Redis | None = None,
    ) -> None:
        self.namespace = namespace
        self.alias = alias
        self.lock_ttl = lock_ttl
        self._redis: Redis | None = redis

    @property
    def redis(self) -> Redis:
        """Lazy-load the Redis connection."""
        if self._redis is None:
            self._redis = get_redis_connection(self.alias)
        return self._redis

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    @staticmethod
    def _decode(value: bytes | str | None) -> str | None:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def get(self, key: str) -> str | None:
        return self._decode(self.redis.get(self._key(key)))

    def put(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
        only_if_absent: bool = False,
    ) -> bool:
        result = self.redis.set(self._key(key), value, ex=ttl, nx=only_if_absent)
        return bool(result)

    def delete(self, key: str) -> bool:
        return bool(self.redis.delete(self._key(key)))

    def compare_and_swap(
        self,
        key: str,
        expected: str | None,
        new: str,
        ttl: int | None = None,
    ) -> bool:
        result = self.redis.eval(
            self.COMPARE_AND_SWAP_SCRIPT,
            1,
            self._key(key),
            "1" if expected is None else "0",
            expected or "",
            new,
            ttl or 0,
        )
        return bool(result)

    def scan(self, prefix: str) -> Iterator[str]:
        strip = len(self.namespace) + 1
        for raw in self.redis.scan_iter(match=f"{self._key(prefix)}*"):
            yield self._decode(raw)[strip:]

    def lock(self, name: str, timeout: float = 10.0) -> DistributedLock:
        return DistributedLock(
            self._key(name),
            ttl=self.lock_ttl,
            timeout=timeout,
            redis=self.redis,
        )


__all__ = ["InMemoryKeyValueStore", "RedisKeyValueStore"]
