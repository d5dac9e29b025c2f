"""
Protocol definitions for generic infrastructure services.

Protocols define contracts that services must fulfill, enabling:
- Duck typing with static type checking
- Dependency inversion (depend on abstractions, not concretions)
- Easy substitution of in-memory implementations in tests

Available Protocols:
    KeyValueStore: Shared keyed state with compare-and-swap and locking

Usage:
    from core.protocols import KeyValueStore

    def bump(store: KeyValueStore, key: str) -> None:
        with store.lock(key):
            current = store.get(key)
            store.compare_and_swap(key, current, str(int(current or "0") + 1))

Note:
    - Values are opaque strings; callers own serialization
    - @runtime_checkable allows isinstance() checks
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from contextlib import AbstractContextManager
    from collections.abc import Iterator


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Protocol for shared key-value stores.

    Implementations must be reachable from every process that handles
    requests for the same keys (e.g. Redis in production). An in-memory
    implementation is acceptable for tests and single-process use.
    """

    def get(self, key: str) -> str | None:
        """
        Get the value stored under key.

        Returns:
            Stored value or None if the key does not exist
        """
        ...

    def put(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
        only_if_absent: bool = False,
    ) -> bool:
        """
        Store value under key.

        Args:
            key: Storage key
            value: Serialized value
            ttl: Expiration in seconds (None for no expiry)
            only_if_absent: Refuse to overwrite an existing key

        Returns:
            True if the value was written
        """
        ...

    def delete(self, key: str) -> bool:
        """
        Delete key.

        Returns:
            True if the key existed
        """
        ...

    def compare_and_swap(
        self,
        key: str,
        expected: str | None,
        new: str,
        ttl: int | None = None,
    ) -> bool:
        """
        Atomically replace the value of key if it still equals expected.

        Args:
            key: Storage key
            expected: Value the caller last read (None means "absent")
            new: Replacement value
            ttl: Expiration in seconds applied to the new value

        Returns:
            True if the swap happened, False if the value had changed
        """
        ...

    def scan(self, prefix: str) -> Iterator[str]:
        """Iterate over keys starting with prefix."""
        ...

    def lock(self, name: str, timeout: float = 10.0) -> AbstractContextManager:
        """
        Return a context manager giving mutual exclusion on name.

        Raises:
            LockAcquisitionError: If the lock is not acquired within timeout
        """
        ...
