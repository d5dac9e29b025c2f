"""
Shared ledger of in-flight upload sessions.

Sessions are JSON documents in a KeyValueStore under "session:{id}".
Every mutation runs lock -> read -> mutate -> compare-and-swap, so two
chunks for the same session arriving at different processes can never
lose each other's ledger entries. Different sessions use different locks
and never block one another.

Usage:
    store = UploadSessionStore(RedisKeyValueStore(namespace="upload"))
    store.create(session)

    def record(session):
        session.received_chunks[0] = record
        return session.received_count

    count = store.update(session.session_id, record)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar

from core.exceptions import ConflictError
from videos.exceptions import UploadSessionNotFoundError
from videos.services.chunked_upload.base import UploadSession

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from contextlib import AbstractContextManager

    from core.protocols import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

KEY_PREFIX = "session:"


class UploadSessionStore:
    """
    Upload session persistence over a shared key-value store.

    Args:
        kv: Backing store (Redis in production, in-memory in tests)
        ttl: Safety-net expiry in seconds, refreshed on every write.
             The idle sweep normally reclaims sessions long before this.
        lock_timeout: Seconds to wait for a session's lock
    """

    def __init__(
        self,
        kv: KeyValueStore,
        ttl: int | None = None,
        lock_timeout: float = 30.0,
    ) -> None:
        self.kv = kv
        self.ttl = ttl
        self.lock_timeout = lock_timeout

    def _key(self, session_id: str) -> str:
        return f"{KEY_PREFIX}{session_id}"

    def create(self, session: UploadSession) -> None:
        """
        Persist a brand-new session.

        Raises:
            ConflictError: A session with the same id already exists
        """
        written = self.kv.put(
            self._key(session.session_id),
            session.to_json(),
            ttl=self.ttl,
            only_if_absent=True,
        )
        if not written:
            raise ConflictError(
                "Upload session id collision",
                error_code="UPLOAD_SESSION_EXISTS",
                details={"upload_id": session.session_id},
            )

    def get(self, session_id: str) -> UploadSession | None:
        raw = self.kv.get(self._key(session_id))
        if raw is None:
            return None
        return UploadSession.from_json(raw)

    def update(self, session_id: str, mutator: Callable[[UploadSession], T]) -> T:
        """
        Apply mutator to the current session and write it back atomically.

        The mutator receives a fresh copy and may raise to abort; nothing is
        written in that case. Its return value is passed through.

        Raises:
            UploadSessionNotFoundError: Session does not exist
            ConflictError: The stored document changed underneath the lock
            LockAcquisitionError: Lock not acquired within lock_timeout
        """
        key = self._key(session_id)
        with self.kv.lock(key, timeout=self.lock_timeout):
            raw = self.kv.get(key)
            if raw is None:
                raise UploadSessionNotFoundError(
                    "Upload session not found or expired",
                    details={"upload_id": session_id},
                )

            session = UploadSession.from_json(raw)
            result = mutator(session)
            session.version += 1

            if not self.kv.compare_and_swap(key, raw, session.to_json(), ttl=self.ttl):
                logger.warning(
                    f"Concurrent modification of upload session {session_id}",
                    extra={
                        "event_type": "upload_session_cas_failed",
                        "upload_id": session_id,
                    },
                )
                raise ConflictError(
                    "Upload session was modified concurrently, retry the request",
                    error_code="UPLOAD_SESSION_CONFLICT",
                    details={"upload_id": session_id},
                )
            return result

    def delete(self, session_id: str) -> bool:
        """Remove the session record. Callers serialize via lock()."""
        return self.kv.delete(self._key(session_id))

    def lock(self, session_id: str, timeout: float | None = None) -> AbstractContextManager:
        """Mutual exclusion on one session, shared with update()."""
        if timeout is None:
            timeout = self.lock_timeout
        return self.kv.lock(self._key(session_id), timeout=timeout)

    def session_ids(self) -> Iterator[str]:
        for key in self.kv.scan(KEY_PREFIX):
            yield key[len(KEY_PREFIX):]
