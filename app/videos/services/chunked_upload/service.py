"""
Chunked upload session manager.

Server half of the init -> chunk x N -> complete protocol:

    initialize()          Validate intent, allocate a session
    receive_chunk()       Idempotently record one chunk
    complete()            Assemble chunks in index order into the artifact
    abort()               Release a session and its chunks (idempotent)
    progress()            Snapshot for resuming clients
    sweep_idle_sessions() Reclaim sessions idle past the threshold
    sweep_orphaned_chunks() Remove chunk artifacts whose session is gone

Usage:
    from videos.services.chunked_upload import get_chunked_upload_service

    service = get_chunked_upload_service()
    session = service.initialize("clip.mov", 12_000_000, "video/quicktime", "Clip", "")
    service.receive_chunk(session.session_id, 0, session.total_chunks, chunk_bytes)
    result = service.complete(session.session_id)
"""

from __future__ import annotations

import logging
import math
import mimetypes
import tempfile
from dataclasses import replace
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError
from django.core.files import File
from django.template.defaultfilters import filesizeformat
from django.utils import timezone

from core.exceptions import BaseApplicationError, ConflictError, LockAcquisitionError, ValidationError
from core.helpers import generate_token, is_hex_token
from videos.exceptions import (
    ChunkCountMismatchError,
    ChunkIndexOutOfRangeError,
    UploadAssemblyError,
    UploadIncompleteError,
    UploadSessionNotFoundError,
    UploadStorageError,
    UploadTooLargeError,
)
from videos.services.chunked_upload.base import (
    ChunkReceipt,
    ChunkRecord,
    UploadResult,
    UploadSession,
)
from videos.services.chunked_upload.chunks import chunk_data_size, copy_chunk
from videos.validators import (
    clean_tags,
    get_file_extension,
    needs_conversion,
    normalize_content_type,
    sanitize_filename,
    validate_title,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from django.core.files.storage import Storage

    from videos.services.chunked_upload.chunks import ChunkStorage
    from videos.services.chunked_upload.store import UploadSessionStore

logger = logging.getLogger(__name__)

MiB = 1024 * 1024

# Session ids are 16 random bytes rendered as 32 hex characters
SESSION_TOKEN_BYTES = 16

# Assembled size may differ from the declared size by this much before we warn
SIZE_MISMATCH_TOLERANCE = 1024

ARTIFACT_PREFIX = "videos/"


class ChunkedUploadService:
    """
    Coordinates the session ledger, chunk storage and artifact storage.

    Dependencies are injected so production wires Redis + disk/S3 and tests
    wire the in-memory store + a temp directory.

    Args:
        store: Shared upload session ledger
        chunk_storage: Temporary per-chunk storage
        artifact_storage: Django storage receiving assembled videos
        chunk_size: Default chunk size offered to clients
        min_chunk_size / max_chunk_size: Bounds for negotiated chunk sizes
        max_file_size: Hard cap on the declared upload size
        idle_timeout: Seconds without activity before a session is reclaimable
        sweep_lock_timeout: Seconds the idle sweep waits for a busy session
    """

    def __init__(
        self,
        store: UploadSessionStore,
        chunk_storage: ChunkStorage,
        artifact_storage: Storage,
        chunk_size: int = 5 * MiB,
        min_chunk_size: int = 1 * MiB,
        max_chunk_size: int = 10 * MiB,
        max_file_size: int = 2 * 1024 * MiB,
        idle_timeout: int = 3600,
        sweep_lock_timeout: float = 0.5,
    ) -> None:
        self.store = store
        self.chunk_storage = chunk_storage
        self.artifact_storage = artifact_storage
        self.chunk_size = chunk_size
        self.min_chunk_size = min_chunk_size
        self.max_chunk_size = max_chunk_size
        self.max_file_size = max_file_size
        self.idle_timeout = idle_timeout
        self.sweep_lock_timeout = sweep_lock_timeout

    # =========================================================================
    # Initialization
    # =========================================================================

    def negotiate_chunk_size(self, requested: int | None) -> int:
        """Clamp a client-requested chunk size into the allowed range."""
        if not requested:
            return self.chunk_size
        return max(self.min_chunk_size, min(self.max_chunk_size, requested))

    def initialize(
        self,
        filename: str,
        declared_size: int,
        content_type: str | None,
        title: str,
        tags: str | None = "",
        uploader_id: int | str | None = None,
        chunk_size: int | None = None,
    ) -> UploadSession:
        """
        Validate upload intent and allocate a session.

        Raises:
            ValidationError: Missing filename/size/title, bad metadata
            UploadTooLargeError: declared_size above max_file_size
        """
        if not filename or declared_size is None:
            raise ValidationError(
                "Missing required fields: filename, file_size",
                error_code="MISSING_FIELDS",
                details={"fields": ["filename", "file_size"]},
            )
        if isinstance(declared_size, bool) or not isinstance(declared_size, int) or declared_size < 1:
            raise ValidationError(
                "File size must be a positive integer",
                error_code="INVALID_FILE_SIZE",
                details={"field": "file_size"},
            )
        clean_title = validate_title(title)
        cleaned_tags = clean_tags(tags)

        if declared_size > self.max_file_size:
            raise UploadTooLargeError(
                f"File too large. Maximum size is {filesizeformat(self.max_file_size)}.",
                details={"file_size": declared_size, "max_size": self.max_file_size},
            )

        sanitized = sanitize_filename(filename)
        if not sanitized:
            raise ValidationError(
                "Filename contains no usable characters",
                error_code="INVALID_FILENAME",
                details={"field": "filename"},
            )

        session_id = generate_token(SESSION_TOKEN_BYTES)
        effective_chunk_size = self.negotiate_chunk_size(chunk_size)
        now = timezone.now()

        session = UploadSession(
            session_id=session_id,
            original_name=filename,
            sanitized_name=sanitized,
            final_name=f"{session_id}{get_file_extension(sanitized)}",
            declared_size=declared_size,
            content_type=(
                normalize_content_type(content_type)
                or mimetypes.guess_type(sanitized)[0]
                or "application/octet-stream"
            ),
            chunk_size=effective_chunk_size,
            total_chunks=math.ceil(declared_size / effective_chunk_size),
            title=clean_title,
            tags=cleaned_tags,
            uploader_id=uploader_id,
            created_at=now,
            last_activity_at=now,
        )
        self.store.create(session)

        logger.info(
            f"Upload session created: {session_id} for {sanitized} "
            f"({declared_size} bytes, {session.total_chunks} chunks)",
            extra={
                "event_type": "upload_session_created",
                "upload_id": session_id,
                "file_size": declared_size,
                "total_chunks": session.total_chunks,
            },
        )
        return session

    # =========================================================================
    # Chunks
    # =========================================================================

    def receive_chunk(
        self,
        session_id: str,
        chunk_index: int,
        total_chunks: int,
        data,
        uploader_id: int | str | None = None,
    ) -> ChunkReceipt:
        """
        Record one chunk.

        The bytes are persisted before the ledger entry is written, and both
        happen under the session lock, so a re-submitted index is a no-op and
        concurrent chunks for the same session never lose updates.

        Raises:
            UploadSessionNotFoundError: Unknown, expired or foreign session
            ChunkIndexOutOfRangeError: Index outside [0, total_chunks)
            ChunkCountMismatchError: total_chunks disagrees with the fixed total
            ValidationError: Empty or oversized chunk payload
            UploadStorageError: Chunk could not be written
        """
        self._require_session_id(session_id)

        if isinstance(total_chunks, bool) or not isinstance(total_chunks, int) or total_chunks < 1:
            raise ValidationError(
                "Total chunks must be a positive integer",
                error_code="INVALID_TOTAL_CHUNKS",
                details={"field": "total_chunks"},
            )
        size = chunk_data_size(data)
        if size == 0:
            raise ValidationError(
                "Chunk is empty",
                error_code="EMPTY_CHUNK",
                details={"chunk_index": chunk_index},
            )
        if size > self.max_chunk_size:
            raise ValidationError(
                f"Chunk too large. Max {self.max_chunk_size} bytes.",
                error_code="CHUNK_TOO_LARGE",
                details={"chunk_index": chunk_index, "max_chunk_size": self.max_chunk_size},
            )

        def apply(session: UploadSession) -> ChunkReceipt:
            self._require_owner(session, uploader_id)

            if not 0 <= chunk_index < total_chunks:
                raise ChunkIndexOutOfRangeError(
                    f"Chunk index {chunk_index} out of range [0, {total_chunks})",
                    details={"chunk_index": chunk_index, "total_chunks": total_chunks},
                )

            if session.total_confirmed:
                if total_chunks != session.total_chunks:
                    raise ChunkCountMismatchError(
                        f"Total chunks {total_chunks} does not match {session.total_chunks}",
                        details={
                            "total_chunks": total_chunks,
                            "expected_total_chunks": session.total_chunks,
                        },
                    )
            else:
                if total_chunks > session.declared_size:
                    raise ValidationError(
                        "Total chunks exceeds declared file size",
                        error_code="INVALID_TOTAL_CHUNKS",
                        details={"total_chunks": total_chunks, "file_size": session.declared_size},
                    )
                if total_chunks != session.total_chunks:
                    logger.warning(
                        f"Chunk count mismatch for {session_id}: estimated "
                        f"{session.total_chunks}, client declared {total_chunks}",
                        extra={
                            "event_type": "chunk_count_mismatch",
                            "upload_id": session_id,
                            "estimated_total_chunks": session.total_chunks,
                            "total_chunks": total_chunks,
                        },
                    )
                session.total_chunks = total_chunks
                session.total_confirmed = True

            now = timezone.now()
            duplicate = chunk_index in session.received_chunks
            if not duplicate:
                handle, written = self.chunk_storage.write(session_id, chunk_index, data)
                session.received_chunks[chunk_index] = ChunkRecord(
                    size=written,
                    handle=handle,
                    received_at=now,
                )
            session.last_activity_at = now

            return ChunkReceipt(
                accepted=True,
                duplicate=duplicate,
                chunk_index=chunk_index,
                received_chunks=session.received_count,
                total_chunks=session.total_chunks,
                progress=session.progress,
            )

        receipt = self.store.update(session_id, apply)

        logger.debug(
            f"Chunk {chunk_index} for {session_id}: "
            f"{receipt.received_chunks}/{receipt.total_chunks}"
            f"{' (duplicate)' if receipt.duplicate else ''}",
            extra={
                "event_type": "upload_chunk_received",
                "upload_id": session_id,
                "chunk_index": chunk_index,
                "duplicate": receipt.duplicate,
            },
        )
        return receipt

    # =========================================================================
    # Completion
    # =========================================================================

    def complete(
        self,
        session_id: str,
        uploader_id: int | str | None = None,
        on_assembled: Callable[[UploadResult], Any] | None = None,
    ) -> UploadResult:
        """
        Assemble every chunk in index order and store the artifact.

        on_assembled runs after the artifact is stored and before the session
        is destroyed, so a caller can record the result (e.g. a database row)
        while a retry is still possible. If it raises, the artifact is
        deleted and the session kept.

        Chunks are removed only after the artifact write succeeds, and the
        session record is destroyed at the same point. Any failure before
        that leaves the session intact so completion can be retried.

        Raises:
            UploadSessionNotFoundError: Unknown, expired or foreign session
            UploadIncompleteError: Chunks missing (details["missing_chunks"])
            ConflictError: Another completion of this session is running
            ChunkDataMissingError: A recorded chunk can no longer be read
            UploadStorageError: Temporary or artifact storage failure
            UploadAssemblyError: Any other assembly or registration failure
        """
        self._require_session_id(session_id)
        session = self.store.update(session_id, lambda s: self._begin_completion(s, uploader_id))

        try:
            storage_name, assembled_size = self._assemble(session)
        except Exception:
            self._release_completion(session_id)
            raise

        result = UploadResult(
            artifact_id=session_id,
            storage_name=storage_name,
            file_url=self.artifact_storage.url(storage_name),
            needs_conversion=needs_conversion(session.content_type),
            size=assembled_size,
            content_type=session.content_type,
            original_name=session.sanitized_name,
            title=session.title,
            tags=session.tags,
            uploader_id=session.uploader_id,
        )

        if on_assembled is not None:
            try:
                on_assembled(result)
            except BaseApplicationError:
                self._abandon_artifact(session_id, storage_name)
                raise
            except Exception as e:
                logger.exception(
                    f"Failed to register assembled upload {session_id}",
                    extra={"event_type": "upload_registration_failed", "upload_id": session_id},
                )
                self._abandon_artifact(session_id, storage_name)
                raise UploadAssemblyError(
                    "Failed to register assembled video",
                    details={"upload_id": session_id},
                ) from e

        with self.store.lock(session_id):
            self.store.delete(session_id)
        self.chunk_storage.delete_many(record.handle for record in session.received_chunks.values())

        if abs(assembled_size - session.declared_size) > SIZE_MISMATCH_TOLERANCE:
            logger.warning(
                f"Assembled size {assembled_size} differs from declared "
                f"{session.declared_size} for {session_id}",
                extra={
                    "event_type": "upload_size_mismatch",
                    "upload_id": session_id,
                    "declared_size": session.declared_size,
                    "assembled_size": assembled_size,
                },
            )

        logger.info(
            f"Upload completed: {session_id} -> {storage_name} ({assembled_size} bytes)",
            extra={
                "event_type": "upload_completed",
                "upload_id": session_id,
                "storage_name": storage_name,
                "file_size": assembled_size,
                "needs_conversion": result.needs_conversion,
            },
        )
        return result

    def _begin_completion(self, session: UploadSession, uploader_id) -> UploadSession:
        self._require_owner(session, uploader_id)

        missing = session.missing_chunks()
        if missing:
            raise UploadIncompleteError(
                f"Upload incomplete. {session.received_count}/{session.total_chunks} chunks uploaded",
                details={
                    "missing_chunks": missing,
                    "received_chunks": session.received_count,
                    "total_chunks": session.total_chunks,
                },
            )

        now = timezone.now()
        if session.completing_since and now - session.completing_since < timedelta(
            seconds=self.idle_timeout
        ):
            raise ConflictError(
                "Upload completion already in progress",
                error_code="UPLOAD_COMPLETION_IN_PROGRESS",
                details={"upload_id": session.session_id},
            )

        session.completing_since = now
        session.last_activity_at = now
        return replace(session, received_chunks=dict(session.received_chunks))

    def _release_completion(self, session_id: str) -> None:
        def clear(session: UploadSession) -> None:
            session.completing_since = None

        try:
            self.store.update(session_id, clear)
        except (UploadSessionNotFoundError, ConflictError) as e:
            logger.warning(
                f"Could not clear completion marker for {session_id}: {e}",
                extra={"event_type": "upload_completion_release_failed", "upload_id": session_id},
            )

    def _abandon_artifact(self, session_id: str, storage_name: str) -> None:
        """Undo a stored artifact and reopen the session for another completion."""
        try:
            self.artifact_storage.delete(storage_name)
        except (OSError, BotoCoreError, ClientError) as e:
            logger.warning(
                f"Could not delete artifact {storage_name} for {session_id}: {e}",
                extra={"event_type": "upload_artifact_cleanup_failed", "upload_id": session_id},
            )
        self._release_completion(session_id)

    def _assemble(self, session: UploadSession) -> tuple[str, int]:
        """Concatenate chunks 0..N-1 into a temp file, then save it as the artifact."""
        target_name = f"{ARTIFACT_PREFIX}{session.final_name}"

        try:
            with tempfile.TemporaryFile() as assembled:
                total = 0
                for index in range(session.total_chunks):
                    handle = session.received_chunks[index].handle
                    with self.chunk_storage.open(handle) as source:
                        total += copy_chunk(source, assembled)

                assembled.seek(0)
                storage_name = self.artifact_storage.save(
                    target_name,
                    File(assembled, name=session.final_name),
                )
        except BaseApplicationError:
            raise
        except (OSError, BotoCoreError, ClientError) as e:
            logger.error(
                f"Storage failure assembling {session.session_id}: {e}",
                extra={"event_type": "upload_assembly_failed", "upload_id": session.session_id},
            )
            raise UploadStorageError(
                "Failed to store assembled video",
                details={"upload_id": session.session_id},
            ) from e
        except Exception as e:
            logger.exception(
                f"Unexpected failure assembling {session.session_id}",
                extra={"event_type": "upload_assembly_failed", "upload_id": session.session_id},
            )
            raise UploadAssemblyError(
                "Failed to assemble video",
                details={"upload_id": session.session_id},
            ) from e

        return storage_name, total

    # =========================================================================
    # Abort / Progress
    # =========================================================================

    def abort(self, session_id: str, uploader_id: int | str | None = None) -> bool:
        """
        Release a session and its chunks.

        Unknown, already-finished and foreign sessions are all treated as
        already cleaned up. Returns True only if something was removed.
        """
        if not is_hex_token(session_id, SESSION_TOKEN_BYTES):
            return False

        with self.store.lock(session_id):
            session = self.store.get(session_id)
            if session is None or not session.is_owned_by(uploader_id):
                return False
            self.store.delete(session_id)

        deleted = self.chunk_storage.delete_many(
            record.handle for record in session.received_chunks.values()
        )
        logger.info(
            f"Upload aborted: {session_id} ({deleted} chunks removed)",
            extra={
                "event_type": "upload_aborted",
                "upload_id": session_id,
                "chunks_deleted": deleted,
            },
        )
        return True

    def progress(self, session_id: str, uploader_id: int | str | None = None) -> dict[str, Any]:
        """Snapshot of a session for clients resuming after a disconnect."""
        self._require_session_id(session_id)
        session = self.store.get(session_id)
        if session is None or not session.is_owned_by(uploader_id):
            raise self._not_found(session_id)

        return {
            "upload_id": session.session_id,
            "filename": session.sanitized_name,
            "file_size": session.declared_size,
            "chunk_size": session.chunk_size,
            "total_chunks": session.total_chunks,
            "received_chunks": session.received_count,
            "missing_chunks": session.missing_chunks(),
            "bytes_received": session.bytes_received,
            "progress": session.progress,
            "created_at": session.created_at,
            "last_activity_at": session.last_activity_at,
            "expires_at": session.last_activity_at + timedelta(seconds=self.idle_timeout),
        }

    # =========================================================================
    # Housekeeping
    # =========================================================================

    def sweep_idle_sessions(self, now: datetime | None = None) -> dict[str, Any]:
        """
        Remove sessions idle longer than idle_timeout, with their chunks.

        Each session is checked and deleted under its own lock; a session
        whose lock is busy is in use and is skipped.
        """
        now = now or timezone.now()
        cutoff = now - timedelta(seconds=self.idle_timeout)
        swept_count = 0
        chunks_deleted = 0
        skipped_locked = 0

        for session_id in list(self.store.session_ids()):
            try:
                with self.store.lock(session_id, timeout=self.sweep_lock_timeout):
                    session = self.store.get(session_id)
                    if session is None or session.last_activity_at > cutoff:
                        continue
                    self.store.delete(session_id)
            except LockAcquisitionError:
                skipped_locked += 1
                continue

            chunks_deleted += self.chunk_storage.delete_many(
                record.handle for record in session.received_chunks.values()
            )
            swept_count += 1
            logger.info(
                f"Reclaimed idle upload session {session_id}",
                extra={
                    "event_type": "upload_session_reclaimed",
                    "upload_id": session_id,
                    "last_activity_at": session.last_activity_at.isoformat(),
                },
            )

        return {
            "swept_count": swept_count,
            "chunks_deleted": chunks_deleted,
            "skipped_locked": skipped_locked,
        }

    def sweep_orphaned_chunks(self, now: datetime | None = None) -> dict[str, Any]:
        """Delete stale chunk artifacts that no session references any more."""
        now = now or timezone.now()
        cutoff = now - timedelta(seconds=self.idle_timeout)
        checked = 0
        orphans = []

        for handle, session_id in self.chunk_storage.list_stale(cutoff):
            checked += 1
            if self.store.get(session_id) is None:
                orphans.append(handle)

        removed = self.chunk_storage.delete_many(orphans)
        return {"checked_count": checked, "removed_count": removed}

    # =========================================================================
    # Helpers
    # =========================================================================

    def _not_found(self, session_id: str) -> UploadSessionNotFoundError:
        return UploadSessionNotFoundError(
            "Upload session not found or expired",
            details={"upload_id": session_id},
        )

    def _require_session_id(self, session_id: str) -> None:
        if not is_hex_token(session_id, SESSION_TOKEN_BYTES):
            raise self._not_found(session_id)

    def _require_owner(self, session: UploadSession, uploader_id) -> None:
        if not session.is_owned_by(uploader_id):
            raise self._not_found(session.session_id)
