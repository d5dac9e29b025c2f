"""
Upload error taxonomy.

Every error carries a stable category so clients can decide whether to
retry a chunk, retry completion, or restart from initialization:

    validation    - malformed input, rejected before any state is allocated
    too_large     - declared size above the configured maximum
    not_found     - unknown, expired or foreign session (restart from init)
    range         - chunk index outside [0, total_chunks)
    conflict      - total chunk count disagrees with the one already fixed
    incomplete    - completion requested before every chunk arrived
    missing_data  - a recorded chunk's bytes are gone from temporary storage
    storage       - disk, permission or backend failure (do not blindly retry)
    unknown       - anything else during assembly
"""

from __future__ import annotations

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)


class UploadTooLargeError(ValidationError):
    """Declared size exceeds CHUNKED_UPLOAD_MAX_FILE_SIZE."""

    default_error_code = "UPLOAD_TOO_LARGE"
    category = "too_large"
    http_status = 413


class UploadSessionNotFoundError(NotFoundError):
    """Session never existed, expired, was completed/aborted, or belongs to someone else."""

    default_error_code = "UPLOAD_SESSION_NOT_FOUND"


class ChunkIndexOutOfRangeError(ValidationError):
    """Chunk index outside [0, total_chunks)."""

    default_error_code = "CHUNK_INDEX_OUT_OF_RANGE"
    category = "range"


class ChunkCountMismatchError(ConflictError):
    """A chunk declared a total that disagrees with the authoritative one."""

    default_error_code = "CHUNK_COUNT_MISMATCH"


class UploadIncompleteError(BaseApplicationError):
    """
    Completion requested before all chunks arrived.

    details["missing_chunks"] lists the absent indices so the client can
    resend just those.
    """

    default_error_code = "UPLOAD_INCOMPLETE"
    category = "incomplete"
    http_status = 400


class ChunkDataMissingError(BaseApplicationError):
    """A chunk recorded in the ledger can no longer be read back."""

    default_error_code = "CHUNK_DATA_MISSING"
    category = "missing_data"
    http_status = 410


class UploadStorageError(StorageError):
    """Writing or reading upload artifacts failed in the storage backend."""

    default_error_code = "UPLOAD_STORAGE_ERROR"


class UploadAssemblyError(BaseApplicationError):
    """Assembly failed for a reason that is neither missing data nor storage."""

    default_error_code = "UPLOAD_ASSEMBLY_FAILED"
    category = "unknown"
    http_status = 500


class VideoNotFoundError(NotFoundError):
    """Video does not exist or is not visible to the requester."""

    default_error_code = "VIDEO_NOT_FOUND"


__all__ = [
    "ChunkCountMismatchError",
    "ChunkDataMissingError",
    "ChunkIndexOutOfRangeError",
    "UploadAssemblyError",
    "UploadIncompleteError",
    "UploadSessionNotFoundError",
    "UploadStorageError",
    "UploadTooLargeError",
    "VideoNotFoundError",
]
