"""
Chunked upload services.

Resumable, idempotent uploads of large videos split into chunks:

    ChunkedUploadService: init / chunk / complete / abort / sweeps
    UploadSessionStore: Shared session ledger over a KeyValueStore
    LocalChunkStorage / S3ChunkStorage: Temporary chunk storage

Usage:
    from videos.services.chunked_upload import get_chunked_upload_service

    service = get_chunked_upload_service()
    session = service.initialize("clip.mp4", 12_000_000, "video/mp4", "My clip")
"""

from videos.services.chunked_upload.base import (
    ChunkReceipt,
    ChunkRecord,
    UploadResult,
    UploadSession,
)
from videos.services.chunked_upload.chunks import (
    ChunkStorage,
    LocalChunkStorage,
    S3ChunkStorage,
)
from videos.services.chunked_upload.factory import (
    build_chunked_upload_service,
    get_chunked_upload_service,
)
from videos.services.chunked_upload.service import ChunkedUploadService
from videos.services.chunked_upload.store import UploadSessionStore

__all__ = [
    "ChunkReceipt",
    "ChunkRecord",
    "ChunkStorage",
    "ChunkedUploadService",
    "LocalChunkStorage",
    "S3ChunkStorage",
    "UploadResult",
    "UploadSession",
    "UploadSessionStore",
    "build_chunked_upload_service",
    "get_chunked_upload_service",
]
