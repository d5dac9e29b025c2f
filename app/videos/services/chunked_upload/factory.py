"""
Factory functions for wiring the chunked upload service from settings.

Backend selection mirrors the settings:

    CHUNKED_UPLOAD_SESSION_BACKEND   "redis" (shared) or "memory" (one process)
    CHUNKED_UPLOAD_CHUNK_BACKEND     "local" (temp dir) or "s3" (bucket prefix)

The assembled artifact always goes to the "videos" storage alias, which is
FileSystemStorage or S3Storage depending on VIDEO_STORAGE_BACKEND.
"""

from __future__ import annotations

from functools import lru_cache

from django.conf import settings
from django.core.files.storage import storages

from core.kvstore import InMemoryKeyValueStore, RedisKeyValueStore
from videos.services.chunked_upload.chunks import (
    ChunkStorage,
    LocalChunkStorage,
    S3ChunkStorage,
)
from videos.services.chunked_upload.service import ChunkedUploadService
from videos.services.chunked_upload.store import UploadSessionStore

SESSION_NAMESPACE = "upload-sessions"

# Session keys outlive the idle threshold so the sweep, not Redis expiry,
# normally decides when a session dies
SESSION_TTL_MULTIPLIER = 2


def build_session_store() -> UploadSessionStore:
    idle_timeout = settings.CHUNKED_UPLOAD_IDLE_TIMEOUT_SECONDS

    if settings.CHUNKED_UPLOAD_SESSION_BACKEND == "memory":
        kv = InMemoryKeyValueStore()
    else:
        kv = RedisKeyValueStore(namespace=SESSION_NAMESPACE, lock_ttl=60)

    return UploadSessionStore(kv, ttl=idle_timeout * SESSION_TTL_MULTIPLIER)


def build_chunk_storage() -> ChunkStorage:
    if settings.CHUNKED_UPLOAD_CHUNK_BACKEND == "s3":
        return S3ChunkStorage(
            bucket_name=settings.CHUNKED_UPLOAD_S3_BUCKET,
            prefix=settings.CHUNKED_UPLOAD_S3_PREFIX,
        )
    return LocalChunkStorage(settings.CHUNKED_UPLOAD_TEMP_DIR)


def build_chunked_upload_service() -> ChunkedUploadService:
    """Construct a fresh service from the current settings."""
    return ChunkedUploadService(
        store=build_session_store(),
        chunk_storage=build_chunk_storage(),
        artifact_storage=storages["videos"],
        chunk_size=settings.CHUNKED_UPLOAD_CHUNK_SIZE,
        min_chunk_size=settings.CHUNKED_UPLOAD_MIN_CHUNK_SIZE,
        max_chunk_size=settings.CHUNKED_UPLOAD_MAX_CHUNK_SIZE,
        max_file_size=settings.CHUNKED_UPLOAD_MAX_FILE_SIZE,
        idle_timeout=settings.CHUNKED_UPLOAD_IDLE_TIMEOUT_SECONDS,
    )


@lru_cache(maxsize=1)
def get_chunked_upload_service() -> ChunkedUploadService:
    """
    Get the process-wide chunked upload service.

    Cached so the in-memory session backend keeps its state between
    requests. Tests call get_chunked_upload_service.cache_clear() to reset.

    Usage:
        service = get_chunked_upload_service()
        session = service.initialize(filename, file_size, content_type, title, tags)
    """
    return build_chunked_upload_service()
