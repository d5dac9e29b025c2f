"""
Temporary storage for uploaded chunks.

A chunk is addressed by a handle derived from the session id and chunk
index ("{session_id}_chunk_{index}"), so a retried chunk always lands on
the same name and the orphan sweep can map any handle back to its session.

Implementations:
    LocalChunkStorage: Files in CHUNKED_UPLOAD_TEMP_DIR
    S3ChunkStorage: Objects under CHUNKED_UPLOAD_S3_PREFIX in a bucket

Errors are translated into the upload taxonomy:
    ChunkDataMissingError - a handle that should exist cannot be read
    UploadStorageError    - anything else the backend refuses to do
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from contextlib import closing, suppress
from datetime import datetime
from pathlib import Path
from typing import IO, TYPE_CHECKING

from botocore.exceptions import BotoCoreError, ClientError

from videos.exceptions import ChunkDataMissingError, UploadStorageError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from contextlib import AbstractContextManager

logger = logging.getLogger(__name__)

_HANDLE_RE = re.compile(r"^(?P<session_id>[0-9a-f]+)_chunk_(?P<index>\d+)$")

COPY_BUFFER_SIZE = 1024 * 1024


def chunk_handle(session_id: str, chunk_index: int) -> str:
    return f"{session_id}_chunk_{chunk_index}"


def parse_chunk_handle(handle: str) -> str | None:
    """Return the session id encoded in a handle, or None for foreign names."""
    match = _HANDLE_RE.match(handle)
    return match.group("session_id") if match else None


def chunk_data_size(data) -> int:
    """Size of a chunk payload (raw bytes or a Django File/UploadedFile)."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        return len(data)
    return data.size


class ChunkStorage(ABC):
    """
    Abstract base for chunk storage backends.

    Subclasses implement:
    - write(): Persist one chunk and return (handle, bytes_written)
    - open(): Context manager yielding a readable binary stream
    - delete(): Remove a handle (missing handles are fine)
    - exists(): Whether a handle is present
    - list_stale(): Handles not modified since a cutoff
    """

    @abstractmethod
    def write(self, session_id: str, chunk_index: int, data) -> tuple[str, int]:
        ...

    @abstractmethod
    def open(self, handle: str) -> AbstractContextManager[IO[bytes]]:
        ...

    @abstractmethod
    def delete(self, handle: str) -> None:
        ...

    @abstractmethod
    def exists(self, handle: str) -> bool:
        ...

    @abstractmethod
    def list_stale(self, older_than: datetime) -> Iterator[tuple[str, str]]:
        """Yield (handle, session_id) for chunks last modified before older_than."""
        ...

    def delete_many(self, handles) -> int:
        """
        Best-effort deletion of several handles.

        Failures are logged and skipped; leftovers are picked up later by
        the orphan sweep. Returns the number of handles deleted.
        """
        deleted = 0
        for handle in handles:
            try:
                self.delete(handle)
                deleted += 1
            except UploadStorageError as e:
                logger.warning(
                    f"Failed to delete chunk {handle}: {e}",
                    extra={"event_type": "chunk_delete_failed", "handle": handle},
                )
        return deleted


# =============================================================================
# Local Filesystem
# =============================================================================


class LocalChunkStorage(ChunkStorage):
    """
    Chunks as files in a temporary directory.

    Writes go to a ".part" file first and are renamed into place, so a
    crashed write never leaves a truncated chunk under its real name.
    """

    def __init__(self, temp_dir: str | os.PathLike) -> None:
        self.temp_dir = Path(temp_dir)

    def _path(self, handle: str) -> Path:
        return self.temp_dir / handle

    def write(self, session_id: str, chunk_index: int, data) -> tuple[str, int]:
        handle = chunk_handle(session_id, chunk_index)
        path = self._path(handle)
        partial = path.with_name(f"{handle}.part")
        written = 0

        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
            with open(partial, "wb") as f:
                if isinstance(data, (bytes, bytearray, memoryview)):
                    written = f.write(data)
                else:
                    for piece in data.chunks():
                        written += f.write(piece)
            os.replace(partial, path)
        except OSError as e:
            with suppress(OSError):
                partial.unlink(missing_ok=True)
            raise _storage_error(f"Failed to write chunk {chunk_index}", handle, e) from e

        return handle, written

    def open(self, handle: str) -> AbstractContextManager[IO[bytes]]:
        try:
            return open(self._path(handle), "rb")
        except FileNotFoundError as e:
            raise ChunkDataMissingError(
                "Chunk data is no longer available",
                details={"handle": handle},
            ) from e
        except OSError as e:
            raise _storage_error("Failed to read chunk", handle, e) from e

    def delete(self, handle: str) -> None:
        try:
            self._path(handle).unlink(missing_ok=True)
        except OSError as e:
            raise _storage_error("Failed to delete chunk", handle, e) from e

    def exists(self, handle: str) -> bool:
        return self._path(handle).is_file()

    def list_stale(self, older_than: datetime) -> Iterator[tuple[str, str]]:
        if not self.temp_dir.is_dir():
            return
        cutoff = older_than.timestamp()
        for path in self.temp_dir.iterdir():
            session_id = parse_chunk_handle(path.name)
            if session_id is None or not path.is_file():
                continue
            try:
                modified = path.stat().st_mtime
            except FileNotFoundError:
                continue
            if modified < cutoff:
                yield path.name, session_id


# =============================================================================
# S3
# =============================================================================


class S3ChunkStorage(ChunkStorage):
    """
    Chunks as objects in an S3 bucket.

    The boto3 client is created lazily so the module imports without AWS
    credentials; tests inject a MagicMock via the client argument.
    """

    def __init__(self, bucket_name: str, prefix: str = "uploads/temp/", client=None) -> None:
        self.bucket_name = bucket_name
        self.prefix = prefix
        self._s3_client = client

    @property
    def s3_client(self):
        """Get or create S3 client."""
        if self._s3_client is None:
            import boto3

            self._s3_client = boto3.client("s3")
        return self._s3_client

    def _key(self, handle: str) -> str:
        return f"{self.prefix}{handle}"

    def write(self, session_id: str, chunk_index: int, data) -> tuple[str, int]:
        handle = chunk_handle(session_id, chunk_index)
        size = chunk_data_size(data)
        body = bytes(data) if isinstance(data, (bytearray, memoryview)) else data
        if not isinstance(body, bytes):
            body.seek(0)

        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=self._key(handle),
                Body=body,
            )
        except (BotoCoreError, ClientError) as e:
            raise _storage_error(f"Failed to write chunk {chunk_index}", handle, e) from e

        return handle, size

    def open(self, handle: str) -> AbstractContextManager[IO[bytes]]:
        try:
            response = self.s3_client.get_object(
                Bucket=self.bucket_name,
                Key=self._key(handle),
            )
        except ClientError as e:
            if _is_missing(e):
                raise ChunkDataMissingError(
                    "Chunk data is no longer available",
                    details={"handle": handle},
                ) from e
            raise _storage_error("Failed to read chunk", handle, e) from e
        except BotoCoreError as e:
            raise _storage_error("Failed to read chunk", handle, e) from e
        return closing(response["Body"])

    def delete(self, handle: str) -> None:
        try:
            self.s3_client.delete_object(
                Bucket=self.bucket_name,
                Key=self._key(handle),
            )
        except (BotoCoreError, ClientError) as e:
            raise _storage_error("Failed to delete chunk", handle, e) from e

    def exists(self, handle: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=self._key(handle))
        except ClientError as e:
            if _is_missing(e):
                return False
            raise _storage_error("Failed to check chunk", handle, e) from e
        return True

    def list_stale(self, older_than: datetime) -> Iterator[tuple[str, str]]:
        paginator = self.s3_client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket_name, Prefix=self.prefix):
            for obj in page.get("Contents", []):
                handle = obj["Key"][len(self.prefix):]
                session_id = parse_chunk_handle(handle)
                if session_id is None:
                    continue
                if obj["LastModified"] < older_than:
                    yield handle, session_id


def _storage_error(message: str, handle: str, error: Exception) -> UploadStorageError:
    """Log the backend error text and build a client-safe UploadStorageError."""
    logger.error(
        f"{message} ({handle}): {error}",
        extra={"event_type": "chunk_storage_failed", "handle": handle},
    )
    return UploadStorageError(message, details={"handle": handle})


def _is_missing(error: ClientError) -> bool:
    code = error.response.get("Error", {}).get("Code", "")
    return code in ("NoSuchKey", "404", "NotFound")


def copy_chunk(source: IO[bytes], target: IO[bytes]) -> int:
    """Stream one chunk into target, returning the bytes copied."""
    copied = 0
    while True:
        buffer = source.read(COPY_BUFFER_SIZE)
        if not buffer:
            break
        target.write(buffer)
        copied += len(buffer)
    return copied


__all__ = [
    "ChunkStorage",
    "LocalChunkStorage",
    "S3ChunkStorage",
    "chunk_data_size",
    "chunk_handle",
    "copy_chunk",
    "parse_chunk_handle",
]
