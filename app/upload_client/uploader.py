"""
Chunked video upload client.

Drives the server's upload protocol for one file:

    small file:  POST /api/v1/videos/upload/                      (single request)
    large file:  POST /api/v1/videos/uploads/                     (init)
                 POST /api/v1/videos/uploads/{id}/chunks/  x N    (chunks)
                 POST /api/v1/videos/uploads/{id}/complete/       (assemble)

Files of up to four chunks are sent concurrently; larger files are sent
one chunk at a time. Transport failures and lost concurrent-update races
are retried with exponential backoff and jitter. Any failure after init
sends a best-effort abort so the server can release the session.

Usage:
    from upload_client import ChunkedUploader

    uploader = ChunkedUploader(
        "https://api.example.com",
        token=access_token,
        on_progress=lambda fraction: print(f"{fraction:.0%}"),
    )
    result = uploader.upload("holiday.mov", {"title": "Holiday", "tags": "travel"})
    print(result.video_id, result.file_url)
"""

from __future__ import annotations

import logging
import math
import mimetypes
import os
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass
from typing import IO, TYPE_CHECKING, Any

import requests

from upload_client.exceptions import UploadClientError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = logging.getLogger(__name__)

# =============================================================================
# Configuration
# =============================================================================

MiB = 1024 * 1024

MIN_CHUNK_SIZE = 1 * MiB
DEFAULT_CHUNK_SIZE = 5 * MiB
MAX_CHUNK_SIZE = 10 * MiB

# Files above this size should go through the chunked protocol
CHUNKED_UPLOAD_THRESHOLD = 50 * MiB

# Uploads with at most this many chunks send them concurrently
PARALLEL_CHUNK_LIMIT = 4
MAX_WORKERS = 4

MAX_RETRIES = 3
RETRY_DELAY_BASE = 1.0
REQUEST_TIMEOUT = 60

RETRYABLE_STATUS_CODES = frozenset({408, 429})

# Conflicts the server asks the client to resend
RETRYABLE_ERROR_CODES = frozenset({"UPLOAD_SESSION_CONFLICT"})

API_PREFIX = "/api/v1/videos"


def calculate_chunk_size(file_size: int, requested: int | None = None) -> int:
    """
    Pick a chunk size for a file.

    A requested size is clamped into [MIN_CHUNK_SIZE, MAX_CHUNK_SIZE].
    Otherwise bigger files get bigger chunks to cut per-request overhead.
    """
    if requested:
        return max(MIN_CHUNK_SIZE, min(MAX_CHUNK_SIZE, requested))

    if file_size > 500 * MiB:
        return MAX_CHUNK_SIZE
    if file_size > 100 * MiB:
        return int(DEFAULT_CHUNK_SIZE * 1.5)
    if file_size > 50 * MiB:
        return DEFAULT_CHUNK_SIZE
    return MIN_CHUNK_SIZE


def should_use_chunked_upload(file_size: int) -> bool:
    return file_size > CHUNKED_UPLOAD_THRESHOLD


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class UploadResult:
    """
    Outcome of a successful upload.

    upload_id is None for single-request uploads.
    """

    video_id: str
    upload_id: str | None
    file_url: str
    needs_conversion: bool
    message: str


@dataclass(frozen=True)
class UploadStats:
    """
    Snapshot of a running upload.

    Attributes:
        upload_speed: Bytes per second since the upload started
        time_remaining: Estimated seconds left (None until speed is known)
        failed_chunks: Chunks that needed at least one retry
    """

    upload_speed: float
    time_remaining: float | None
    failed_chunks: int


# =============================================================================
# Uploader
# =============================================================================


class ChunkedUploader:
    """
    Client for the video upload API.

    One instance uploads one file at a time; abort() may be called from
    any thread (for example a UI cancel button).

    Args:
        base_url: Server root, e.g. "https://api.example.com"
        chunk_size: Preferred chunk size (clamped); None picks one by file size
        token: JWT access token sent as a Bearer header
        session: requests.Session to reuse (a new one is created otherwise)
        on_progress: Called with the uploaded fraction after each chunk
        on_chunk_complete: Called with (chunk_index, total_chunks)
        max_retries: Attempts per request on transport failures
        retry_delay_base: Base delay in seconds for exponential backoff
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        *,
        chunk_size: int | None = None,
        token: str | None = None,
        session: requests.Session | None = None,
        on_progress: Callable[[float], None] | None = None,
        on_chunk_complete: Callable[[int, int], None] | None = None,
        max_retries: int = MAX_RETRIES,
        retry_delay_base: float = RETRY_DELAY_BASE,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.chunk_size = chunk_size
        self.token = token
        self.session = session or requests.Session()
        self.on_progress = on_progress
        self.on_chunk_complete = on_chunk_complete
        self.max_retries = max(1, max_retries)
        self.retry_delay_base = retry_delay_base
        self.timeout = timeout

        self._aborted = threading.Event()
        self._progress_lock = threading.Lock()
        self._read_lock = threading.Lock()
        self._start_time = 0.0
        self._bytes_uploaded = 0
        self._total_bytes = 0
        self._retried_chunks: set[int] = set()

    # =========================================================================
    # Public API
    # =========================================================================

    def upload(self, file: str | os.PathLike | IO[bytes], metadata: dict[str, str]) -> UploadResult:
        """
        Upload a file and return the stored video's reference.

        Args:
            file: Filesystem path, or a binary file object with a name
            metadata: {"title": ..., "tags": ...}

        Raises:
            UploadClientError: On any failure (see UploadClientError.kind)
        """
        with _open_source(file) as (source, filename, size):
            chunk_size = calculate_chunk_size(size, self.chunk_size)

            with self._progress_lock:
                self._start_time = time.monotonic()
                self._bytes_uploaded = 0
                self._total_bytes = size
                self._retried_chunks = set()

            if size <= chunk_size:
                return self._direct_upload(source, filename, metadata)
            return self._chunked_upload(source, filename, size, chunk_size, metadata)

    def abort(self) -> None:
        """
        Cancel the upload.

        Requests already in flight finish; nothing new is sent, the server
        is told to release the session, and upload() raises an aborted error.
        """
        self._aborted.set()

    @property
    def aborted(self) -> bool:
        return self._aborted.is_set()

    def stats(self) -> UploadStats:
        with self._progress_lock:
            elapsed = time.monotonic() - self._start_time if self._start_time else 0.0
            speed = self._bytes_uploaded / elapsed if elapsed > 0 else 0.0
            remaining = None
            if speed > 0:
                remaining = (self._total_bytes - self._bytes_uploaded) / speed
            return UploadStats(
                upload_speed=speed,
                time_remaining=remaining,
                failed_chunks=len(self._retried_chunks),
            )

    # =========================================================================
    # Upload Paths
    # =========================================================================

    def _direct_upload(self, source: IO[bytes], filename: str, metadata: dict[str, str]) -> UploadResult:
        data = _read_range(source, 0, None, self._read_lock)

        body = self._request(
            "POST",
            f"{API_PREFIX}/upload/",
            data={"title": metadata.get("title", ""), "tags": metadata.get("tags", "")},
            files={"video": (filename, data, _guess_content_type(filename))},
        )
        self._record_progress(len(data))

        return _result_from(body, upload_id=None)

    def _chunked_upload(
        self,
        source: IO[bytes],
        filename: str,
        size: int,
        chunk_size: int,
        metadata: dict[str, str],
    ) -> UploadResult:
        total_chunks = math.ceil(size / chunk_size)

        init = self._request(
            "POST",
            f"{API_PREFIX}/uploads/",
            json={
                "filename": filename,
                "file_size": size,
                "content_type": _guess_content_type(filename),
                "title": metadata.get("title", ""),
                "tags": metadata.get("tags", ""),
                "chunk_size": chunk_size,
            },
        )
        upload_id = init["upload_id"]
        logger.info(f"Upload session {upload_id} started: {size} bytes in {total_chunks} chunks")

        try:
            if total_chunks <= PARALLEL_CHUNK_LIMIT:
                self._send_parallel(source, upload_id, chunk_size, total_chunks)
            else:
                self._send_sequential(source, upload_id, chunk_size, total_chunks)

            body = self._request("POST", f"{API_PREFIX}/uploads/{upload_id}/complete/")
        except UploadClientError as e:
            logger.warning(f"Upload {upload_id} failed ({e}); releasing session")
            self._notify_abort(upload_id)
            raise

        return _result_from(body, upload_id=upload_id)

    def _send_sequential(self, source: IO[bytes], upload_id: str, chunk_size: int, total_chunks: int) -> None:
        for index in range(total_chunks):
            self._send_chunk(source, upload_id, index, chunk_size, total_chunks)

    def _send_parallel(self, source: IO[bytes], upload_id: str, chunk_size: int, total_chunks: int) -> None:
        with ThreadPoolExecutor(max_workers=MAX_WORKERS) as executor:
            futures = [
                executor.submit(self._send_chunk, source, upload_id, index, chunk_size, total_chunks)
                for index in range(total_chunks)
            ]
            try:
                for future in as_completed(futures):
                    future.result()
            except UploadClientError:
                for future in futures:
                    future.cancel()
                raise

    def _send_chunk(
        self,
        source: IO[bytes],
        upload_id: str,
        index: int,
        chunk_size: int,
        total_chunks: int,
    ) -> None:
        data = _read_range(source, index * chunk_size, chunk_size, self._read_lock)

        self._request(
            "POST",
            f"{API_PREFIX}/uploads/{upload_id}/chunks/",
            data={"chunk_index": index, "total_chunks": total_chunks},
            files={"chunk": (f"chunk_{index}", data, "application/octet-stream")},
            chunk_index=index,
        )
        self._record_progress(len(data), index, total_chunks)

    def _notify_abort(self, upload_id: str) -> None:
        """Tell the server to drop the session. Failures are only logged."""
        try:
            self.session.request(
                "DELETE",
                f"{self.base_url}{API_PREFIX}/uploads/{upload_id}/",
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"Failed to abort upload {upload_id}: {e}")

    # =========================================================================
    # HTTP
    # =========================================================================

    def _headers(self) -> dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def _request(self, method: str, path: str, chunk_index: int | None = None, **kwargs: Any) -> dict[str, Any]:
        """
        Send one API call, retrying transport failures.

        Returns the decoded JSON body of a 2xx response.
        """
        last_error: UploadClientError | None = None

        for attempt in range(self.max_retries):
            if self.aborted:
                raise UploadClientError(UploadClientError.ABORTED, "Upload aborted")

            if attempt > 0:
                if chunk_index is not None:
                    with self._progress_lock:
                        self._retried_chunks.add(chunk_index)
                delay = self.retry_delay_base * 2**(attempt - 1) + random.uniform(0, self.retry_delay_base)
                logger.info(f"Retrying {method} {path} in {delay:.1f}s (attempt {attempt + 1}/{self.max_retries})")
                time.sleep(delay)

            try:
                response = self.session.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=self._headers(),
                    timeout=self.timeout,
                    **kwargs,
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = UploadClientError(UploadClientError.TRANSPORT, str(e))
                continue

            if response.ok:
                return _decode_body(response)

            error = _error_from_response(response)
            if error.kind != UploadClientError.TRANSPORT:
                raise error
            last_error = error

        raise last_error

    # =========================================================================
    # Progress
    # =========================================================================

    def _record_progress(self, size: int, index: int | None = None, total_chunks: int | None = None) -> None:
        with self._progress_lock:
            self._bytes_uploaded += size
            fraction = 1.0
            if self._total_bytes:
                fraction = min(1.0, self._bytes_uploaded / self._total_bytes)

            # Callbacks run under the lock so observers see fractions in order
            if self.on_progress:
                self.on_progress(fraction)
            if self.on_chunk_complete and index is not None:
                self.on_chunk_complete(index, total_chunks)


# =============================================================================
# Helpers
# =============================================================================


@contextmanager
def _open_source(file: str | os.PathLike | IO[bytes]) -> Iterator[tuple[IO[bytes], str, int]]:
    """Yield (binary stream, base filename, size) for a path or file object."""
    if isinstance(file, (str, os.PathLike)):
        with open(file, "rb") as f:
            yield f, os.path.basename(os.fspath(file)), os.fstat(f.fileno()).st_size
        return

    name = os.path.basename(getattr(file, "name", "") or "upload")
    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(0)
    yield file, name, size


def _read_range(source: IO[bytes], offset: int, length: int | None, lock: threading.Lock) -> bytes:
    with lock:
        source.seek(offset)
        return source.read() if length is None else source.read(length)


def _guess_content_type(filename: str) -> str:
    return mimetypes.guess_type(filename)[0] or "application/octet-stream"


def _error_from_response(response: requests.Response) -> UploadClientError:
    """Classify a non-2xx response."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        payload = None

    message = (payload or {}).get("error") or f"HTTP {response.status_code}: {response.reason}"
    category = (payload or {}).get("category")

    if category == "storage":
        kind = UploadClientError.STORAGE
    elif (
        response.status_code >= 500
        or response.status_code in RETRYABLE_STATUS_CODES
        or (payload or {}).get("error_code") in RETRYABLE_ERROR_CODES
    ):
        kind = UploadClientError.TRANSPORT
    else:
        kind = UploadClientError.SESSION

    return UploadClientError(kind, message, status_code=response.status_code, payload=payload)


def _decode_body(response: requests.Response) -> dict[str, Any]:
    """Decode a 2xx body; anything but a JSON object is a protocol error."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        raise UploadClientError(
            UploadClientError.SESSION,
            f"Unexpected response body (HTTP {response.status_code})",
            status_code=response.status_code,
        )
    return body


def _result_from(body: dict[str, Any], upload_id: str | None) -> UploadResult:
    return UploadResult(
        video_id=body["video_id"],
        upload_id=upload_id,
        file_url=body.get("file_url", ""),
        needs_conversion=bool(body.get("needs_conversion", False)),
        message=body.get("message", ""),
    )
