"""
Python client for the video upload API.

Standalone (no Django import) so scripts and desktop tools can upload
large videos with chunking, retries and cancellation.

    from upload_client import ChunkedUploader, should_use_chunked_upload
"""

from upload_client.exceptions import UploadClientError
from upload_client.uploader import (
    ChunkedUploader,
    UploadResult,
    UploadStats,
    calculate_chunk_size,
    should_use_chunked_upload,
)

__all__ = [
    "ChunkedUploader",
    "UploadClientError",
    "UploadResult",
    "UploadStats",
    "calculate_chunk_size",
    "should_use_chunked_upload",
]
