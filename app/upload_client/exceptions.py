"""
Errors raised by the upload client.

Every failure is an UploadClientError with a kind telling the caller what
to do next:

    transport - network failure or retryable server status, retries exhausted
    session   - the server rejected the request (bad input, unknown session)
    storage   - the server could not store the data; retrying will not help
    aborted   - abort() was called
"""

from __future__ import annotations

from typing import Any


class UploadClientError(Exception):
    """
    Upload failure.

    Attributes:
        kind: One of TRANSPORT, SESSION, STORAGE, ABORTED
        message: Human-readable description (the server's "error" when present)
        status_code: HTTP status of the failing response, if any
        payload: Decoded JSON error body, if any
    """

    TRANSPORT = "transport"
    SESSION = "session"
    STORAGE = "storage"
    ABORTED = "aborted"

    def __init__(
        self,
        kind: str,
        message: str,
        status_code: int | None = None,
        payload: dict[str, Any] | None = None,
    ):
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.payload = payload
        super().__init__(message)

    @property
    def error_code(self) -> str | None:
        """Server error_code, when the server sent one."""
        return (self.payload or {}).get("error_code")

    def __str__(self) -> str:
        return f"[{self.kind}] {self.message}"


__all__ = ["UploadClientError"]
