"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes and categories for client handling
- Detailed error information for debugging (development only)

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    ├── ConflictError - State conflicts (duplicates, concurrent modifications)
    │   └── LockAcquisitionError - Distributed lock timeout
    └── StorageError - Disk/space/permission/backend failures

Usage:
    from core.exceptions import ValidationError, NotFoundError

    raise ValidationError("Invalid email format", error_code="INVALID_EMAIL")

    raise NotFoundError(
        "Upload session not found",
        error_code="UPLOAD_SESSION_NOT_FOUND",
        details={"upload_id": upload_id},
    )

Every error response rendered by core.exception_handler has the shape:

    {
        "success": false,
        "error": "Upload incomplete. 2/3 chunks uploaded",
        "error_code": "UPLOAD_INCOMPLETE",
        "category": "incomplete",
        "details": {"missing_chunks": [2]}
    }

A "debug" key with the exception representation is added only when DEBUG is on.
Internal error text (OS or backend messages) never goes into details; it is
logged and kept on the exception chain.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
        category: Stable error family (validation, not_found, conflict, ...)
        http_status: Status code used when the error reaches the API layer
    """

    default_error_code: str = "APPLICATION_ERROR"
    category: str = "unknown"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Upload session not found",
                "error_code": "UPLOAD_SESSION_NOT_FOUND",
                "category": "not_found",
                "details": {"upload_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
            "category": self.category,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Rejected before any server-side state is allocated.
    """

    default_error_code: str = "VALIDATION_ERROR"
    category: str = "validation"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        raise NotFoundError(
            f"Video {video_id} not found",
            error_code="VIDEO_NOT_FOUND",
            details={"video_id": str(video_id)},
        )
    """

    default_error_code: str = "NOT_FOUND"
    category: str = "not_found"
    http_status: int = 404


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for concurrent modification conflicts and requests that disagree
    with state already fixed by an earlier request.
    """

    default_error_code: str = "CONFLICT"
    category: str = "conflict"
    http_status: int = 409


class LockAcquisitionError(ConflictError):
    """Raised when a distributed lock cannot be acquired in time."""

    default_error_code: str = "LOCK_ACQUISITION_FAILED"
    http_status: int = 503


class StorageError(BaseApplicationError):
    """
    Raised when a storage backend fails (disk full, permissions, S3 errors).

    Kept distinct from transport failures so clients do not retry
    something that will keep failing.
    """

    default_error_code: str = "STORAGE_ERROR"
    category: str = "storage"
    http_status: int = 507
