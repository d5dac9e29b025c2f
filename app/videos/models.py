"""
Video model for uploaded creator videos.

Provides:
- UUID primary key (ids appear in public URLs)
- Artifact stored on the pluggable "videos" storage alias
- Upload provenance (direct single request vs. assembled chunked upload)
- Conversion status for the external transcoder
"""

from __future__ import annotations

from django.conf import settings
from django.core.files.storage import storages
from django.db import models

from core.models import BaseModel, UUIDPrimaryKeyMixin
from videos.validators import get_file_extension


def select_video_storage():
    """Resolve the "videos" storage alias at runtime (local disk or S3)."""
    return storages["videos"]


def video_upload_path(instance: "Video", filename: str) -> str:
    """
    Generate the storage name for a video artifact.

    Pattern: videos/{uuid}{ext}

    Derived from the id alone so names never collide and never carry
    user-controlled path segments.
    """
    return f"videos/{instance.pk}{get_file_extension(filename)}"


class Video(UUIDPrimaryKeyMixin, BaseModel):
    """
    An uploaded video.

    Chunked uploads reuse the upload session id as the video id, so the
    artifact name videos/{session_id}{ext} and the row line up.
    """

    # =========================================================================
    # Enums
    # =========================================================================

    class UploadMethod(models.TextChoices):
        """How the bytes reached the server."""

        DIRECT = "direct", "Direct"
        CHUNKED = "chunked", "Chunked"

    class ProcessingStatus(models.TextChoices):
        """Conversion pipeline status."""

        READY = "ready", "Ready"
        PENDING = "pending", "Pending conversion"
        QUEUED = "queued", "Queued"
        PROCESSING = "processing", "Processing"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"

    # =========================================================================
    # Core Fields
    # =========================================================================

    uploader = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="videos",
        help_text="User who uploaded the video",
    )

    title = models.CharField(
        max_length=100,
        help_text="Display title",
    )

    tags = models.CharField(
        max_length=400,
        blank=True,
        default="",
        help_text="Comma-separated tags",
    )

    original_filename = models.CharField(
        max_length=255,
        help_text="Sanitized filename from the upload",
    )

    file = models.FileField(
        upload_to=video_upload_path,
        storage=select_video_storage,
        max_length=255,
        help_text="Stored video artifact",
    )

    content_type = models.CharField(
        max_length=127,
        blank=True,
        default="",
        help_text="Client-declared MIME type",
    )

    file_size = models.BigIntegerField(
        help_text="Artifact size in bytes",
    )

    upload_method = models.CharField(
        max_length=20,
        choices=UploadMethod.choices,
        help_text="Direct or chunked upload",
    )

    # =========================================================================
    # Conversion Fields (transcoding itself happens elsewhere)
    # =========================================================================

    needs_conversion = models.BooleanField(
        default=False,
        help_text="Format is not directly playable in browsers",
    )

    processing_status = models.CharField(
        max_length=20,
        choices=ProcessingStatus.choices,
        default=ProcessingStatus.READY,
        db_index=True,
        help_text="Current conversion status",
    )

    target_format = models.CharField(
        max_length=127,
        blank=True,
        default="",
        help_text="Requested output MIME type",
    )

    processing_requested_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When conversion was last requested",
    )

    class Meta:
        """Model metadata."""

        verbose_name = "Video"
        verbose_name_plural = "Videos"
        ordering = ["-created_at"]

        indexes = [
            models.Index(
                fields=["uploader", "created_at"],
                name="video_uploader_created_idx",
            ),
        ]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(file_size__gt=0),
                name="video_file_size_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.title} ({self.pk})"

    @property
    def file_url(self) -> str:
        """Dereferenceable URL of the stored artifact."""
        return self.file.url if self.file else ""
