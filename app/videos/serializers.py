"""
Serializers for video uploads.

Provides:
- ChunkedUploadInitSerializer: Start a chunked upload session
- ChunkUploadSerializer: One chunk (multipart)
- ChunkedUploadSessionSerializer: Session progress snapshot
- ChunkReceiptSerializer / UploadCompleteSerializer: Protocol responses
- DirectUploadSerializer: Whole file in one request
- VideoSerializer: Read-only video representation
- ProcessingRequestSerializer / ProcessingStatusSerializer: Conversion requests
- ThumbnailQuerySerializer: Thumbnail query parameters

Input serializers only check shape; upload policy (sizes, titles, tags,
filenames) is enforced by the services so both upload paths share it.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiExample, extend_schema_serializer
from rest_framework import serializers

from videos.models import Video

# =============================================================================
# Chunked Upload
# =============================================================================


@extend_schema_serializer(
    examples=[
        OpenApiExample(
            "Large video",
            value={
                "filename": "holiday_2024.mov",
                "file_size": 12000000,
                "content_type": "video/quicktime",
                "title": "Holiday 2024",
                "tags": "travel, family",
            },
            request_only=True,
        ),
    ]
)
class ChunkedUploadInitSerializer(serializers.Serializer):
    """
    Serializer for initializing a chunked upload session.

    chunk_size is optional; requested sizes are clamped to the server's
    allowed range.
    """

    filename = serializers.CharField(max_length=1024, help_text="Original filename")
    file_size = serializers.IntegerField(help_text="Total file size in bytes")
    content_type = serializers.CharField(
        max_length=127,
        required=False,
        allow_blank=True,
        default="",
        help_text="MIME type of the file",
    )
    title = serializers.CharField(
        max_length=1024,
        allow_blank=True,
        help_text="Video title (max 100 characters after trimming)",
    )
    tags = serializers.CharField(
        max_length=1024,
        required=False,
        allow_blank=True,
        default="",
        help_text="Comma-separated tags (max 10, 30 characters each)",
    )
    chunk_size = serializers.IntegerField(
        required=False,
        min_value=1,
        help_text="Preferred chunk size in bytes",
    )


class ChunkedUploadInitResponseSerializer(serializers.Serializer):
    """Response body of a successful session initialization."""

    success = serializers.BooleanField()
    upload_id = serializers.CharField()
    chunk_size = serializers.IntegerField()
    total_chunks = serializers.IntegerField()
    expires_in = serializers.IntegerField(help_text="Seconds of inactivity before the session is reclaimed")


class ChunkUploadSerializer(serializers.Serializer):
    """
    Serializer for one chunk.

    chunk_index is range-checked by the session manager against the
    session's total, so negative values reach it and get a range error.
    """

    chunk_index = serializers.IntegerField(help_text="Zero-based chunk index")
    total_chunks = serializers.IntegerField(min_value=1, help_text="Total chunks for this upload")
    chunk = serializers.FileField(help_text="Chunk bytes")


class ChunkReceiptSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    chunk_index = serializers.IntegerField()
    duplicate = serializers.BooleanField()
    received_chunks = serializers.IntegerField()
    total_chunks = serializers.IntegerField()
    progress = serializers.FloatField(help_text="Server-computed fraction of chunks received")


@extend_schema_serializer(
    examples=[
        OpenApiExample(
            "Session in progress",
            value={
                "upload_id": "3f2b8c1e9a7d4e6f8b0c2d4e6f8a0b1c",
                "filename": "holiday_2024.mov",
                "file_size": 12000000,
                "chunk_size": 5242880,
                "total_chunks": 3,
                "received_chunks": 1,
                "missing_chunks": [1, 2],
                "bytes_received": 5242880,
                "progress": 0.3333,
                "created_at": "2024-01-15T10:30:00Z",
                "last_activity_at": "2024-01-15T10:31:00Z",
                "expires_at": "2024-01-15T11:31:00Z",
            },
            response_only=True,
        ),
    ]
)
class ChunkedUploadSessionSerializer(serializers.Serializer):
    """Snapshot of an in-progress upload for resuming clients."""

    upload_id = serializers.CharField()
    filename = serializers.CharField()
    file_size = serializers.IntegerField()
    chunk_size = serializers.IntegerField()
    total_chunks = serializers.IntegerField()
    received_chunks = serializers.IntegerField()
    missing_chunks = serializers.ListField(child=serializers.IntegerField())
    bytes_received = serializers.IntegerField()
    progress = serializers.FloatField()
    created_at = serializers.DateTimeField()
    last_activity_at = serializers.DateTimeField()
    expires_at = serializers.DateTimeField()


class UploadCompleteSerializer(serializers.Serializer):
    """Response body of a successful upload (chunked or direct)."""

    success = serializers.BooleanField()
    video_id = serializers.UUIDField()
    upload_id = serializers.CharField(required=False)
    file_url = serializers.CharField()
    needs_conversion = serializers.BooleanField()
    message = serializers.CharField()


# =============================================================================
# Direct Upload
# =============================================================================


class DirectUploadSerializer(serializers.Serializer):
    """Whole video in one multipart request."""

    video = serializers.FileField(required=False, allow_empty_file=True, help_text="Video file")
    title = serializers.CharField(max_length=1024, allow_blank=True, help_text="Video title")
    tags = serializers.CharField(
        max_length=1024,
        required=False,
        allow_blank=True,
        default="",
        help_text="Comma-separated tags",
    )


# =============================================================================
# Videos
# =============================================================================


class VideoSerializer(serializers.ModelSerializer):
    """Read-only video representation."""

    uploader = serializers.CharField(source="uploader.get_username", read_only=True)
    file_url = serializers.SerializerMethodField()

    class Meta:
        model = Video
        fields = [
            "id",
            "title",
            "tags",
            "uploader",
            "original_filename",
            "file_url",
            "content_type",
            "file_size",
            "upload_method",
            "needs_conversion",
            "processing_status",
            "target_format",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_file_url(self, obj: Video) -> str:
        return obj.file_url


class ProcessingRequestSerializer(serializers.Serializer):
    target_format = serializers.CharField(
        max_length=127,
        required=False,
        default="video/mp4",
        help_text="Requested output MIME type",
    )


class ProcessingStatusSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    video_id = serializers.UUIDField()
    status = serializers.ChoiceField(choices=Video.ProcessingStatus.choices)
    needs_conversion = serializers.BooleanField()
    output_format = serializers.CharField(allow_blank=True)
    thumbnail_url = serializers.CharField(allow_null=True)
    message = serializers.CharField()


class ThumbnailQuerySerializer(serializers.Serializer):
    time = serializers.IntegerField(
        required=False,
        min_value=0,
        default=0,
        help_text="Timestamp in seconds",
    )
