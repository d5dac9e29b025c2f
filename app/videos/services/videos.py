"""
VideoService: turns stored uploads into Video rows.

Provides:
- Completion handoff from the chunked upload session manager
- Single-request upload for files small enough to skip chunking
- Conversion requests recorded for the external transcoder
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings
from django.utils import timezone

from core.exceptions import ConflictError, ValidationError
from core.services import BaseService
from videos.exceptions import UploadStorageError, UploadTooLargeError, VideoNotFoundError
from videos.models import Video
from videos.services.chunked_upload import get_chunked_upload_service
from videos.validators import (
    WEB_COMPATIBLE_TYPES,
    clean_tags,
    is_video_file,
    needs_conversion,
    normalize_content_type,
    sanitize_filename,
    validate_title,
)

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser
    from django.core.files.uploadedfile import UploadedFile

    from videos.services.chunked_upload import UploadResult


class VideoService(BaseService):
    """
    Service for creating and updating Video records.

    Usage:
        video = VideoService.finish_chunked_upload(upload_id, request.user)

        video = VideoService.direct_upload(request.FILES["video"], "Title", "", request.user)

        VideoService.request_processing(video, "video/mp4")
    """

    # =========================================================================
    # Chunked Upload Handoff
    # =========================================================================

    @classmethod
    def finish_chunked_upload(cls, upload_id: str, uploader: AbstractBaseUser) -> Video:
        """
        Assemble a chunked upload and register the resulting video.

        The row is saved before the session is destroyed; if the save fails
        the artifact is removed and completion can be retried.
        """
        registered: list[Video] = []
        get_chunked_upload_service().complete(
            upload_id,
            uploader_id=uploader.pk,
            on_assembled=lambda result: registered.append(cls.register_upload(result, uploader)),
        )
        return registered[0]

    @classmethod
    def register_upload(cls, result: UploadResult, uploader: AbstractBaseUser) -> Video:
        """
        Create the Video row for an assembled chunked upload.

        The artifact is already stored; the row points at it by name and
        reuses the upload id as its primary key.
        """
        video = Video(
            id=uuid.UUID(result.artifact_id),
            uploader=uploader,
            title=result.title,
            tags=result.tags,
            original_filename=result.original_name,
            content_type=result.content_type,
            file_size=result.size,
            upload_method=Video.UploadMethod.CHUNKED,
            needs_conversion=result.needs_conversion,
            processing_status=cls._initial_status(result.needs_conversion),
        )
        video.file.name = result.storage_name

        with cls.atomic():
            video.save()

        cls.get_logger().info(
            f"Registered chunked upload {video.id}",
            extra={
                "event_type": "video_registered",
                "video_id": str(video.id),
                "upload_method": video.upload_method,
                "needs_conversion": video.needs_conversion,
            },
        )
        return video

    # =========================================================================
    # Direct Upload
    # =========================================================================

    @classmethod
    def direct_upload(
        cls,
        uploaded_file: UploadedFile | None,
        title: str,
        tags: str | None,
        uploader: AbstractBaseUser,
    ) -> Video:
        """
        Store a whole video sent in one request.

        Raises:
            ValidationError: Missing file or title, empty file, not a video
            UploadTooLargeError: File above CHUNKED_UPLOAD_MAX_FILE_SIZE
            UploadStorageError: Artifact storage refused the write
        """
        if uploaded_file is None:
            raise ValidationError(
                "No video file provided",
                error_code="FILE_REQUIRED",
                details={"field": "video"},
            )
        clean_title = validate_title(title)
        cleaned_tags = clean_tags(tags)

        if uploaded_file.size == 0:
            raise ValidationError(
                "Video file is empty",
                error_code="EMPTY_FILE",
                details={"field": "video"},
            )
        max_size = settings.CHUNKED_UPLOAD_MAX_FILE_SIZE
        if uploaded_file.size > max_size:
            raise UploadTooLargeError(
                "File too large",
                details={"file_size": uploaded_file.size, "max_size": max_size},
            )

        content_type = normalize_content_type(uploaded_file.content_type)
        filename = sanitize_filename(uploaded_file.name or "")
        if not filename:
            raise ValidationError(
                "Filename contains no usable characters",
                error_code="INVALID_FILENAME",
                details={"field": "video"},
            )
        if not is_video_file(content_type, filename):
            raise ValidationError(
                "Invalid file type. Please upload a video file.",
                error_code="INVALID_FILE_TYPE",
                details={"content_type": content_type, "filename": filename},
            )

        conversion = needs_conversion(content_type)
        video = Video(
            id=uuid.uuid4(),
            uploader=uploader,
            title=clean_title,
            tags=cleaned_tags,
            original_filename=filename,
            content_type=content_type,
            file_size=uploaded_file.size,
            upload_method=Video.UploadMethod.DIRECT,
            needs_conversion=conversion,
            processing_status=cls._initial_status(conversion),
        )

        try:
            video.file.save(filename, uploaded_file, save=False)
        except (OSError, BotoCoreError, ClientError) as e:
            cls.get_logger().error(
                f"Failed to store direct upload {video.id}: {e}",
                extra={"event_type": "direct_upload_storage_failed", "video_id": str(video.id)},
            )
            raise UploadStorageError("Failed to store video") from e

        try:
            with cls.atomic():
                video.save()
        except Exception:
            video.file.delete(save=False)
            raise

        cls.get_logger().info(
            f"Direct upload stored as {video.file.name}",
            extra={
                "event_type": "video_registered",
                "video_id": str(video.id),
                "upload_method": video.upload_method,
                "needs_conversion": video.needs_conversion,
            },
        )
        return video

    # =========================================================================
    # Lookup / Processing
    # =========================================================================

    @classmethod
    def get_video(cls, video_id) -> Video:
        try:
            return Video.objects.select_related("uploader").get(pk=video_id)
        except Video.DoesNotExist:
            raise VideoNotFoundError(
                "Video not found",
                details={"video_id": str(video_id)},
            ) from None

    @classmethod
    def get_owned_video(cls, video_id, user: AbstractBaseUser) -> Video:
        """Fetch a video the user uploaded; other users' videos look absent."""
        video = cls.get_video(video_id)
        if video.uploader_id != user.pk:
            raise VideoNotFoundError(
                "Video not found",
                details={"video_id": str(video_id)},
            )
        return video

    @classmethod
    def request_processing(cls, video: Video, target_format: str = "video/mp4") -> Video:
        """
        Queue a conversion request for the external transcoder.

        Only records the request; the transcoder picks up queued videos
        and reports progress through processing_status.

        Raises:
            ValidationError: target_format is not a web-playable type
            ConflictError: A conversion is already queued or running
        """
        target = normalize_content_type(target_format)
        if target not in WEB_COMPATIBLE_TYPES:
            raise ValidationError(
                "Unsupported target format",
                error_code="INVALID_TARGET_FORMAT",
                details={"target_format": target_format, "allowed": sorted(WEB_COMPATIBLE_TYPES)},
            )

        active = (Video.ProcessingStatus.QUEUED, Video.ProcessingStatus.PROCESSING)
        if video.processing_status in active:
            raise ConflictError(
                "Video is already being processed",
                error_code="PROCESSING_IN_PROGRESS",
                details={"processing_status": video.processing_status},
            )

        video.processing_status = Video.ProcessingStatus.QUEUED
        video.target_format = target
        video.processing_requested_at = timezone.now()
        with cls.atomic():
            video.save(
                update_fields=[
                    "processing_status",
                    "target_format",
                    "processing_requested_at",
                    "updated_at",
                ]
            )

        cls.get_logger().info(
            f"Conversion requested for {video.id} -> {target}",
            extra={
                "event_type": "video_processing_requested",
                "video_id": str(video.id),
                "target_format": target,
            },
        )
        return video

    @staticmethod
    def _initial_status(conversion: bool) -> str:
        if conversion:
            return Video.ProcessingStatus.PENDING
        return Video.ProcessingStatus.READY
