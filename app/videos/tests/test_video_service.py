"""
Tests for VideoService.

Covers:
- Registering assembled chunked uploads
- Direct single-request uploads
- Conversion requests
"""

import uuid

import pytest
from django.core.files.storage import storages
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import DatabaseError

from core.exceptions import ConflictError, ValidationError
from videos.exceptions import (
    UploadAssemblyError,
    UploadIncompleteError,
    UploadSessionNotFoundError,
    UploadStorageError,
    UploadTooLargeError,
    VideoNotFoundError,
)
from videos.models import Video
from videos.services.chunked_upload import get_chunked_upload_service
from videos.services.videos import VideoService
from videos.tests.conftest import make_payload, split
from videos.tests.factories import VideoFactory

pytestmark = pytest.mark.django_db


def upload_in_chunks(user, data, filename="holiday.mov", content_type="video/quicktime", chunk_size=1024 * 1024):
    service = get_chunked_upload_service()
    session = service.initialize(
        filename,
        len(data),
        content_type,
        "Holiday",
        tags="travel, family",
        uploader_id=user.pk,
        chunk_size=chunk_size,
    )
    chunks = split(data, session.chunk_size)
    for index, chunk in enumerate(chunks):
        service.receive_chunk(session.session_id, index, len(chunks), chunk, uploader_id=user.pk)
    return session


class TestFinishChunkedUpload:
    """Tests for the chunked upload handoff."""

    def test_registers_video_with_session_id(self, user):
        data = make_payload(2 * 1024 * 1024 + 10)
        session = upload_in_chunks(user, data)

        video = VideoService.finish_chunked_upload(session.session_id, user)

        assert video.id == uuid.UUID(session.session_id)
        assert video.uploader == user
        assert video.title == "Holiday"
        assert video.tags == "travel, family"
        assert video.upload_method == Video.UploadMethod.CHUNKED
        assert video.needs_conversion is True
        assert video.processing_status == Video.ProcessingStatus.PENDING
        assert video.file_size == len(data)
        assert video.file.name == f"videos/{session.session_id}.mov"
        with storages["videos"].open(video.file.name) as f:
            assert f.read() == data

    def test_playable_upload_is_ready(self, user):
        session = upload_in_chunks(user, make_payload(1000), filename="clip.mp4", content_type="video/mp4")

        video = VideoService.finish_chunked_upload(session.session_id, user)

        assert video.processing_status == Video.ProcessingStatus.READY
        assert video.file_url == f"/media/videos/{session.session_id}.mp4"

    def test_incomplete_upload_creates_nothing(self, user):
        service = get_chunked_upload_service()
        session = service.initialize("clip.mp4", 3 * 1024 * 1024, "video/mp4", "Clip", uploader_id=user.pk)

        with pytest.raises(UploadIncompleteError):
            VideoService.finish_chunked_upload(session.session_id, user)

        assert Video.objects.count() == 0

    def test_other_users_session_is_not_found(self, user, other_user):
        session = upload_in_chunks(user, make_payload(1000))

        with pytest.raises(UploadSessionNotFoundError):
            VideoService.finish_chunked_upload(session.session_id, other_user)

    def test_failed_registration_keeps_session_for_retry(self, user, mocker):
        data = make_payload(2 * 1024 * 1024 + 10)
        session = upload_in_chunks(user, data)
        artifact_name = f"videos/{session.session_id}.mov"
        mocker.patch.object(Video, "save", side_effect=DatabaseError("connection lost"))

        with pytest.raises(UploadAssemblyError) as exc_info:
            VideoService.finish_chunked_upload(session.session_id, user)

        assert exc_info.value.category == "unknown"
        assert not storages["videos"].exists(artifact_name)
        service = get_chunked_upload_service()
        assert service.store.get(session.session_id).completing_since is None

        mocker.stopall()
        video = VideoService.finish_chunked_upload(session.session_id, user)

        assert video.file.name == artifact_name
        assert Video.objects.filter(pk=video.pk).exists()
        with storages["videos"].open(video.file.name) as f:
            assert f.read() == data
        assert service.store.get(session.session_id) is None


class TestDirectUpload:
    """Tests for single-request uploads."""

    def test_stores_file_and_row(self, user, sample_video_file):
        video = VideoService.direct_upload(sample_video_file, " Clip ", "a, b", user)

        assert video.title == "Clip"
        assert video.tags == "a, b"
        assert video.upload_method == Video.UploadMethod.DIRECT
        assert video.file_size == 2048
        assert video.file.name == f"videos/{video.id}.mp4"
        assert video.processing_status == Video.ProcessingStatus.READY
        assert Video.objects.filter(pk=video.pk).exists()

    def test_unplayable_video_flagged(self, user):
        upload = SimpleUploadedFile("clip.mov", b"\x00" * 100, content_type="video/quicktime")

        video = VideoService.direct_upload(upload, "Clip", "", user)

        assert video.needs_conversion is True
        assert video.processing_status == Video.ProcessingStatus.PENDING

    def test_extension_accepted_with_generic_type(self, user):
        upload = SimpleUploadedFile("clip.mkv", b"\x00" * 100, content_type="application/octet-stream")

        video = VideoService.direct_upload(upload, "Clip", "", user)

        assert video.needs_conversion is True

    @pytest.mark.parametrize(
        "upload, title, error_code",
        [
            (None, "Clip", "FILE_REQUIRED"),
            (SimpleUploadedFile("clip.mp4", b"\x00", content_type="video/mp4"), "", "TITLE_REQUIRED"),
            (SimpleUploadedFile("clip.mp4", b"", content_type="video/mp4"), "Clip", "EMPTY_FILE"),
            (SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain"), "Clip", "INVALID_FILE_TYPE"),
            (SimpleUploadedFile("<>", b"\x00", content_type="video/mp4"), "Clip", "INVALID_FILENAME"),
        ],
    )
    def test_rejects_invalid_uploads(self, user, upload, title, error_code):
        with pytest.raises(ValidationError) as exc_info:
            VideoService.direct_upload(upload, title, "", user)

        assert exc_info.value.error_code == error_code
        assert Video.objects.count() == 0

    def test_too_large(self, user, settings, sample_video_file):
        settings.CHUNKED_UPLOAD_MAX_FILE_SIZE = 1024

        with pytest.raises(UploadTooLargeError):
            VideoService.direct_upload(sample_video_file, "Clip", "", user)

    def test_storage_failure(self, user, sample_video_file, mocker):
        mocker.patch.object(storages["videos"], "save", side_effect=OSError("read-only file system"))

        with pytest.raises(UploadStorageError):
            VideoService.direct_upload(sample_video_file, "Clip", "", user)

        assert Video.objects.count() == 0

    def test_file_removed_when_row_fails(self, user, sample_video_file, mocker):
        mocker.patch.object(Video, "save", side_effect=RuntimeError("db down"))
        delete = mocker.patch("django.db.models.fields.files.FieldFile.delete")

        with pytest.raises(RuntimeError):
            VideoService.direct_upload(sample_video_file, "Clip", "", user)

        delete.assert_called_once_with(save=False)


class TestLookup:
    def test_get_video(self):
        video = VideoFactory()

        assert VideoService.get_video(video.id) == video

    def test_missing_video(self):
        with pytest.raises(VideoNotFoundError):
            VideoService.get_video(uuid.uuid4())

    def test_owned_video_hides_foreign(self, other_user):
        video = VideoFactory()

        assert VideoService.get_owned_video(video.id, video.uploader) == video
        with pytest.raises(VideoNotFoundError):
            VideoService.get_owned_video(video.id, other_user)


class TestRequestProcessing:
    """Tests for conversion requests."""

    def test_queues_conversion(self):
        video = VideoFactory(needs_conversion=True, content_type="video/quicktime")

        VideoService.request_processing(video, "video/webm")

        video.refresh_from_db()
        assert video.processing_status == Video.ProcessingStatus.QUEUED
        assert video.target_format == "video/webm"
        assert video.processing_requested_at is not None

    def test_rejects_unplayable_target(self):
        video = VideoFactory()

        with pytest.raises(ValidationError) as exc_info:
            VideoService.request_processing(video, "video/quicktime")

        assert exc_info.value.error_code == "INVALID_TARGET_FORMAT"

    @pytest.mark.parametrize("status", [Video.ProcessingStatus.QUEUED, Video.ProcessingStatus.PROCESSING])
    def test_rejects_while_active(self, status):
        video = VideoFactory(processing_status=status)

        with pytest.raises(ConflictError) as exc_info:
            VideoService.request_processing(video)

        assert exc_info.value.error_code == "PROCESSING_IN_PROGRESS"

    def test_failed_conversion_can_be_retried(self):
        video = VideoFactory(processing_status=Video.ProcessingStatus.FAILED)

        VideoService.request_processing(video)

        assert video.processing_status == Video.ProcessingStatus.QUEUED
