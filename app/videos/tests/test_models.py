"""
Tests for the Video model.
"""

import uuid
from datetime import timedelta

import pytest
from django.db import IntegrityError

from videos.models import Video, video_upload_path
from videos.tests.factories import VideoFactory

pytestmark = pytest.mark.django_db


class TestVideoUploadPath:
    def test_name_derived_from_id(self):
        video = Video(id=uuid.UUID("12345678123456781234567812345678"))

        assert video_upload_path(video, "../My Clip.MOV") == "videos/12345678-1234-5678-1234-567812345678.mov"

    def test_unknown_extension_dropped(self):
        video = Video(id=uuid.UUID("12345678123456781234567812345678"))

        assert video_upload_path(video, "clip") == "videos/12345678-1234-5678-1234-567812345678"


class TestVideo:
    """Tests for Video persistence."""

    def test_defaults(self):
        video = VideoFactory()

        assert video.processing_status == Video.ProcessingStatus.READY
        assert video.needs_conversion is False
        assert video.target_format == ""
        assert video.file.name == f"videos/{video.id}.mp4"

    def test_file_url(self):
        video = VideoFactory()

        assert video.file_url == f"/media/videos/{video.id}.mp4"

    def test_pending_when_conversion_needed(self):
        video = VideoFactory(needs_conversion=True, content_type="video/quicktime")

        assert video.processing_status == Video.ProcessingStatus.PENDING

    def test_str(self):
        video = VideoFactory(title="Holiday")

        assert str(video) == f"Holiday ({video.id})"

    def test_ordering_newest_first(self):
        older = VideoFactory()
        newer = VideoFactory()
        Video.objects.filter(pk=older.pk).update(created_at=newer.created_at - timedelta(minutes=1))

        assert list(Video.objects.all()) == [newer, older]

    def test_file_size_must_be_positive(self):
        video = VideoFactory.build(file_size=0)
        video.uploader.save()

        with pytest.raises(IntegrityError):
            video.save()
