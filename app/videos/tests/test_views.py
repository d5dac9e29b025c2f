"""
Tests for video API views.

Tests cover:
- Chunked upload protocol over HTTP (init, chunk, progress, complete, abort)
- Error rendering (error_code, category, details)
- Direct upload
- Video detail, processing status/requests and thumbnails
"""

from __future__ import annotations

import uuid

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from rest_framework import status

from videos.models import Video
from videos.tests.conftest import make_payload, split
from videos.tests.factories import VideoFactory

pytestmark = pytest.mark.django_db


def init_upload(client, data: bytes, **overrides):
    payload = {
        "filename": "holiday.mov",
        "file_size": len(data),
        "content_type": "video/quicktime",
        "title": "Holiday",
        "tags": "travel",
        "chunk_size": 1024 * 1024,
    }
    payload.update(overrides)
    return client.post(reverse("videos:upload-session-create"), payload, format="json")


def send_chunk(client, upload_id, index, total, data):
    return client.post(
        reverse("videos:upload-chunk", kwargs={"upload_id": upload_id}),
        {
            "chunk_index": index,
            "total_chunks": total,
            "chunk": SimpleUploadedFile("blob", data, content_type="application/octet-stream"),
        },
        format="multipart",
    )


# =============================================================================
# Chunked Upload Protocol
# =============================================================================


class TestChunkedUploadSessionCreate:
    """Tests for POST /api/v1/videos/uploads/."""

    def test_creates_session(self, authenticated_client):
        response = init_upload(authenticated_client, make_payload(3 * 1024 * 1024 + 1))

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["success"] is True
        assert len(response.data["upload_id"]) == 32
        assert response.data["chunk_size"] == 1024 * 1024
        assert response.data["total_chunks"] == 4
        assert response.data["expires_in"] == 3600

    def test_requires_authentication(self, api_client):
        response = init_upload(api_client, b"x" * 10)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data["success"] is False

    def test_missing_fields(self, authenticated_client):
        response = authenticated_client.post(
            reverse("videos:upload-session-create"),
            {"title": "Clip"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["category"] == "validation"
        assert "filename" in response.data["details"]

    def test_too_large(self, authenticated_client):
        response = init_upload(authenticated_client, b"", file_size=3 * 1024**3)

        assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
        assert response.data["error_code"] == "UPLOAD_TOO_LARGE"
        assert response.data["category"] == "too_large"
        assert response.data["details"]["max_size"] == 2 * 1024**3

    def test_blank_title(self, authenticated_client):
        response = init_upload(authenticated_client, b"x" * 10, title="   ")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "TITLE_REQUIRED"


class TestChunkUpload:
    """Tests for POST /api/v1/videos/uploads/{upload_id}/chunks/."""

    def test_receives_chunk(self, authenticated_client):
        data = make_payload(3 * 1024 * 1024)
        upload_id = init_upload(authenticated_client, data).data["upload_id"]

        response = send_chunk(authenticated_client, upload_id, 1, 3, split(data, 1024 * 1024)[1])

        assert response.status_code == status.HTTP_200_OK
        assert response.data["success"] is True
        assert response.data["duplicate"] is False
        assert response.data["received_chunks"] == 1
        assert response.data["progress"] == pytest.approx(1 / 3, abs=1e-4)

    def test_duplicate_chunk(self, authenticated_client):
        data = make_payload(2 * 1024 * 1024)
        upload_id = init_upload(authenticated_client, data).data["upload_id"]
        chunk = split(data, 1024 * 1024)[0]
        send_chunk(authenticated_client, upload_id, 0, 2, chunk)

        response = send_chunk(authenticated_client, upload_id, 0, 2, chunk)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["duplicate"] is True
        assert response.data["received_chunks"] == 1

    def test_index_out_of_range(self, authenticated_client):
        data = make_payload(2 * 1024 * 1024)
        upload_id = init_upload(authenticated_client, data).data["upload_id"]

        response = send_chunk(authenticated_client, upload_id, 2, 2, b"x" * 10)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "CHUNK_INDEX_OUT_OF_RANGE"
        assert response.data["category"] == "range"

    def test_total_mismatch(self, authenticated_client):
        data = make_payload(2 * 1024 * 1024)
        upload_id = init_upload(authenticated_client, data).data["upload_id"]
        send_chunk(authenticated_client, upload_id, 0, 2, b"x" * 10)

        response = send_chunk(authenticated_client, upload_id, 1, 3, b"x" * 10)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "CHUNK_COUNT_MISMATCH"

    def test_unknown_session(self, authenticated_client):
        response = send_chunk(authenticated_client, "0" * 32, 0, 1, b"x")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "UPLOAD_SESSION_NOT_FOUND"
        assert response.data["category"] == "not_found"

    def test_other_users_session(self, authenticated_client, other_client):
        upload_id = init_upload(authenticated_client, b"x" * 10).data["upload_id"]

        response = send_chunk(other_client, upload_id, 0, 1, b"x" * 10)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_missing_chunk_field(self, authenticated_client):
        upload_id = init_upload(authenticated_client, b"x" * 10).data["upload_id"]

        response = authenticated_client.post(
            reverse("videos:upload-chunk", kwargs={"upload_id": upload_id}),
            {"chunk_index": 0, "total_chunks": 1},
            format="multipart",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "chunk" in response.data["details"]

    def test_storage_failure_hides_server_paths(self, authenticated_client, settings, mocker):
        """A disk error renders as 507 without the OS message or path."""
        settings.DEBUG = False
        upload_id = init_upload(authenticated_client, b"x" * 10).data["upload_id"]
        mocker.patch(
            "videos.services.chunked_upload.chunks.os.replace",
            side_effect=OSError(28, "No space left on device", "/srv/internal/x.part"),
        )

        response = send_chunk(authenticated_client, upload_id, 0, 1, b"x" * 10)

        assert response.status_code == 507
        assert response.data["category"] == "storage"
        assert "reason" not in response.data.get("details", {})
        assert "debug" not in response.data
        assert b"/srv/internal" not in response.content
        assert b"No space left" not in response.content


class TestChunkedUploadSessionDetail:
    """Tests for GET/DELETE /api/v1/videos/uploads/{upload_id}/."""

    def test_progress(self, authenticated_client):
        data = make_payload(3 * 1024 * 1024)
        upload_id = init_upload(authenticated_client, data).data["upload_id"]
        send_chunk(authenticated_client, upload_id, 2, 3, split(data, 1024 * 1024)[2])

        response = authenticated_client.get(
            reverse("videos:upload-session-detail", kwargs={"upload_id": upload_id})
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["missing_chunks"] == [0, 1]
        assert response.data["received_chunks"] == 1
        assert response.data["filename"] == "holiday.mov"

    def test_abort(self, authenticated_client):
        """Abort, then chunk submission reports the session as not found."""
        data = make_payload(2 * 1024 * 1024)
        upload_id = init_upload(authenticated_client, data).data["upload_id"]
        send_chunk(authenticated_client, upload_id, 0, 2, split(data, 1024 * 1024)[0])
        url = reverse("videos:upload-session-detail", kwargs={"upload_id": upload_id})

        response = authenticated_client.delete(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"success": True, "message": "Upload cancelled"}
        assert send_chunk(authenticated_client, upload_id, 1, 2, b"x").status_code == 404
        assert authenticated_client.get(url).status_code == 404

    def test_abort_unknown_session_succeeds(self, authenticated_client):
        response = authenticated_client.delete(
            reverse("videos:upload-session-detail", kwargs={"upload_id": "not-a-real-id"})
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["success"] is True


class TestChunkedUploadComplete:
    """Tests for POST /api/v1/videos/uploads/{upload_id}/complete/."""

    def test_out_of_order_upload_completes(self, authenticated_client, user):
        data = make_payload(2 * 1024 * 1024 + 500, seed=3)
        upload_id = init_upload(authenticated_client, data).data["upload_id"]
        chunks = split(data, 1024 * 1024)
        for index in (1, 0, 2):
            send_chunk(authenticated_client, upload_id, index, 3, chunks[index])

        response = authenticated_client.post(
            reverse("videos:upload-complete", kwargs={"upload_id": upload_id})
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["upload_id"] == upload_id
        assert response.data["video_id"] == str(uuid.UUID(upload_id))
        assert response.data["needs_conversion"] is True
        assert response.data["file_url"] == f"/media/videos/{upload_id}.mov"
        video = Video.objects.get(pk=upload_id)
        assert video.uploader == user
        with video.file.open("rb") as f:
            assert f.read() == data

    def test_incomplete(self, authenticated_client):
        data = make_payload(3 * 1024 * 1024)
        upload_id = init_upload(authenticated_client, data).data["upload_id"]
        chunks = split(data, 1024 * 1024)
        send_chunk(authenticated_client, upload_id, 0, 3, chunks[0])
        send_chunk(authenticated_client, upload_id, 1, 3, chunks[1])

        response = authenticated_client.post(
            reverse("videos:upload-complete", kwargs={"upload_id": upload_id})
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "UPLOAD_INCOMPLETE"
        assert response.data["category"] == "incomplete"
        assert response.data["details"]["missing_chunks"] == [2]
        assert response.data["error"] == "Upload incomplete. 2/3 chunks uploaded"

    def test_unknown_session(self, authenticated_client):
        response = authenticated_client.post(
            reverse("videos:upload-complete", kwargs={"upload_id": "f" * 32})
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# Direct Upload
# =============================================================================


class TestDirectUpload:
    """Tests for POST /api/v1/videos/upload/."""

    def test_uploads_video(self, authenticated_client, sample_video_file):
        response = authenticated_client.post(
            reverse("videos:upload"),
            {"video": sample_video_file, "title": "Clip", "tags": "a"},
            format="multipart",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["needs_conversion"] is False
        assert response.data["message"] == "Video uploaded successfully"
        assert "upload_id" not in response.data
        assert Video.objects.filter(pk=response.data["video_id"]).exists()

    def test_missing_file(self, authenticated_client):
        response = authenticated_client.post(
            reverse("videos:upload"),
            {"title": "Clip"},
            format="multipart",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "FILE_REQUIRED"

    def test_not_a_video(self, authenticated_client):
        response = authenticated_client.post(
            reverse("videos:upload"),
            {"video": SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain"), "title": "Clip"},
            format="multipart",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_FILE_TYPE"


# =============================================================================
# Videos
# =============================================================================


class TestVideoDetail:
    def test_get_video(self, authenticated_client):
        video = VideoFactory(title="Trip", tags="a, b")

        response = authenticated_client.get(reverse("videos:detail", kwargs={"video_id": video.id}))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["title"] == "Trip"
        assert response.data["uploader"] == video.uploader.username
        assert response.data["file_url"] == f"/media/videos/{video.id}.mp4"

    def test_missing_video(self, authenticated_client):
        response = authenticated_client.get(reverse("videos:detail", kwargs={"video_id": uuid.uuid4()}))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "VIDEO_NOT_FOUND"


class TestVideoProcessing:
    """Tests for GET/POST /api/v1/videos/{video_id}/processing/."""

    def test_ready_video_has_thumbnail(self, authenticated_client):
        video = VideoFactory()

        response = authenticated_client.get(reverse("videos:processing", kwargs={"video_id": video.id}))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == "ready"
        assert response.data["message"] == "Video processing ready"
        assert response.data["thumbnail_url"].endswith(f"/api/v1/videos/{video.id}/thumbnail/")

    def test_pending_video_has_no_thumbnail(self, authenticated_client):
        video = VideoFactory(needs_conversion=True)

        response = authenticated_client.get(reverse("videos:processing", kwargs={"video_id": video.id}))

        assert response.data["status"] == "pending"
        assert response.data["thumbnail_url"] is None

    def test_request_conversion(self, authenticated_client, user):
        video = VideoFactory(uploader=user, needs_conversion=True)

        response = authenticated_client.post(
            reverse("videos:processing", kwargs={"video_id": video.id}),
            {"target_format": "video/mp4"},
            format="json",
        )

        assert response.status_code == status.HTTP_202_ACCEPTED
        assert response.data["status"] == "queued"
        assert response.data["output_format"] == "video/mp4"

    def test_request_conversion_twice_conflicts(self, authenticated_client, user):
        video = VideoFactory(uploader=user, processing_status=Video.ProcessingStatus.QUEUED)

        response = authenticated_client.post(
            reverse("videos:processing", kwargs={"video_id": video.id}),
            format="json",
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "PROCESSING_IN_PROGRESS"

    def test_only_uploader_can_request(self, other_client):
        video = VideoFactory()

        response = other_client.post(
            reverse("videos:processing", kwargs={"video_id": video.id}),
            format="json",
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestVideoThumbnail:
    def test_returns_png(self, authenticated_client):
        video = VideoFactory()

        response = authenticated_client.get(
            reverse("videos:thumbnail", kwargs={"video_id": video.id}), {"time": 12}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response["Content-Type"] == "image/png"
        assert response["Cache-Control"] == "public, max-age=3600"
        assert response.content.startswith(b"\x89PNG")

    def test_negative_time_rejected(self, authenticated_client):
        video = VideoFactory()

        response = authenticated_client.get(
            reverse("videos:thumbnail", kwargs={"video_id": video.id}), {"time": -1}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_video(self, authenticated_client):
        response = authenticated_client.get(reverse("videos:thumbnail", kwargs={"video_id": uuid.uuid4()}))

        assert response.status_code == status.HTTP_404_NOT_FOUND
