"""
API views for video uploads.

Provides:
- ChunkedUploadSessionView: Initialize a chunked upload session
- ChunkedUploadSessionDetailView: Progress / abort a session
- ChunkUploadView: Receive one chunk
- ChunkedUploadCompleteView: Assemble chunks into a video
- DirectUploadView: Upload a whole video in one request
- VideoDetailView: Video details
- VideoProcessingView: Conversion status and requests
- VideoThumbnailView: Placeholder thumbnail image

Errors are raised by the services and rendered by
core.exception_handler.application_exception_handler.
"""

from __future__ import annotations

from django.http import HttpResponse
from django.urls import reverse
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from videos.models import Video
from videos.serializers import (
    ChunkedUploadInitResponseSerializer,
    ChunkedUploadInitSerializer,
    ChunkedUploadSessionSerializer,
    ChunkReceiptSerializer,
    ChunkUploadSerializer,
    DirectUploadSerializer,
    ProcessingRequestSerializer,
    ProcessingStatusSerializer,
    ThumbnailQuerySerializer,
    UploadCompleteSerializer,
    VideoSerializer,
)
from videos.services.chunked_upload import get_chunked_upload_service
from videos.services.thumbnails import render_placeholder_thumbnail
from videos.services.videos import VideoService

THUMBNAIL_CACHE_CONTROL = "public, max-age=3600"


# =============================================================================
# Chunked Upload Views
# =============================================================================


class ChunkedUploadSessionView(APIView):
    """
    Create a new chunked upload session.

    POST /api/v1/videos/uploads/
        Initialize a new chunked upload session.

    Authentication:
        Requires valid JWT token.

    Request:
        - filename (required): Original filename
        - file_size (required): Total file size in bytes
        - title (required): Video title
        - content_type (optional): MIME type of the file
        - tags (optional): Comma-separated tags
        - chunk_size (optional): Preferred chunk size in bytes

    Response:
        201 Created: Session created
        400 Bad Request: Missing or invalid fields
        413 Payload Too Large: Declared size above the maximum
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_video_upload_session",
        summary="Create chunked upload session",
        description=(
            "Initialize a resumable upload for a large video. Returns the upload id, "
            "the chunk size to use and the estimated chunk count. Sessions idle for "
            "longer than expires_in seconds are reclaimed."
        ),
        request=ChunkedUploadInitSerializer,
        responses={
            201: OpenApiResponse(
                response=ChunkedUploadInitResponseSerializer,
                description="Session created",
            ),
            400: OpenApiResponse(description="Missing fields, invalid title/tags or filename"),
            401: OpenApiResponse(description="Authentication required"),
            413: OpenApiResponse(description="File too large"),
        },
        tags=["Videos - Chunked Upload"],
    )
    def post(self, request):
        """Create a new chunked upload session."""
        serializer = ChunkedUploadInitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        service = get_chunked_upload_service()
        session = service.initialize(
            filename=data["filename"],
            declared_size=data["file_size"],
            content_type=data["content_type"],
            title=data["title"],
            tags=data["tags"],
            uploader_id=request.user.pk,
            chunk_size=data.get("chunk_size"),
        )

        return Response(
            {
                "success": True,
                "upload_id": session.session_id,
                "chunk_size": session.chunk_size,
                "total_chunks": session.total_chunks,
                "expires_in": service.idle_timeout,
            },
            status=status.HTTP_201_CREATED,
        )


class ChunkedUploadSessionDetailView(APIView):
    """
    Get or abort a chunked upload session.

    GET /api/v1/videos/uploads/{upload_id}/
        Get session progress, including missing chunk indices.

    DELETE /api/v1/videos/uploads/{upload_id}/
        Abort the upload and delete its chunks. Always succeeds.

    Authentication:
        Requires valid JWT token.
        Other users' sessions behave as if they did not exist.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_video_upload_session",
        summary="Get upload session progress",
        description=(
            "Get the progress of an upload session. Clients resuming after a "
            "disconnect use missing_chunks to resend only what is absent."
        ),
        responses={
            200: OpenApiResponse(
                response=ChunkedUploadSessionSerializer,
                description="Session progress",
            ),
            404: OpenApiResponse(description="Session not found or expired"),
        },
        tags=["Videos - Chunked Upload"],
    )
    def get(self, request, upload_id):
        """Get session progress."""
        snapshot = get_chunked_upload_service().progress(upload_id, uploader_id=request.user.pk)
        return Response(ChunkedUploadSessionSerializer(snapshot).data)

    @extend_schema(
        operation_id="abort_video_upload_session",
        summary="Abort upload session",
        description=(
            "Abort an in-progress upload and delete its chunks. Idempotent: unknown "
            "or already finished sessions are reported as cleaned up."
        ),
        responses={
            200: OpenApiResponse(description="Session aborted or already gone"),
        },
        tags=["Videos - Chunked Upload"],
    )
    def delete(self, request, upload_id):
        """Abort the upload session."""
        get_chunked_upload_service().abort(upload_id, uploader_id=request.user.pk)
        return Response({"success": True, "message": "Upload cancelled"})


class ChunkUploadView(APIView):
    """
    Receive one chunk.

    POST /api/v1/videos/uploads/{upload_id}/chunks/
        Content-Type: multipart/form-data
        - chunk_index (required): Zero-based index
        - total_chunks (required): Total chunks for this upload
        - chunk (required): Chunk bytes

    Re-sending an index that was already recorded is a successful no-op.

    Response:
        200 OK: Chunk recorded (or duplicate)
        400 Bad Request: Index out of range or invalid payload
        404 Not Found: Session not found or expired
        409 Conflict: total_chunks disagrees with the session's total
        507 Insufficient Storage: Chunk could not be stored
    """

    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    @extend_schema(
        operation_id="upload_video_chunk",
        summary="Upload chunk",
        description=(
            "Upload one chunk of a session. Chunks may arrive in any order. The "
            "first accepted chunk fixes total_chunks; later chunks must agree. "
            "Progress is computed by the server."
        ),
        request={"multipart/form-data": ChunkUploadSerializer},
        responses={
            200: OpenApiResponse(response=ChunkReceiptSerializer, description="Chunk recorded"),
            400: OpenApiResponse(description="Chunk index out of range or invalid payload"),
            404: OpenApiResponse(description="Session not found or expired"),
            409: OpenApiResponse(description="Total chunk count mismatch"),
            507: OpenApiResponse(description="Storage failure"),
        },
        tags=["Videos - Chunked Upload"],
    )
    def post(self, request, upload_id):
        """Record one chunk."""
        serializer = ChunkUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        receipt = get_chunked_upload_service().receive_chunk(
            upload_id,
            chunk_index=data["chunk_index"],
            total_chunks=data["total_chunks"],
            data=data["chunk"],
            uploader_id=request.user.pk,
        )

        return Response(
            {
                "success": True,
                "chunk_index": receipt.chunk_index,
                "duplicate": receipt.duplicate,
                "received_chunks": receipt.received_chunks,
                "total_chunks": receipt.total_chunks,
                "progress": receipt.progress,
            }
        )


class ChunkedUploadCompleteView(APIView):
    """
    Assemble an upload into a video.

    POST /api/v1/videos/uploads/{upload_id}/complete/

    Response:
        201 Created: Video stored; session destroyed
        400 Bad Request: Chunks missing (details.missing_chunks)
        404 Not Found: Session not found or expired
        410 Gone: A recorded chunk's data is missing
        507 Insufficient Storage: Artifact could not be stored
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="complete_video_upload",
        summary="Complete chunked upload",
        description=(
            "Assemble all chunks in index order and store the video. On failure the "
            "session is kept so completion can be retried without re-uploading."
        ),
        request=None,
        responses={
            201: OpenApiResponse(response=UploadCompleteSerializer, description="Video stored"),
            400: OpenApiResponse(description="Upload incomplete"),
            404: OpenApiResponse(description="Session not found or expired"),
            409: OpenApiResponse(description="Completion already in progress"),
            410: OpenApiResponse(description="Chunk data missing"),
            507: OpenApiResponse(description="Storage failure"),
        },
        tags=["Videos - Chunked Upload"],
    )
    def post(self, request, upload_id):
        """Complete the upload."""
        video = VideoService.finish_chunked_upload(upload_id, request.user)
        return Response(
            _upload_response(video, upload_id=upload_id),
            status=status.HTTP_201_CREATED,
        )


# =============================================================================
# Direct Upload
# =============================================================================


class DirectUploadView(APIView):
    """
    Upload a whole video in one request.

    POST /api/v1/videos/upload/
        Content-Type: multipart/form-data
        - video (required): The video file
        - title (required): Video title
        - tags (optional): Comma-separated tags

    Clients switch to the chunked protocol for files larger than one chunk.
    """

    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    @extend_schema(
        operation_id="upload_video",
        summary="Upload video",
        description=(
            "Upload a small video in a single request. The file must be a "
            "recognised video type; formats browsers cannot play are flagged "
            "for conversion."
        ),
        request={"multipart/form-data": DirectUploadSerializer},
        responses={
            201: OpenApiResponse(response=UploadCompleteSerializer, description="Video stored"),
            400: OpenApiResponse(description="Missing file/title or not a video"),
            413: OpenApiResponse(description="File too large"),
            507: OpenApiResponse(description="Storage failure"),
        },
        tags=["Videos - Upload"],
    )
    def post(self, request):
        """Upload a video."""
        serializer = DirectUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        video = VideoService.direct_upload(
            uploaded_file=data.get("video"),
            title=data["title"],
            tags=data["tags"],
            uploader=request.user,
        )
        return Response(_upload_response(video), status=status.HTTP_201_CREATED)


# =============================================================================
# Videos
# =============================================================================


class VideoDetailView(APIView):
    """
    GET /api/v1/videos/{video_id}/
        Get video details.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_video",
        summary="Get video",
        responses={
            200: OpenApiResponse(response=VideoSerializer, description="Video details"),
            404: OpenApiResponse(description="Video not found"),
        },
        tags=["Videos - Videos"],
    )
    def get(self, request, video_id):
        video = VideoService.get_video(video_id)
        return Response(VideoSerializer(video).data)


class VideoProcessingView(APIView):
    """
    Conversion status and requests.

    GET /api/v1/videos/{video_id}/processing/
        Current conversion status.

    POST /api/v1/videos/{video_id}/processing/
        Queue a conversion for the external transcoder (uploader only).
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_video_processing_status",
        summary="Get processing status",
        responses={
            200: OpenApiResponse(response=ProcessingStatusSerializer, description="Processing status"),
            404: OpenApiResponse(description="Video not found"),
        },
        tags=["Videos - Processing"],
    )
    def get(self, request, video_id):
        video = VideoService.get_video(video_id)
        return Response(_processing_response(request, video))

    @extend_schema(
        operation_id="request_video_processing",
        summary="Request conversion",
        description=(
            "Record a conversion request. The transcoder runs elsewhere and "
            "reports progress through the processing status."
        ),
        request=ProcessingRequestSerializer,
        responses={
            202: OpenApiResponse(response=ProcessingStatusSerializer, description="Conversion queued"),
            400: OpenApiResponse(description="Unsupported target format"),
            404: OpenApiResponse(description="Video not found"),
            409: OpenApiResponse(description="Conversion already queued or running"),
        },
        tags=["Videos - Processing"],
    )
    def post(self, request, video_id):
        serializer = ProcessingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        video = VideoService.get_owned_video(video_id, request.user)
        video = VideoService.request_processing(
            video,
            target_format=serializer.validated_data["target_format"],
        )
        return Response(_processing_response(request, video), status=status.HTTP_202_ACCEPTED)


class VideoThumbnailView(APIView):
    """
    GET /api/v1/videos/{video_id}/thumbnail/?time=N
        Placeholder PNG thumbnail, cacheable for an hour.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_video_thumbnail",
        summary="Get video thumbnail",
        parameters=[
            OpenApiParameter(
                name="time",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Timestamp in seconds (default 0)",
            ),
        ],
        responses={
            (200, "image/png"): OpenApiResponse(
                response=OpenApiTypes.BINARY,
                description="PNG thumbnail",
            ),
            404: OpenApiResponse(description="Video not found"),
        },
        tags=["Videos - Videos"],
    )
    def get(self, request, video_id):
        query = ThumbnailQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        video = VideoService.get_video(video_id)
        image = render_placeholder_thumbnail(str(video.id), query.validated_data["time"])

        response = HttpResponse(image, content_type="image/png")
        response["Cache-Control"] = THUMBNAIL_CACHE_CONTROL
        return response


# =============================================================================
# Helpers
# =============================================================================


def _upload_response(video: Video, upload_id: str | None = None) -> dict:
    if video.needs_conversion:
        message = "Video uploaded. It will be converted for web playback."
    else:
        message = "Video uploaded successfully"

    payload = {
        "success": True,
        "video_id": str(video.id),
        "file_url": video.file_url,
        "needs_conversion": video.needs_conversion,
        "message": message,
    }
    if upload_id is not None:
        payload["upload_id"] = upload_id
    return payload


def _processing_response(request, video: Video) -> dict:
    finished = video.processing_status in (
        Video.ProcessingStatus.READY,
        Video.ProcessingStatus.COMPLETED,
    )
    thumbnail_url = None
    if finished:
        thumbnail_url = request.build_absolute_uri(
            reverse("videos:thumbnail", kwargs={"video_id": video.id})
        )

    return {
        "success": True,
        "video_id": str(video.id),
        "status": video.processing_status,
        "needs_conversion": video.needs_conversion,
        "output_format": video.target_format,
        "thumbnail_url": thumbnail_url,
        "message": f"Video processing {video.get_processing_status_display().lower()}",
    }
