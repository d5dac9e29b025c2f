"""
URL configuration for videos app.

API Documentation Groups (following [App Name] - [Group Name] pattern):

Videos - Chunked Upload:
    POST /uploads/                          - Create upload session
    GET /uploads/{upload_id}/               - Get session progress
    DELETE /uploads/{upload_id}/            - Abort session
    POST /uploads/{upload_id}/chunks/       - Upload chunk
    POST /uploads/{upload_id}/complete/     - Assemble and store video

Videos - Upload:
    POST /upload/                           - Upload video in one request

Videos - Videos:
    GET /{video_id}/                        - Get video details
    GET /{video_id}/thumbnail/              - Get placeholder thumbnail

Videos - Processing:
    GET /{video_id}/processing/             - Get conversion status
    POST /{video_id}/processing/            - Request conversion
"""

from django.urls import path

from videos.views import (
    ChunkedUploadCompleteView,
    ChunkedUploadSessionDetailView,
    ChunkedUploadSessionView,
    ChunkUploadView,
    DirectUploadView,
    VideoDetailView,
    VideoProcessingView,
    VideoThumbnailView,
)

app_name = "videos"

urlpatterns = [
    # Chunked Upload
    path("uploads/", ChunkedUploadSessionView.as_view(), name="upload-session-create"),
    path(
        "uploads/<str:upload_id>/",
        ChunkedUploadSessionDetailView.as_view(),
        name="upload-session-detail",
    ),
    path(
        "uploads/<str:upload_id>/chunks/",
        ChunkUploadView.as_view(),
        name="upload-chunk",
    ),
    path(
        "uploads/<str:upload_id>/complete/",
        ChunkedUploadCompleteView.as_view(),
        name="upload-complete",
    ),
    # Direct upload
    path("upload/", DirectUploadView.as_view(), name="upload"),
    # Videos
    path("<uuid:video_id>/", VideoDetailView.as_view(), name="detail"),
    path(
        "<uuid:video_id>/processing/",
        VideoProcessingView.as_view(),
        name="processing",
    ),
    path(
        "<uuid:video_id>/thumbnail/",
        VideoThumbnailView.as_view(),
        name="thumbnail",
    ),
]
