"""
URL configuration for the Django application.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/token/            - Obtain JWT pair (simplejwt)
    /api/v1/auth/token/refresh/    - Refresh access token
    /api/v1/videos/                - Video endpoints
        uploads/                   - Initialize chunked upload session
        uploads/{upload_id}/       - Get progress / abort session
        uploads/{upload_id}/chunks/    - Upload one chunk
        uploads/{upload_id}/complete/  - Assemble and register video
        upload/                    - Single-request upload
        {video_id}/                - Video details
        {video_id}/processing/     - Conversion status / request conversion
        {video_id}/thumbnail/      - Placeholder thumbnail (PNG)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("videos/", include("videos.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# Serve locally stored videos in development
if settings.DEBUG and settings.VIDEO_STORAGE_BACKEND == "local":
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Video Uploads Admin"
admin.site.site_title = "Admin Portal"
admin.site.index_title = "Welcome to the Admin Portal"
