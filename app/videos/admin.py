"""Django admin configuration for videos app."""

from django.contrib import admin

from videos.models import Video


@admin.register(Video)
class VideoAdmin(admin.ModelAdmin):
    """Admin configuration for Video model."""

    list_display = [
        "id",
        "title",
        "original_filename",
        "file_size",
        "uploader",
        "upload_method",
        "needs_conversion",
        "processing_status",
        "created_at",
    ]
    list_filter = [
        "upload_method",
        "needs_conversion",
        "processing_status",
    ]
    search_fields = ["title", "tags", "original_filename", "uploader__username"]
    readonly_fields = [
        "id",
        "file_size",
        "content_type",
        "upload_method",
        "created_at",
        "updated_at",
        "processing_requested_at",
    ]
    raw_id_fields = ["uploader"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
