"""
Video services.

    VideoService: Video rows for direct and chunked uploads, conversion requests
    chunked_upload: Resumable chunked upload session manager
    thumbnails: Placeholder thumbnail rendering
"""
