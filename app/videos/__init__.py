"""
Videos app - creator video uploads.

Two upload paths share one artifact store (the "videos" storage alias):

    Direct:  POST /api/v1/videos/upload/ with the whole file in one request.
    Chunked: init -> chunk x N -> complete (or abort), driven by
             videos.services.chunked_upload and the upload_client package.

Completed uploads become Video rows; formats that browsers cannot play
directly are flagged needs_conversion for the external transcoder.
"""
