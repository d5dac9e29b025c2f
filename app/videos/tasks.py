"""
Celery tasks for chunked upload housekeeping.

This module provides periodic tasks for:
- Reclaiming upload sessions idle past CHUNKED_UPLOAD_IDLE_TIMEOUT_SECONDS
- Removing chunk artifacts whose session no longer exists

Both are advisory: a missed run only delays cleanup. Sessions are
reclaimed under the same per-session lock the request path uses, so a
sweep never races an in-flight chunk or completion.

Schedules are created by videos/migrations/0002_add_celery_beat_schedules.py.

Usage:
    from videos.tasks import sweep_idle_upload_sessions

    sweep_idle_upload_sessions.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

from videos.services.chunked_upload import get_chunked_upload_service

logger = logging.getLogger(__name__)


# =============================================================================
# Chunked Upload Cleanup Tasks
# =============================================================================


@shared_task
def sweep_idle_upload_sessions() -> dict:
    """
    Periodic task to reclaim abandoned upload sessions.

    Deletes every session whose last activity is older than the idle
    threshold, along with its chunks. Sessions whose lock is held are in
    use and are left for the next run.

    Returns:
        Dict with swept_count, chunks_deleted and skipped_locked.
    """
    result = get_chunked_upload_service().sweep_idle_sessions()

    logger.info(
        "Idle upload sessions swept",
        extra={"event_type": "upload_session_sweep", **result},
    )
    return result


@shared_task
def sweep_orphaned_upload_chunks() -> dict:
    """
    Safety net task to delete chunk artifacts without a matching session.

    Covers sessions that vanished without their chunks being removed, for
    example when the session key expired in Redis or a worker crashed
    between deleting the session and deleting its chunks.

    Returns:
        Dict with checked_count and removed_count.
    """
    result = get_chunked_upload_service().sweep_orphaned_chunks()

    logger.info(
        "Orphaned upload chunks swept",
        extra={"event_type": "upload_chunk_sweep", **result},
    )
    return result
