"""
Core views providing infrastructure endpoints.

These are not part of the video domain but are needed by orchestration
(Docker health checks, load balancers, Kubernetes probes).
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django_redis.exceptions import ConnectionInterrupted
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Report database and cache connectivity.

    The upload session ledger lives in Redis, so unlike a plain cache an
    unreachable Redis makes chunked uploads fail. It is reported as
    "degraded" rather than unhealthy, since direct uploads still work.

    HTTP Status Codes:
        200: Database reachable
        503: Database unreachable

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "cache": "connected"
        }
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    status_code = 200

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        status_code = 503

    try:
        cache.set("health_check", "ok", timeout=1)
        connected = cache.get("health_check") == "ok"
    except (ConnectionInterrupted, RedisError):
        logger.warning("Health check: cache unreachable", exc_info=True)
        connected = False

    health_status["cache"] = "connected" if connected else "disconnected"
    if not connected and status_code == 200:
        health_status["status"] = "degraded"

    return JsonResponse(health_status, status=status_code)
