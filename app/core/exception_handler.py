"""
DRF exception handler rendering the application error envelope.

Kept apart from core.exceptions so the exception classes import without
pulling in DRF (and through it the auth models) while apps are loading.

Every error response has the shape:

    {
        "success": false,
        "error": "Upload incomplete. 2/3 chunks uploaded",
        "error_code": "UPLOAD_INCOMPLETE",
        "category": "incomplete",
        "details": {"missing_chunks": [2]}
    }

Configured via REST_FRAMEWORK["EXCEPTION_HANDLER"].
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


def application_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    Render BaseApplicationError subclasses as error responses.

    Anything else is delegated to DRF's default handler, whose responses
    are normalised to carry an error_code and category as well.

    Internal error text (the exception repr and its cause) is added under
    "debug" only when DEBUG is on.
    """
    if isinstance(exc, BaseApplicationError):
        payload: dict[str, Any] = {"success": False, **exc.to_dict()}
        if settings.DEBUG:
            payload["debug"] = repr(exc)
            if exc.__cause__ is not None:
                payload["debug_cause"] = repr(exc.__cause__)

        log_level = logging.ERROR if exc.http_status >= 500 else logging.INFO
        logger.log(
            log_level,
            "Request failed with application error",
            extra={
                "event_type": "application_error",
                "error_code": exc.error_code,
                "category": exc.category,
                "view": context.get("view").__class__.__name__,
            },
        )
        return Response(payload, status=exc.http_status)

    response = exception_handler(exc, context)
    if response is None:
        return None

    data = response.data
    if isinstance(data, dict) and "detail" in data and len(data) == 1:
        message = str(data["detail"])
        details: dict[str, Any] = {}
    else:
        message = "Invalid request."
        details = data if isinstance(data, dict) else {"errors": data}

    code = getattr(exc, "default_code", "error")
    response.data = {
        "success": False,
        "error": message,
        "error_code": str(code).upper(),
        "category": "validation" if response.status_code == 400 else str(code),
    }
    if details:
        response.data["details"] = details
    return response
