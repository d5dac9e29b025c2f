"""
Base service layer patterns for business logic encapsulation.

Services encapsulate business logic separate from views and models.
Views handle HTTP concerns, models handle data, services handle logic.

Failures are raised as core.exceptions.BaseApplicationError subclasses;
the DRF exception handler turns them into error responses, so views stay
free of try/except blocks.

Usage:
    from core.exceptions import ValidationError
    from core.services import BaseService

    class VideoService(BaseService):
        @classmethod
        def rename(cls, video: Video, title: str) -> Video:
            if not title.strip():
                raise ValidationError("Title is required", error_code="TITLE_REQUIRED")

            with cls.atomic():
                video.title = title
                video.save(update_fields=["title", "updated_at"])

            cls.get_logger().info("Renamed video", extra={"video_id": str(video.id)})
            return video
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator


class BaseService:
    """
    Base class for service layer classes.

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Raise core.exceptions errors for expected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the service class for easy filtering."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Thin wrapper around Django's transaction.atomic() that makes
        transaction boundaries explicit in service code.
        """
        with transaction.atomic():
            yield
