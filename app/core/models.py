"""
Abstract base models shared by domain apps.

Base Classes:
    BaseModel: Abstract model with timestamps (created_at, updated_at)
    UUIDPrimaryKeyMixin: UUID primary key instead of an auto-increment integer

Usage:
    from core.models import BaseModel, UUIDPrimaryKeyMixin

    class Video(UUIDPrimaryKeyMixin, BaseModel):
        title = models.CharField(max_length=200)

Note:
    Always list mixins before BaseModel in inheritance.
"""

from __future__ import annotations

import uuid

from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model with creation and modification timestamps.

    Fields:
        created_at: Set once when the row is inserted
        updated_at: Refreshed on every save
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last modified",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"


class UUIDPrimaryKeyMixin(models.Model):
    """
    Non-guessable UUID primary key.

    Public URLs carry these ids, so they must not reveal record counts
    or creation order.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier (UUID v4)",
    )

    class Meta:
        abstract = True
