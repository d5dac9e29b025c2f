"""
Test fixtures for videos app.

Provides fixtures for:
- Authenticated test clients
- A chunked upload service wired to in-memory and temp-dir backends
- Deterministic payloads and chunk helpers
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

import pytest
from django.core.files.storage import FileSystemStorage
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from core.kvstore import InMemoryKeyValueStore
from videos.services.chunked_upload import (
    ChunkedUploadService,
    LocalChunkStorage,
    UploadSessionStore,
)
from videos.tests.factories import UserFactory

if TYPE_CHECKING:
    from django.contrib.auth.models import User


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client() -> APIClient:
    """Return unauthenticated API client."""
    return APIClient()


@pytest.fixture
def user(db) -> "User":
    return UserFactory()


@pytest.fixture
def other_user(db) -> "User":
    return UserFactory()


@pytest.fixture
def authenticated_client(user: "User") -> APIClient:
    """Return API client authenticated with JWT token."""
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


@pytest.fixture
def other_client(other_user: "User") -> APIClient:
    client = APIClient()
    refresh = RefreshToken.for_user(other_user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def session_store(kv_store) -> UploadSessionStore:
    return UploadSessionStore(kv_store, lock_timeout=1.0)


@pytest.fixture
def chunk_storage(tmp_path) -> LocalChunkStorage:
    return LocalChunkStorage(tmp_path / "chunk-store")


@pytest.fixture
def artifact_storage(tmp_path) -> FileSystemStorage:
    return FileSystemStorage(location=tmp_path / "artifacts", base_url="/media/")


@pytest.fixture
def service(session_store, chunk_storage, artifact_storage) -> ChunkedUploadService:
    """
    Chunked upload service with tiny chunk bounds.

    min_chunk_size=1 lets tests negotiate chunk sizes of a few bytes.
    """
    return ChunkedUploadService(
        store=session_store,
        chunk_storage=chunk_storage,
        artifact_storage=artifact_storage,
        chunk_size=5_000_000,
        min_chunk_size=1,
        max_chunk_size=5_000_000,
        max_file_size=2 * 1024 * 1024 * 1024,
        idle_timeout=3600,
    )


# =============================================================================
# Payload Fixtures
# =============================================================================


def make_payload(size: int, seed: int = 0) -> bytes:
    """Deterministic pseudo-random bytes."""
    return random.Random(seed).randbytes(size)


def split(payload: bytes, chunk_size: int) -> list[bytes]:
    return [payload[i : i + chunk_size] for i in range(0, len(payload), chunk_size)]


@pytest.fixture
def payload() -> bytes:
    """300 bytes split as 3 x 100 by the tests that use it."""
    return make_payload(300)


@pytest.fixture
def start_session(service):
    """
    Initialize a session for a payload.

    Usage:
        session = start_session(payload, chunk_size=100)
    """

    def _start(data: bytes, chunk_size: int = 100, **kwargs):
        params = {
            "filename": "holiday.mp4",
            "declared_size": len(data),
            "content_type": "video/mp4",
            "title": "Holiday",
            "tags": "travel",
            "chunk_size": chunk_size,
        }
        params.update(kwargs)
        return service.initialize(**params)

    return _start


@pytest.fixture
def sample_video_file() -> SimpleUploadedFile:
    return SimpleUploadedFile(
        name="clip.mp4",
        content=make_payload(2048, seed=7),
        content_type="video/mp4",
    )
