"""
Root pytest configuration for the Django project.

This module provides project-wide fixtures and test markers.
App-specific fixtures are defined in each app's tests/conftest.py.

Settings come from config.settings_test (see pyproject.toml): SQLite,
local-memory cache and the in-memory upload session backend.
"""

import pytest


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_views.py, test_tasks.py, test_*service*.py → integration
    - test_validators.py, test_models.py, test_locks.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_views.py",
        "test_tasks.py",
        "test_chunked_upload_service.py",
        "test_video_service.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_validators.py",
        "test_exceptions.py",
        "test_locks.py",
        "test_kvstore.py",
        "test_session_store.py",
        "test_chunk_storage.py",
        "test_thumbnails.py",
        "test_uploader.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def isolated_upload_storage(settings, tmp_path):
    """
    Point artifact and chunk storage at a per-test directory.

    Also resets the cached chunked upload service so each test starts
    with an empty in-memory session ledger.
    """
    from videos.services.chunked_upload import get_chunked_upload_service

    settings.MEDIA_ROOT = tmp_path / "media"
    settings.CHUNKED_UPLOAD_TEMP_DIR = tmp_path / "chunks"
    settings.CHUNKED_UPLOAD_SESSION_BACKEND = "memory"
    settings.CHUNKED_UPLOAD_CHUNK_BACKEND = "local"

    get_chunked_upload_service.cache_clear()
    yield
    get_chunked_upload_service.cache_clear()
