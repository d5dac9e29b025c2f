"""
Data types for the chunked upload session manager.

UploadSession is the ledger of one in-flight upload. It is stored as JSON
in a shared key-value store so every web process sees the same state.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Ledger Types
# =============================================================================


@dataclass
class ChunkRecord:
    """
    One accepted chunk.

    Attributes:
        size: Bytes actually written for this chunk
        handle: Chunk storage handle (file name or object key)
        received_at: When the chunk was recorded
    """

    size: int
    handle: str
    received_at: datetime


@dataclass
class UploadSession:
    """
    Server-side record of one in-progress chunked upload.

    total_chunks starts as an estimate from declared_size / chunk_size.
    The first accepted chunk call fixes it (total_confirmed); later calls
    declaring a different total are rejected.

    version is bumped on every write and guards compare-and-swap updates.
    """

    session_id: str
    original_name: str
    sanitized_name: str
    final_name: str
    declared_size: int
    content_type: str
    chunk_size: int
    total_chunks: int
    title: str
    tags: str = ""
    uploader_id: int | str | None = None
    total_confirmed: bool = False
    received_chunks: dict[int, ChunkRecord] = field(default_factory=dict)
    created_at: datetime | None = None
    last_activity_at: datetime | None = None
    completing_since: datetime | None = None
    version: int = 0

    # =========================================================================
    # Derived State
    # =========================================================================

    @property
    def received_count(self) -> int:
        """Cardinality of the ledger, never a separately maintained counter."""
        return len(self.received_chunks)

    @property
    def bytes_received(self) -> int:
        return sum(record.size for record in self.received_chunks.values())

    @property
    def is_complete(self) -> bool:
        return self.received_count == self.total_chunks

    @property
    def progress(self) -> float:
        if self.total_chunks <= 0:
            return 0.0
        return self.received_count / self.total_chunks

    def missing_chunks(self) -> list[int]:
        return [i for i in range(self.total_chunks) if i not in self.received_chunks]

    def is_owned_by(self, uploader_id: int | str | None) -> bool:
        """Sessions without an owner, or checks without a requester, always match."""
        if uploader_id is None or self.uploader_id is None:
            return True
        return str(self.uploader_id) == str(uploader_id)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_json(self) -> str:
        data = asdict(self)
        data["received_chunks"] = {
            str(index): {
                "size": record.size,
                "handle": record.handle,
                "received_at": _dump_dt(record.received_at),
            }
            for index, record in self.received_chunks.items()
        }
        for name in ("created_at", "last_activity_at", "completing_since"):
            data[name] = _dump_dt(data[name])
        return json.dumps(data, sort_keys=True)

    @classmethod
    def from_json(cls, raw: str) -> UploadSession:
        data: dict[str, Any] = json.loads(raw)
        data["received_chunks"] = {
            int(index): ChunkRecord(
                size=record["size"],
                handle=record["handle"],
                received_at=_load_dt(record["received_at"]),
            )
            for index, record in data.get("received_chunks", {}).items()
        }
        for name in ("created_at", "last_activity_at", "completing_since"):
            data[name] = _load_dt(data.get(name))
        return cls(**data)


def _dump_dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _load_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# =============================================================================
# Result Types
# =============================================================================


@dataclass(frozen=True)
class ChunkReceipt:
    """
    Acknowledgement for one chunk submission.

    progress is computed by the server from the ledger, independent of
    whatever the client tracks.
    """

    accepted: bool
    duplicate: bool
    chunk_index: int
    received_chunks: int
    total_chunks: int
    progress: float


@dataclass(frozen=True)
class UploadResult:
    """
    Terminal reference to an assembled artifact.

    Attributes:
        artifact_id: Stable identifier (the session id)
        storage_name: Name inside the "videos" storage
        file_url: Dereferenceable location of the artifact
        needs_conversion: Declared format is not directly playable
    """

    artifact_id: str
    storage_name: str
    file_url: str
    needs_conversion: bool
    size: int
    content_type: str
    original_name: str
    title: str
    tags: str
    uploader_id: int | str | None
