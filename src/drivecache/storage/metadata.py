from __future__ import annotations

import threading
from datetime import datetime
from typing import Protocol

from drivecache.errors import MetadataError
from drivecache.schemas import FileRecord, normalize_datetime


class MetadataStore(Protocol):
    """Per-path bookkeeping the synchronizer and sweeper rely on.

    Implementations serialize their own mutations; callers share one instance
    across threads.
    """

    def upsert(self, record: FileRecord) -> None:
        """Insert or replace the record keyed by ``record.relative_path``."""

    def touch(self, relative_path: str, timestamp: datetime) -> None:
        """Update ``last_access``; untracked paths are ignored."""

    def delete(self, relative_path: str) -> None:
        """Remove the record, raising MetadataError when it is not tracked."""

    def total_size(self) -> int:
        """Sum of ``size_bytes`` over every record."""

    def query_oldest(self, limit: int) -> list[FileRecord]:
        """Up to ``limit`` records ordered by ascending ``last_access``."""

    def get(self, relative_path: str) -> FileRecord | None:
        """Return the record for a path, if any."""

    def list_records(self) -> list[FileRecord]:
        """Every record, ordered by ascending ``last_access``."""


class MemoryMetadataStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, FileRecord] = {}

    def upsert(self, record: FileRecord) -> None:
        with self._lock:
            self._records[record.relative_path] = record.model_copy()

    def touch(self, relative_path: str, timestamp: datetime) -> None:
        with self._lock:
            record = self._records.get(relative_path)
            if record is None:
                return
            self._records[relative_path] = record.model_copy(
                update={"last_access": normalize_datetime(timestamp)}
            )

    def delete(self, relative_path: str) -> None:
        with self._lock:
            if relative_path not in self._records:
                raise MetadataError("file not found", {"path": relative_path})
            del self._records[relative_path]

    def total_size(self) -> int:
        with self._lock:
            return sum(record.size_bytes for record in self._records.values())

    def query_oldest(self, limit: int) -> list[FileRecord]:
        if limit < 0:
            raise ValueError("limit must be >= 0")
        return self.list_records()[:limit]

    def get(self, relative_path: str) -> FileRecord | None:
        with self._lock:
            record = self._records.get(relative_path)
            return record.model_copy() if record is not None else None

    def list_records(self) -> list[FileRecord]:
        with self._lock:
            # sorted() is stable, so ties keep insertion order.
            ordered = sorted(self._records.values(), key=lambda record: record.last_access)
            return [record.model_copy() for record in ordered]
