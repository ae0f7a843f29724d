from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from drivecache.errors import MetadataError
from drivecache.schemas import FileRecord

_SELECT_COLUMNS = "relative_path, remote_id, size_bytes, content_type, last_access"


class SqliteMetadataStore:
    """Durable MetadataStore backed by a single SQLite file."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    def upsert(self, record: FileRecord) -> None:
        payload = (
            record.relative_path,
            record.remote_id,
            record.size_bytes,
            record.content_type,
            _encode_timestamp(record.last_access),
        )
        query = """
        INSERT INTO file_records (
            relative_path, remote_id, size_bytes, content_type, last_access
        )
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(relative_path) DO UPDATE SET
            remote_id=excluded.remote_id,
            size_bytes=excluded.size_bytes,
            content_type=excluded.content_type,
            last_access=excluded.last_access
        """
        with self._connect() as conn:
            conn.execute(query, payload)

    def touch(self, relative_path: str, timestamp: datetime) -> None:
        query = "UPDATE file_records SET last_access = ? WHERE relative_path = ?"
        with self._connect() as conn:
            conn.execute(query, (_encode_timestamp(timestamp), relative_path))

    def delete(self, relative_path: str) -> None:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM file_records WHERE relative_path = ?",
                (relative_path,),
            )
            if cursor.rowcount == 0:
                raise MetadataError("file not found", {"path": relative_path})

    def total_size(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COALESCE(SUM(size_bytes), 0) FROM file_records").fetchone()
        return int(row[0])

    def query_oldest(self, limit: int) -> list[FileRecord]:
        if limit < 0:
            raise ValueError("limit must be >= 0")
        query = f"""
        SELECT {_SELECT_COLUMNS}
        FROM file_records
        ORDER BY last_access ASC, rowid ASC
        LIMIT ?
        """
        with self._connect() as conn:
            rows = conn.execute(query, (limit,)).fetchall()

        return [self._row_to_record(row) for row in rows]

    def get(self, relative_path: str) -> FileRecord | None:
        query = f"SELECT {_SELECT_COLUMNS} FROM file_records WHERE relative_path = ?"
        with self._connect() as conn:
            row = conn.execute(query, (relative_path,)).fetchone()

        if row is None:
            return None
        return self._row_to_record(row)

    def list_records(self) -> list[FileRecord]:
        query = f"""
        SELECT {_SELECT_COLUMNS}
        FROM file_records
        ORDER BY last_access ASC, rowid ASC
        """
        with self._connect() as conn:
            rows = conn.execute(query).fetchall()

        return [self._row_to_record(row) for row in rows]

    def _init_schema(self) -> None:
        schema_path = Path(__file__).with_name("schema.sql")
        schema = schema_path.read_text(encoding="utf-8")
        with self._connect() as conn:
            conn.executescript(schema)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                conn = sqlite3.connect(self.db_path)
            except sqlite3.Error as exc:
                raise MetadataError("unable to open metadata db", {"db_path": str(self.db_path)}) from exc
            conn.row_factory = sqlite3.Row
            try:
                with conn:
                    yield conn
            except sqlite3.Error as exc:
                raise MetadataError("metadata query failed", {"db_path": str(self.db_path)}) from exc
            finally:
                conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> FileRecord:
        return FileRecord(
            relative_path=row["relative_path"],
            remote_id=row["remote_id"],
            size_bytes=row["size_bytes"],
            content_type=row["content_type"],
            last_access=row["last_access"],
        )


def _encode_timestamp(value: datetime) -> str:
    # Fixed-width UTC text keeps lexical order equal to time order.
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")
