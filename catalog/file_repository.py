"""File record repository backed by SQLite."""

import sqlite3
from datetime import datetime
from typing import List, Optional

from catalog.database import DatabasePath, get_db_connection
from common.logging_config import get_logger
from common.types import FileRecord

logger = get_logger(__name__)

_COLUMNS = "file_id, content_hash, extension, size_bytes, storage_path, created_at"


def _row_to_record(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        id=row["file_id"],
        content_hash=row["content_hash"],
        extension=row["extension"],
        size_bytes=row["size_bytes"],
        storage_path=row["storage_path"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class FileRepository:
    """
    Record store for the file catalog.

    The content_hash column is UNIQUE, so save() raises
    sqlite3.IntegrityError when a record for the hash already exists.
    """

    def __init__(self, db_path: DatabasePath):
        self.db_path = db_path

    def exists_by_id(self, file_id: str) -> bool:
        with get_db_connection(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM files WHERE file_id = ?", (file_id,))
            return cursor.fetchone() is not None

    def exists_by_hash(self, content_hash: str) -> bool:
        with get_db_connection(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM files WHERE content_hash = ?", (content_hash,))
            return cursor.fetchone() is not None

    def exists_by_storage_path(self, storage_path: str) -> bool:
        with get_db_connection(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM files WHERE storage_path = ?", (storage_path,))
            return cursor.fetchone() is not None

    def find_by_id(self, file_id: str) -> Optional[FileRecord]:
        with get_db_connection(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_COLUMNS} FROM files WHERE file_id = ?", (file_id,))
            row = cursor.fetchone()

            if row is None:
                return None

            return _row_to_record(row)

    def find_by_hash(self, content_hash: str) -> Optional[FileRecord]:
        with get_db_connection(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_COLUMNS} FROM files WHERE content_hash = ?", (content_hash,))
            row = cursor.fetchone()

            if row is None:
                return None

            return _row_to_record(row)

    def list_records(self, limit: int = 100, offset: int = 0) -> List[FileRecord]:
        with get_db_connection(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_COLUMNS} FROM files ORDER BY created_at, file_id LIMIT ? OFFSET ?",
                (limit, offset)
            )
            return [_row_to_record(row) for row in cursor.fetchall()]

    def save(self, record: FileRecord) -> FileRecord:
        """
        Insert a record inside an immediate (write-locked) transaction.

        Raises:
            sqlite3.IntegrityError: If the id or content hash is already stored
        """
        with get_db_connection(self.db_path) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("BEGIN IMMEDIATE")
                cursor.execute(
                    """
                    INSERT INTO files (file_id, content_hash, extension, size_bytes, storage_path, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        record.content_hash,
                        record.extension,
                        record.size_bytes,
                        record.storage_path,
                        record.created_at.isoformat(),
                    )
                )
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        logger.debug(f"Saved file record [file_id={record.id}] [content_hash={record.content_hash}]")
        return record

    def delete(self, file_id: str) -> bool:
        """
        Delete a record by id.

        Returns:
            True if a row was removed, False if the id was unknown
        """
        with get_db_connection(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM files WHERE file_id = ?", (file_id,))
            conn.commit()
            deleted = cursor.rowcount > 0

        if deleted:
            logger.debug(f"Deleted file record [file_id={file_id}]")
        return deleted
