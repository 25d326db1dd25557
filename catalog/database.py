"""Database schema and connection management for the SQLite catalog."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Union

DatabasePath = Union[str, Path]

CONNECT_TIMEOUT_SECONDS = 30.0


def init_database(db_path: DatabasePath) -> None:
    """
    Initialize database and create tables if they don't exist.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection(path) as conn:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS files (
                file_id TEXT PRIMARY KEY,
                content_hash TEXT NOT NULL UNIQUE,
                extension TEXT NOT NULL DEFAULT '',
                size_bytes INTEGER NOT NULL,
                storage_path TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_files_storage_path ON files(storage_path)
        """)

        conn.commit()


@contextmanager
def get_db_connection(db_path: DatabasePath) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    """
    conn = sqlite3.connect(str(db_path), timeout=CONNECT_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()
