"""Content catalog: hash-keyed, deduplicated registry of assembled files."""

import os
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from catalog.deletion_queue import DeletionQueue
from catalog.file_repository import FileRepository
from common.exceptions import DuplicateContentError, RecordNotFoundError, StorageIOError
from common.logging_config import get_logger
from common.types import FileRecord

logger = get_logger(__name__)


def file_extension(filename: str) -> str:
    """
    Extension of a file name: the text after the last dot of its base name.

    Returns an empty string when the name has no dot or ends with one.
    """
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    if "." not in base:
        return ""
    return base.rsplit(".", 1)[1]


class FileCatalog:
    """
    Maps content hashes to file records, at most one record per hash.
    """

    def __init__(self, repository: FileRepository, deletion_queue: DeletionQueue):
        self.repository = repository
        self.deletion_queue = deletion_queue

    def exists_by_id(self, file_id: Optional[str]) -> bool:
        if not file_id:
            return False
        return self._query(self.repository.exists_by_id, file_id)

    def exists_by_hash(self, content_hash: Optional[str]) -> bool:
        if not content_hash:
            return False
        return self._query(self.repository.exists_by_hash, content_hash)

    def find_by_id(self, file_id: Optional[str]) -> FileRecord:
        record = self._query(self.repository.find_by_id, file_id) if file_id else None
        if record is None:
            raise RecordNotFoundError(f"File {file_id} not found")
        return record

    def find_by_hash(self, content_hash: Optional[str]) -> FileRecord:
        record = self._query(self.repository.find_by_hash, content_hash) if content_hash else None
        if record is None:
            raise RecordNotFoundError(f"File with content hash {content_hash} not found")
        return record

    def list_records(self, limit: int = 100, offset: int = 0) -> List[FileRecord]:
        return self._query(self.repository.list_records, limit, offset)

    def register(
        self,
        path: Union[str, Path],
        content_hash: str,
        size_bytes: Optional[int] = None
    ) -> FileRecord:
        """
        Catalog an assembled file under its content hash.

        Args:
            path: Location of the assembled file
            content_hash: Digest of the file's content
            size_bytes: Precomputed size; read from the file when omitted

        Returns:
            The persisted FileRecord

        Raises:
            DuplicateContentError: If the hash is already cataloged
            StorageIOError: If the file or the record store can't be accessed
        """
        if self.exists_by_hash(content_hash):
            raise DuplicateContentError(content_hash)

        storage_path = os.path.abspath(str(path))
        if size_bytes is None:
            try:
                size_bytes = os.path.getsize(storage_path)
            except OSError as e:
                raise StorageIOError(f"Cannot stat {storage_path}: {e}") from e

        record = FileRecord(
            id=str(uuid.uuid4()),
            content_hash=content_hash,
            extension=file_extension(os.path.basename(storage_path)),
            size_bytes=size_bytes,
            storage_path=storage_path,
            created_at=datetime.now(timezone.utc),
        )

        try:
            self.repository.save(record)
        except sqlite3.IntegrityError as e:
            # Lost the race against a concurrent registration of the same hash.
            if self.exists_by_hash(content_hash):
                raise DuplicateContentError(content_hash) from e
            raise StorageIOError(f"Cannot save record for {content_hash}: {e}") from e
        except sqlite3.Error as e:
            raise StorageIOError(f"Cannot save record for {content_hash}: {e}") from e

        logger.info(
            f"Registered file [file_id={record.id}] [content_hash={content_hash}] "
            f"[size={size_bytes}] [path={storage_path}]"
        )
        return record

    def delete_by_id(self, file_id: Optional[str]) -> FileRecord:
        """
        Remove a record now and schedule its bytes for deferred deletion.

        Raises:
            RecordNotFoundError: If file_id is empty or unknown
        """
        record = self.find_by_id(file_id)

        # Queued before the row goes, so a merge that re-creates the path
        # after the delete always finds the entry to cancel.
        self.deletion_queue.schedule(record.storage_path)
        try:
            deleted = self._query(self.repository.delete, record.id)
        except StorageIOError:
            self.deletion_queue.cancel(record.storage_path)
            raise
        if not deleted:
            # A concurrent delete of the same record won; its entry stays queued.
            raise RecordNotFoundError(f"File {file_id} not found")

        logger.info(f"Deleted file record [file_id={record.id}] [content_hash={record.content_hash}]")
        return record

    def cancel_pending_deletion(self, path: Union[str, Path]) -> bool:
        return self.deletion_queue.cancel(path)

    @staticmethod
    def _query(operation, *args):
        try:
            return operation(*args)
        except sqlite3.Error as e:
            logger.error(f"Catalog query failed: {e}", exc_info=True)
            raise StorageIOError(f"Catalog store failure: {e}") from e
