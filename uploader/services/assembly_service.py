"""Assembly of uploaded chunks into cataloged, deduplicated files."""

import re
import shutil
import threading
from enum import Enum
from pathlib import Path
from typing import Optional, Set, Union

from catalog.file_catalog import FileCatalog, file_extension
from chunkstore.chunk_storage import ChunkStore, validate_identifier
from common.constants import COPY_PIECE_SIZE_BYTES
from common.exceptions import (
    DuplicateContentError,
    IntegrityMismatchError,
    InvalidChunkError,
    RecordNotFoundError,
    StorageIOError,
)
from common.hashing import ContentHasher
from common.keyed_lock import KeyedLock
from common.logging_config import get_logger
from common.types import ChunkDescriptor, FileRecord

logger = get_logger(__name__)

EXTENSION_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')


class UploadState(str, Enum):
    PENDING = "pending"
    ASSEMBLING = "assembling"
    COMPLETE = "complete"
    FAILED = "failed"


def resolve_extension(filename: str) -> str:
    """
    Extension used for the assembled file, or "" if the name has none
    or it contains characters unsafe for a file name.
    """
    extension = file_extension(filename or "")
    if extension and EXTENSION_PATTERN.match(extension):
        return extension
    return ""


class FileAssembler:
    """
    Merges the chunks of an upload session into one file, verifies it
    against the session identifier and registers it in the catalog.

    Merges of the same identifier are serialized in-process through
    session_locks, which the stale session sweeper also holds while it
    discards a session. A caller that waited on an in-flight merge gets
    the record it produced.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        catalog: FileCatalog,
        hasher: ContentHasher,
        files_root: Union[str, Path],
        discard_chunks_after_merge: bool = False,
        piece_size: int = COPY_PIECE_SIZE_BYTES,
        session_locks: Optional[KeyedLock] = None
    ):
        self.chunk_store = chunk_store
        self.catalog = catalog
        self.hasher = hasher
        self.files_root = Path(files_root)
        self.discard_chunks_after_merge = discard_chunks_after_merge
        self.piece_size = piece_size
        self.session_locks = session_locks if session_locks is not None else KeyedLock()
        self._state_lock = threading.Lock()
        self._assembling: Set[str] = set()
        self._failed: Set[str] = set()

    def target_path(self, descriptor: ChunkDescriptor) -> Path:
        validate_identifier(descriptor.identifier)
        extension = resolve_extension(descriptor.filename)
        if extension:
            return self.files_root / f"{descriptor.identifier}.{extension}"
        return self.files_root / descriptor.identifier

    def state(self, identifier: str) -> UploadState:
        with self._state_lock:
            if identifier in self._assembling:
                return UploadState.ASSEMBLING
        if self.catalog.exists_by_hash(identifier):
            return UploadState.COMPLETE
        with self._state_lock:
            if identifier in self._failed:
                return UploadState.FAILED
        return UploadState.PENDING

    def merge_chunks(self, descriptor: ChunkDescriptor) -> FileRecord:
        """
        Assemble an upload session into a cataloged file.

        Args:
            descriptor: Any descriptor of the session; identifier, total_chunks
                and filename are used

        Returns:
            The new FileRecord, or the existing one if the identifier is
            already cataloged

        Raises:
            InvalidChunkError: If the descriptor is malformed
            ChunkMissingError: If a chunk in 1..total_chunks is absent
            IntegrityMismatchError: If the assembled bytes don't hash to the identifier
            StorageIOError: On disk or record store failure
        """
        identifier = descriptor.identifier
        validate_identifier(identifier)
        if descriptor.total_chunks < 1:
            raise InvalidChunkError(f"total_chunks must be >= 1, got {descriptor.total_chunks}")

        existing = self._existing_record(identifier)
        if existing is not None:
            logger.info(f"Merge short-circuited, content already cataloged [identifier={identifier}]")
            return existing

        with self.session_locks.hold(identifier):
            existing = self._existing_record(identifier)
            if existing is not None:
                logger.info(f"Merge completed by concurrent caller [identifier={identifier}]")
                return existing

            with self._state_lock:
                self._assembling.add(identifier)
                self._failed.discard(identifier)
            try:
                record = self._assemble(descriptor)
            except Exception:
                with self._state_lock:
                    self._failed.add(identifier)
                raise
            finally:
                with self._state_lock:
                    self._assembling.discard(identifier)

            if self.discard_chunks_after_merge:
                try:
                    self.chunk_store.discard(identifier)
                except StorageIOError as e:
                    logger.warning(f"Failed to discard chunks after merge [identifier={identifier}]: {e}")

        return record

    def _existing_record(self, identifier: str) -> Optional[FileRecord]:
        if not self.catalog.exists_by_hash(identifier):
            return None
        try:
            return self.catalog.find_by_hash(identifier)
        except RecordNotFoundError:
            return None

    def _assemble(self, descriptor: ChunkDescriptor) -> FileRecord:
        identifier = descriptor.identifier
        target = self.target_path(descriptor)

        logger.info(
            f"Merging {descriptor.total_chunks} chunks [identifier={identifier}] [target={target}]"
        )

        self.catalog.cancel_pending_deletion(target)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.unlink(missing_ok=True)
            with open(target, 'wb') as out:
                for chunk_number in range(1, descriptor.total_chunks + 1):
                    with self.chunk_store.read(identifier, chunk_number) as chunk:
                        shutil.copyfileobj(chunk, out, self.piece_size)
                    logger.debug(
                        f"Appended chunk {chunk_number}/{descriptor.total_chunks} [identifier={identifier}]"
                    )
        except StorageIOError:
            raise
        except OSError as e:
            raise StorageIOError(f"Cannot assemble {target}: {e}") from e

        actual = self.hasher.hash_file(target)
        if actual != identifier:
            logger.warning(
                f"Integrity check failed [identifier={identifier}] [actual={actual}] [target={target}]"
            )
            raise IntegrityMismatchError(identifier, actual, str(target))

        try:
            size_bytes = target.stat().st_size
        except OSError as e:
            raise StorageIOError(f"Cannot stat {target}: {e}") from e

        try:
            record = self.catalog.register(target, identifier, size_bytes)
        except DuplicateContentError:
            record = self.catalog.find_by_hash(identifier)

        logger.info(f"Merge complete [identifier={identifier}] [file_id={record.id}] [size={size_bytes}]")
        return record
