"""Manages chunk files of in-flight uploads on disk: write, presence check and read."""

import re
import shutil
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from common.constants import CHUNK_FILE_SUFFIX, COPY_PIECE_SIZE_BYTES
from common.exceptions import ChunkMissingError, InvalidChunkError, StorageIOError
from common.logging_config import get_logger
from common.types import ChunkDescriptor

logger = get_logger(__name__)

IDENTIFIER_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')

ChunkSource = Union[bytes, bytearray, memoryview, BinaryIO]


def validate_descriptor(descriptor: ChunkDescriptor) -> None:
    """
    Check that a descriptor is safe to map onto the filesystem.

    Raises:
        InvalidChunkError: If any field is out of range
    """
    validate_identifier(descriptor.identifier)
    if descriptor.total_chunks < 1:
        raise InvalidChunkError(f"total_chunks must be >= 1, got {descriptor.total_chunks}")
    if descriptor.chunk_number < 1 or descriptor.chunk_number > descriptor.total_chunks:
        raise InvalidChunkError(
            f"chunk_number {descriptor.chunk_number} outside 1..{descriptor.total_chunks}"
        )
    if descriptor.chunk_size < 0:
        raise InvalidChunkError(f"chunk_size must be >= 0, got {descriptor.chunk_size}")


def validate_identifier(identifier: str) -> None:
    if not identifier or not IDENTIFIER_PATTERN.match(identifier):
        raise InvalidChunkError(f"Invalid upload identifier: {identifier!r}")


class ChunkStore:
    """
    Stores chunks at {chunks_root}/{identifier}/{chunk_number}{suffix}.

    Holds no in-memory state, so distinct chunks of one upload can be
    written concurrently.
    """

    def __init__(
        self,
        chunks_root: Union[str, Path],
        chunk_suffix: str = CHUNK_FILE_SUFFIX,
        piece_size: int = COPY_PIECE_SIZE_BYTES
    ):
        self.chunks_root = Path(chunks_root)
        self.chunk_suffix = chunk_suffix
        self.piece_size = piece_size

    def ensure_root(self) -> None:
        """Ensure the chunk storage root exists."""
        try:
            self.chunks_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"Cannot create chunk root {self.chunks_root}: {e}") from e

    def session_dir(self, identifier: str) -> Path:
        validate_identifier(identifier)
        return self.chunks_root / identifier

    def chunk_path(self, identifier: str, chunk_number: int) -> Path:
        """
        Get file path for a chunk.

        Args:
            identifier: Upload session identifier
            chunk_number: 1-based chunk number

        Returns:
            Path object for the chunk file
        """
        return self.session_dir(identifier) / f"{chunk_number}{self.chunk_suffix}"

    def save(self, descriptor: ChunkDescriptor, source: ChunkSource) -> int:
        """
        Write chunk data to disk, replacing any previous copy.

        Args:
            descriptor: Chunk descriptor
            source: Raw bytes or a readable binary stream

        Returns:
            Number of bytes written

        Raises:
            InvalidChunkError: If the descriptor is malformed
            StorageIOError: If the write fails
        """
        validate_descriptor(descriptor)
        filepath = self.chunk_path(descriptor.identifier, descriptor.chunk_number)

        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            with open(filepath, 'wb') as f:
                if isinstance(source, (bytes, bytearray, memoryview)):
                    f.write(source)
                else:
                    shutil.copyfileobj(source, f, self.piece_size)
                written = f.tell()
        except OSError as e:
            logger.error(f"Failed to write chunk [path={filepath}]: {e}")
            raise StorageIOError(f"Cannot write chunk {filepath}: {e}") from e

        logger.debug(
            f"Saved chunk {descriptor.chunk_number}/{descriptor.total_chunks} "
            f"[identifier={descriptor.identifier}] [size={written}]"
        )
        return written

    def has(self, descriptor: ChunkDescriptor) -> bool:
        """
        Check whether a complete copy of the chunk is stored.

        A file whose size differs from the declared chunk_size is treated
        as a partial write and reported as absent.

        Args:
            descriptor: Chunk descriptor

        Returns:
            True if the chunk exists with the declared size, False otherwise
        """
        try:
            filepath = self.chunk_path(descriptor.identifier, descriptor.chunk_number)
            return filepath.is_file() and filepath.stat().st_size == descriptor.chunk_size
        except (OSError, InvalidChunkError):
            return False

    def read(self, identifier: str, chunk_number: int) -> BinaryIO:
        """
        Open a chunk for reading. The caller closes the returned stream.

        Raises:
            ChunkMissingError: If the chunk does not exist
            StorageIOError: If the chunk cannot be opened
        """
        filepath = self.chunk_path(identifier, chunk_number)
        try:
            return open(filepath, 'rb')
        except FileNotFoundError as e:
            raise ChunkMissingError(chunk_number, identifier) from e
        except IsADirectoryError as e:
            raise ChunkMissingError(chunk_number, identifier) from e
        except OSError as e:
            raise StorageIOError(f"Cannot read chunk {filepath}: {e}") from e

    def uploaded_chunks(self, identifier: str) -> List[int]:
        """
        List the chunk numbers stored for an upload, in ascending order.
        """
        session = self.session_dir(identifier)
        if not session.is_dir():
            return []

        numbers = []
        for filepath in session.glob(f"*{self.chunk_suffix}"):
            name = filepath.name
            stem = name[:-len(self.chunk_suffix)] if self.chunk_suffix else name
            if stem.isdigit():
                numbers.append(int(stem))
        return sorted(numbers)

    def discard(self, identifier: str) -> bool:
        """
        Delete every chunk of an upload session.

        Returns:
            True if the session directory was removed, False if it didn't exist
        """
        session = self.session_dir(identifier)
        if not session.exists():
            return False
        try:
            shutil.rmtree(session)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageIOError(f"Cannot remove chunk session {session}: {e}") from e
        logger.info(f"Discarded chunk session [identifier={identifier}]")
        return True

    def list_sessions(self) -> List[str]:
        """
        List identifiers of all upload sessions on disk.
        """
        if not self.chunks_root.exists():
            return []
        return sorted(
            p.name for p in self.chunks_root.iterdir()
            if p.is_dir() and IDENTIFIER_PATTERN.match(p.name)
        )

    def session_last_modified(self, identifier: str) -> Optional[float]:
        """
        Most recent modification time among a session's directory and chunks.

        Returns:
            POSIX timestamp, or None if the session doesn't exist
        """
        session = self.session_dir(identifier)
        try:
            latest = session.stat().st_mtime
            for filepath in session.iterdir():
                latest = max(latest, filepath.stat().st_mtime)
        except FileNotFoundError:
            return None
        return latest
