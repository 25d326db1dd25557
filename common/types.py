"""Shared data type definitions (ChunkDescriptor, FileRecord)."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ChunkDescriptor:
    """
    Metadata sent with every chunk of an upload session.

    The identifier groups the chunks of one upload and is also the
    expected content hash of the assembled file.
    """
    identifier: str
    chunk_number: int
    chunk_size: int
    total_chunks: int
    filename: str = ""


@dataclass(frozen=True)
class FileRecord:
    """
    Catalog entry for one assembled file.
    """
    id: str
    content_hash: str
    extension: str
    size_bytes: int
    storage_path: str
    created_at: datetime
