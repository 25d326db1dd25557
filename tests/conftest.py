"""Shared pytest fixtures for all tests."""

import hashlib
from pathlib import Path
from typing import List

import pytest

from catalog.database import init_database
from catalog.deletion_queue import DeletionQueue
from catalog.file_catalog import FileCatalog
from catalog.file_repository import FileRepository
from chunkstore.chunk_storage import ChunkStore
from common.hashing import ContentHasher
from common.types import ChunkDescriptor
from uploader.config import UploaderSettings
from uploader.services.assembly_service import FileAssembler


def md5_hex(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def store_chunks(
    chunk_store: ChunkStore,
    identifier: str,
    pieces: List[bytes],
    filename: str = "data.txt"
) -> List[ChunkDescriptor]:
    """
    Save pieces as chunks 1..n of one upload and return their descriptors.
    """
    descriptors = []
    for number, piece in enumerate(pieces, start=1):
        descriptor = ChunkDescriptor(
            identifier=identifier,
            chunk_number=number,
            chunk_size=len(piece),
            total_chunks=len(pieces),
            filename=filename,
        )
        chunk_store.save(descriptor, piece)
        descriptors.append(descriptor)
    return descriptors


@pytest.fixture
def settings(tmp_path) -> UploaderSettings:
    """
    Settings rooted in a temporary directory.
    """
    return UploaderSettings(
        chunks_root=tmp_path / "chunks",
        files_root=tmp_path / "files",
        database_path=tmp_path / "db" / "catalog.db",
        deletion_interval_seconds=3600,
        sweep_interval_seconds=3600,
    )


@pytest.fixture
def hasher() -> ContentHasher:
    return ContentHasher("md5")


@pytest.fixture
def chunk_store(settings) -> ChunkStore:
    return ChunkStore(settings.chunks_root)


@pytest.fixture
def repository(settings) -> FileRepository:
    init_database(settings.database_path)
    return FileRepository(settings.database_path)


@pytest.fixture
def deletion_queue(repository) -> DeletionQueue:
    return DeletionQueue(interval_seconds=3600, in_use=repository.exists_by_storage_path)


@pytest.fixture
def catalog(repository, deletion_queue) -> FileCatalog:
    return FileCatalog(repository, deletion_queue)


@pytest.fixture
def assembler(chunk_store, catalog, hasher, settings) -> FileAssembler:
    return FileAssembler(
        chunk_store=chunk_store,
        catalog=catalog,
        hasher=hasher,
        files_root=settings.files_root,
    )


@pytest.fixture
def sample_file(tmp_path) -> Path:
    """
    A local file spanning several client chunks.
    """
    file_path = tmp_path / "upload" / "report.bin"
    file_path.parent.mkdir()
    file_path.write_bytes(bytes(range(256)) * 40)
    return file_path
