"""Component wiring and FastAPI dependency providers."""

from dataclasses import dataclass

from fastapi import Request

from catalog.deletion_queue import DeletionQueue
from catalog.file_catalog import FileCatalog
from catalog.file_repository import FileRepository
from chunkstore.chunk_storage import ChunkStore
from chunkstore.session_sweeper import StaleSessionSweeper
from common.hashing import ContentHasher
from common.keyed_lock import KeyedLock
from uploader.config import UploaderSettings
from uploader.services.assembly_service import FileAssembler


@dataclass
class Components:
    """
    Everything the routes need, built once per application.
    """
    settings: UploaderSettings
    hasher: ContentHasher
    chunk_store: ChunkStore
    deletion_queue: DeletionQueue
    catalog: FileCatalog
    assembler: FileAssembler
    sweeper: StaleSessionSweeper


def build_components(settings: UploaderSettings) -> Components:
    """
    Construct the component graph from settings. Touches no disk.
    """
    hasher = ContentHasher(settings.hash_algorithm)
    chunk_store = ChunkStore(settings.chunks_root, chunk_suffix=settings.chunk_suffix)
    repository = FileRepository(settings.database_path)
    deletion_queue = DeletionQueue(
        interval_seconds=settings.deletion_interval_seconds,
        in_use=repository.exists_by_storage_path,
    )
    catalog = FileCatalog(repository, deletion_queue)
    session_locks = KeyedLock()
    assembler = FileAssembler(
        chunk_store=chunk_store,
        catalog=catalog,
        hasher=hasher,
        files_root=settings.files_root,
        discard_chunks_after_merge=settings.discard_chunks_after_merge,
        session_locks=session_locks,
    )
    sweeper = StaleSessionSweeper(
        chunk_store,
        session_ttl_seconds=settings.session_ttl_seconds,
        interval_seconds=settings.sweep_interval_seconds,
        session_locks=session_locks,
    )
    return Components(
        settings=settings,
        hasher=hasher,
        chunk_store=chunk_store,
        deletion_queue=deletion_queue,
        catalog=catalog,
        assembler=assembler,
        sweeper=sweeper,
    )


def get_components(request: Request) -> Components:
    return request.app.state.components


def get_chunk_store(request: Request) -> ChunkStore:
    return get_components(request).chunk_store


def get_catalog(request: Request) -> FileCatalog:
    return get_components(request).catalog


def get_assembler(request: Request) -> FileAssembler:
    return get_components(request).assembler
