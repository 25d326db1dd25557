"""Chunk upload, presence check and merge API routes."""

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from chunkstore.chunk_storage import ChunkStore
from common.types import ChunkDescriptor
from uploader.dependencies import get_assembler, get_chunk_store
from uploader.schemas.chunks import (
    IDENTIFIER_REGEX,
    ChunkStatusResponse,
    ChunkUploadResponse,
    MergeRequest,
    UploadSessionResponse,
)
from uploader.schemas.common import ErrorResponse
from uploader.schemas.files import FileRecordResponse
from uploader.services.assembly_service import FileAssembler

router = APIRouter(prefix="/chunks", tags=["Chunks"])


@router.get("", response_model=ChunkStatusResponse)
def check_chunk(
    identifier: str = Query(..., min_length=1, pattern=IDENTIFIER_REGEX),
    chunk_number: int = Query(..., ge=1),
    chunk_size: int = Query(..., ge=0),
    total_chunks: int = Query(..., ge=1),
    filename: str = Query(""),
    chunk_store: ChunkStore = Depends(get_chunk_store)
):
    """
    Report whether a chunk is already stored with its declared size.

    Clients call this before uploading a chunk so interrupted uploads
    resume by sending only what is missing.
    """
    descriptor = ChunkDescriptor(
        identifier=identifier,
        chunk_number=chunk_number,
        chunk_size=chunk_size,
        total_chunks=total_chunks,
        filename=filename,
    )
    return ChunkStatusResponse(
        identifier=identifier,
        chunk_number=chunk_number,
        exists=chunk_store.has(descriptor),
    )


@router.post("", response_model=ChunkUploadResponse, status_code=status.HTTP_201_CREATED)
def upload_chunk(
    identifier: str = Form(..., min_length=1, pattern=IDENTIFIER_REGEX),
    chunk_number: int = Form(..., ge=1),
    chunk_size: int = Form(..., ge=0),
    total_chunks: int = Form(..., ge=1),
    filename: str = Form(""),
    file: UploadFile = File(...),
    chunk_store: ChunkStore = Depends(get_chunk_store)
):
    """
    Store one chunk of an upload (multipart/form-data).

    Re-uploading a chunk replaces the stored copy.

    Raises:
        - 400: Malformed descriptor
        - 503: Storage failure
    """
    descriptor = ChunkDescriptor(
        identifier=identifier,
        chunk_number=chunk_number,
        chunk_size=chunk_size,
        total_chunks=total_chunks,
        filename=filename,
    )
    size = chunk_store.save(descriptor, file.file)

    return ChunkUploadResponse(
        identifier=identifier,
        chunk_number=chunk_number,
        total_chunks=total_chunks,
        size=size,
    )


@router.get("/{identifier}", response_model=UploadSessionResponse)
def get_upload_session(
    identifier: str,
    chunk_store: ChunkStore = Depends(get_chunk_store),
    assembler: FileAssembler = Depends(get_assembler)
):
    """
    List the chunks stored for an upload and its assembly state.
    """
    uploaded = chunk_store.uploaded_chunks(identifier)
    return UploadSessionResponse(
        identifier=identifier,
        state=assembler.state(identifier).value,
        uploaded_chunks=uploaded,
    )


@router.post(
    "/merge",
    response_model=FileRecordResponse,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    }
)
def merge_chunks(
    request: MergeRequest,
    assembler: FileAssembler = Depends(get_assembler)
):
    """
    Assemble all chunks of an upload into a cataloged file.

    Returns the existing record when the content is already cataloged.

    Raises:
        - 400: Malformed request
        - 409: A chunk is missing (chunk_number in the body)
        - 422: Assembled content does not match the identifier
        - 503: Storage failure
    """
    record = assembler.merge_chunks(request.to_descriptor())
    return FileRecordResponse.from_record(record)
