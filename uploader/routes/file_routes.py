"""Catalog lookup, download and deletion API routes."""

from pathlib import Path

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from catalog.file_catalog import FileCatalog
from common.exceptions import RecordNotFoundError
from uploader.dependencies import get_catalog
from uploader.schemas.files import FileRecordResponse, ListFilesResponse

router = APIRouter(prefix="/files", tags=["Files"])


@router.get("", response_model=ListFilesResponse)
def list_files(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    catalog: FileCatalog = Depends(get_catalog)
):
    records = catalog.list_records(limit=limit, offset=offset)
    return ListFilesResponse(files=[FileRecordResponse.from_record(r) for r in records])


@router.get("/hash/{content_hash}", response_model=FileRecordResponse)
def get_file_by_hash(
    content_hash: str,
    catalog: FileCatalog = Depends(get_catalog)
):
    return FileRecordResponse.from_record(catalog.find_by_hash(content_hash))


@router.get("/{file_id}", response_model=FileRecordResponse)
def get_file(
    file_id: str,
    catalog: FileCatalog = Depends(get_catalog)
):
    return FileRecordResponse.from_record(catalog.find_by_id(file_id))


@router.get("/{file_id}/download")
def download_file(
    file_id: str,
    catalog: FileCatalog = Depends(get_catalog)
):
    """
    Stream the stored bytes of a cataloged file.

    Raises:
        - 404: Unknown id, or the bytes are no longer on disk
    """
    record = catalog.find_by_id(file_id)
    path = Path(record.storage_path)
    if not path.is_file():
        raise RecordNotFoundError(f"Content of file {file_id} is not available")

    return FileResponse(
        path,
        media_type="application/octet-stream",
        filename=path.name,
    )


@router.delete("/{file_id}", response_model=FileRecordResponse)
def delete_file(
    file_id: str,
    catalog: FileCatalog = Depends(get_catalog)
):
    """
    Delete a catalog record. The stored bytes are removed later by the
    deletion queue.
    """
    return FileRecordResponse.from_record(catalog.delete_by_id(file_id))
