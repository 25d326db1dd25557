"""Pydantic schemas for catalog endpoints."""

from typing import List

from pydantic import BaseModel

from common.types import FileRecord


class FileRecordResponse(BaseModel):
    """Response model for a catalog record."""
    id: str
    content_hash: str
    extension: str
    size_bytes: int
    storage_path: str
    created_at: str

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileRecordResponse":
        return cls(
            id=record.id,
            content_hash=record.content_hash,
            extension=record.extension,
            size_bytes=record.size_bytes,
            storage_path=record.storage_path,
            created_at=record.created_at.isoformat(),
        )


class ListFilesResponse(BaseModel):
    """Response model for record listing."""
    files: List[FileRecordResponse]
