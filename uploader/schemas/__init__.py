"""Pydantic schemas for API requests and responses."""

from uploader.schemas.chunks import (
    ChunkStatusResponse,
    ChunkUploadResponse,
    MergeRequest,
    UploadSessionResponse,
)
from uploader.schemas.files import FileRecordResponse, ListFilesResponse
from uploader.schemas.common import ErrorResponse

__all__ = [
    "ChunkStatusResponse",
    "ChunkUploadResponse",
    "MergeRequest",
    "UploadSessionResponse",
    "FileRecordResponse",
    "ListFilesResponse",
    "ErrorResponse",
]
