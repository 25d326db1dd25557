"""Pydantic schemas for chunk upload and merge endpoints."""

from typing import List

from pydantic import BaseModel, Field

from common.types import ChunkDescriptor

IDENTIFIER_REGEX = r'^[A-Za-z0-9_-]+$'


class ChunkUploadResponse(BaseModel):
    """Response model for a stored chunk."""
    identifier: str
    chunk_number: int
    total_chunks: int
    size: int


class ChunkStatusResponse(BaseModel):
    """Response model for a chunk presence check."""
    identifier: str
    chunk_number: int
    exists: bool


class UploadSessionResponse(BaseModel):
    """Response model for the state of an upload session."""
    identifier: str
    state: str
    uploaded_chunks: List[int]


class MergeRequest(BaseModel):
    """Request model for assembling an upload session."""
    identifier: str = Field(..., min_length=1, pattern=IDENTIFIER_REGEX)
    total_chunks: int = Field(..., ge=1)
    filename: str = ""

    def to_descriptor(self) -> ChunkDescriptor:
        return ChunkDescriptor(
            identifier=self.identifier,
            chunk_number=self.total_chunks,
            chunk_size=0,
            total_chunks=self.total_chunks,
            filename=self.filename,
        )
