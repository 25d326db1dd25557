"""Service layer for business logic."""

from uploader.services.assembly_service import FileAssembler, UploadState

__all__ = [
    "FileAssembler",
    "UploadState",
]
