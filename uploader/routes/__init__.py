"""API routes package."""

from uploader.routes.chunk_routes import router as chunk_router
from uploader.routes.file_routes import router as file_router

__all__ = ["chunk_router", "file_router"]
