"""Entry point for the upload service."""

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from catalog.database import init_database
from common.exceptions import (
    ChunkMissingError,
    DuplicateContentError,
    IntegrityMismatchError,
    InvalidChunkError,
    RecordNotFoundError,
    StorageIOError,
    UploaderError,
)
from common.logging_config import get_logger, setup_logging
from uploader.config import UploaderSettings, load_settings
from uploader.dependencies import Components, build_components
from uploader.routes.chunk_routes import router as chunk_router
from uploader.routes.file_routes import router as file_router

logger = get_logger(__name__)


def _prepare_storage(components: Components) -> None:
    settings = components.settings
    init_database(settings.database_path)
    components.chunk_store.ensure_root()
    settings.files_root.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Prepare storage and run background tasks for the app's lifetime.
    """
    components: Components = app.state.components

    logger.info("Upload service starting up...")
    await asyncio.to_thread(_prepare_storage, components)
    logger.info(f"Catalog database initialized [path={components.settings.database_path}]")

    await components.deletion_queue.start()
    await components.sweeper.start()

    try:
        yield
    finally:
        logger.info("Upload service shutting down...")
        await components.sweeper.stop()
        await components.deletion_queue.stop()


def _error_response(request: Request, exc: Exception, status_code: int, code: str, **extra) -> JSONResponse:
    request_id = getattr(request.state, 'request_id', 'unknown')
    if status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}")
    else:
        logger.warning(f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": code, **extra}
    )


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(RecordNotFoundError)
    async def record_not_found_handler(request: Request, exc: RecordNotFoundError):
        return _error_response(request, exc, status.HTTP_404_NOT_FOUND, "RECORD_NOT_FOUND")

    @app.exception_handler(DuplicateContentError)
    async def duplicate_content_handler(request: Request, exc: DuplicateContentError):
        return _error_response(request, exc, status.HTTP_409_CONFLICT, "DUPLICATE_CONTENT")

    @app.exception_handler(ChunkMissingError)
    async def chunk_missing_handler(request: Request, exc: ChunkMissingError):
        return _error_response(
            request, exc, status.HTTP_409_CONFLICT, "CHUNK_MISSING",
            chunk_number=exc.chunk_number
        )

    @app.exception_handler(IntegrityMismatchError)
    async def integrity_mismatch_handler(request: Request, exc: IntegrityMismatchError):
        return _error_response(request, exc, status.HTTP_422_UNPROCESSABLE_ENTITY, "INTEGRITY_MISMATCH")

    @app.exception_handler(InvalidChunkError)
    async def invalid_chunk_handler(request: Request, exc: InvalidChunkError):
        return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_CHUNK")

    @app.exception_handler(StorageIOError)
    async def storage_io_handler(request: Request, exc: StorageIOError):
        return _error_response(request, exc, status.HTTP_503_SERVICE_UNAVAILABLE, "STORAGE_IO_ERROR")

    @app.exception_handler(UploaderError)
    async def uploader_error_handler(request: Request, exc: UploaderError):
        return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR")


def create_app(settings: Optional[UploaderSettings] = None) -> FastAPI:
    """
    Build the upload service application.

    Args:
        settings: Explicit settings; read from the environment when omitted
    """
    settings = settings or load_settings()

    app = FastAPI(
        title="Chunked Upload Service",
        description="Resumable chunked uploads with content-addressed deduplication",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.components = build_components(settings)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Middleware to log all HTTP requests and responses.
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        logger.info(f"Request started: {request.method} {request.url.path} [request_id={request_id}]")

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(
            f"Request completed: {request.method} {request.url.path} "
            f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
        )

        response.headers["X-Request-ID"] = request_id
        return response

    register_exception_handlers(app)

    app.include_router(chunk_router)
    app.include_router(file_router)

    @app.get("/")
    async def root():
        """
        Root endpoint for health check.
        """
        return {"message": "Chunked Upload Service API", "status": "running"}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "uploader"}

    return app


app = create_app()


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    setup_logging('uploader')
    settings = app.state.components.settings
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
