"""Custom exception classes shared by the chunk store, catalog and assembler."""


class UploaderError(Exception):
    """
    Base exception class for all upload-related errors.
    """
    pass


class RecordNotFoundError(UploaderError):
    """
    Raised when a catalog lookup by id or content hash finds nothing.
    """
    pass


class DuplicateContentError(UploaderError):
    """
    Raised when registering a content hash that is already cataloged.
    """

    def __init__(self, content_hash: str):
        super().__init__(f"File with content hash {content_hash} already exists")
        self.content_hash = content_hash


class ChunkMissingError(UploaderError):
    """
    Raised when an expected chunk file is absent.
    """

    def __init__(self, chunk_number: int, identifier: str = ""):
        super().__init__(f"Chunk {chunk_number} of upload {identifier or '?'} not found")
        self.chunk_number = chunk_number
        self.identifier = identifier


class IntegrityMismatchError(UploaderError):
    """
    Raised when the digest of an assembled file differs from the expected hash.
    """

    def __init__(self, expected: str, actual: str, path: str = ""):
        super().__init__(
            f"Assembled file {path or '?'} has hash {actual}, expected {expected}"
        )
        self.expected = expected
        self.actual = actual
        self.path = path


class StorageIOError(UploaderError, OSError):
    """
    Raised when the underlying disk or record store fails.
    """
    pass


class InvalidChunkError(UploaderError):
    """
    Raised when a chunk descriptor is malformed.
    """
    pass
