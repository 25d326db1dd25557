"""Project-wide constants (storage layout, hashing, defaults)."""

CHUNK_FILE_SUFFIX: str = ".tmp"
DEFAULT_HASH_ALGORITHM: str = "md5"
HASH_PIECE_SIZE_BYTES: int = 64 * 1024
COPY_PIECE_SIZE_BYTES: int = 64 * 1024

DEFAULT_CHUNKS_ROOT: str = "./data/chunks"
DEFAULT_FILES_ROOT: str = "./data/files"
DEFAULT_DATABASE_PATH: str = "./data/catalog.db"

DEFAULT_CLIENT_CHUNK_SIZE_BYTES: int = 2 * 1024 * 1024
DEFAULT_SERVER_PORT: int = 8000

DELETION_INTERVAL_SECONDS: int = 60
SESSION_TTL_SECONDS: int = 24 * 3600
SWEEP_INTERVAL_SECONDS: int = 3600
