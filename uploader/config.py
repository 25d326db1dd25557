"""Configuration settings for the upload service."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from common.constants import (
    CHUNK_FILE_SUFFIX,
    DEFAULT_CHUNKS_ROOT,
    DEFAULT_DATABASE_PATH,
    DEFAULT_FILES_ROOT,
    DEFAULT_HASH_ALGORITHM,
    DEFAULT_SERVER_PORT,
    DELETION_INTERVAL_SECONDS,
    SESSION_TTL_SECONDS,
    SWEEP_INTERVAL_SECONDS,
)

ENV_PREFIX = "UPLOADER_"


@dataclass(frozen=True)
class UploaderSettings:
    """
    Settings handed to every component at construction time.
    """
    chunks_root: Path
    files_root: Path
    database_path: Path
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM
    chunk_suffix: str = CHUNK_FILE_SUFFIX
    discard_chunks_after_merge: bool = False
    deletion_interval_seconds: float = DELETION_INTERVAL_SECONDS
    session_ttl_seconds: float = SESSION_TTL_SECONDS
    sweep_interval_seconds: float = SWEEP_INTERVAL_SECONDS
    host: str = "0.0.0.0"
    port: int = DEFAULT_SERVER_PORT


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> UploaderSettings:
    """
    Build settings from UPLOADER_* environment variables.

    Args:
        environ: Mapping to read instead of os.environ

    Raises:
        ValueError: If a numeric variable can't be parsed
    """
    env = os.environ if environ is None else environ

    def get(name: str, default: str) -> str:
        return env.get(ENV_PREFIX + name, default)

    return UploaderSettings(
        chunks_root=Path(get("CHUNKS_ROOT", DEFAULT_CHUNKS_ROOT)),
        files_root=Path(get("FILES_ROOT", DEFAULT_FILES_ROOT)),
        database_path=Path(get("DATABASE_PATH", DEFAULT_DATABASE_PATH)),
        hash_algorithm=get("HASH_ALGORITHM", DEFAULT_HASH_ALGORITHM),
        chunk_suffix=get("CHUNK_SUFFIX", CHUNK_FILE_SUFFIX),
        discard_chunks_after_merge=_parse_bool(get("DISCARD_CHUNKS_AFTER_MERGE", "false")),
        deletion_interval_seconds=float(get("DELETION_INTERVAL_SECONDS", str(DELETION_INTERVAL_SECONDS))),
        session_ttl_seconds=float(get("SESSION_TTL_SECONDS", str(SESSION_TTL_SECONDS))),
        sweep_interval_seconds=float(get("SWEEP_INTERVAL_SECONDS", str(SWEEP_INTERVAL_SECONDS))),
        host=get("HOST", "0.0.0.0"),
        port=int(get("PORT", str(DEFAULT_SERVER_PORT))),
    )
