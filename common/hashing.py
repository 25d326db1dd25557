"""Streaming content hashing used for identity and integrity checks."""

import hashlib
from pathlib import Path
from typing import BinaryIO, Union

from common.constants import DEFAULT_HASH_ALGORITHM, HASH_PIECE_SIZE_BYTES
from common.exceptions import StorageIOError

ByteSource = Union[bytes, bytearray, memoryview, BinaryIO, str, Path]


class ContentHasher:
    """
    Computes hex digests over files, streams or in-memory buffers.

    The same hasher instance must be used for identity (catalog keys) and
    integrity (post-merge verification), so the algorithm is fixed at
    construction.
    """

    def __init__(
        self,
        algorithm: str = DEFAULT_HASH_ALGORITHM,
        piece_size: int = HASH_PIECE_SIZE_BYTES
    ):
        """
        Args:
            algorithm: Name accepted by hashlib.new (default md5)
            piece_size: Bytes read per iteration when streaming

        Raises:
            ValueError: If the algorithm is unknown or has no fixed digest size
        """
        algorithm = algorithm.lower()
        try:
            probe = hashlib.new(algorithm)
        except ValueError as e:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}") from e
        if probe.digest_size == 0:
            raise ValueError(f"Hash algorithm {algorithm} has a variable digest size")
        if piece_size <= 0:
            raise ValueError("piece_size must be positive")

        self.algorithm = algorithm
        self.piece_size = piece_size

    def hash(self, source: ByteSource) -> str:
        """
        Compute the digest of a byte source.

        Args:
            source: bytes-like object, binary file object, or filesystem path

        Returns:
            Lowercase hexadecimal digest

        Raises:
            StorageIOError: If the source cannot be read
        """
        if isinstance(source, (bytes, bytearray, memoryview)):
            return self.hash_bytes(source)
        if isinstance(source, (str, Path)):
            return self.hash_file(source)
        return self.hash_stream(source)

    def hash_bytes(self, data: bytes) -> str:
        hasher = hashlib.new(self.algorithm)
        hasher.update(data)
        return hasher.hexdigest()

    def hash_file(self, path: Union[str, Path]) -> str:
        try:
            with open(path, "rb") as f:
                return self.hash_stream(f)
        except StorageIOError:
            raise
        except OSError as e:
            raise StorageIOError(f"Cannot read {path} for hashing: {e}") from e

    def hash_stream(self, stream: BinaryIO) -> str:
        hasher = hashlib.new(self.algorithm)
        try:
            for piece in iter(lambda: stream.read(self.piece_size), b""):
                hasher.update(piece)
        except OSError as e:
            raise StorageIOError(f"Cannot read stream for hashing: {e}") from e
        return hasher.hexdigest()
