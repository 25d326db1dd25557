"""Tests for streaming content hashing."""

import hashlib
import io

import pytest

from common.exceptions import StorageIOError
from common.hashing import ContentHasher


def test_hash_bytes_matches_hashlib(hasher):
    assert hasher.hash(b"ABCDEFGHIJ") == hashlib.md5(b"ABCDEFGHIJ").hexdigest()


def test_hash_stream_reads_in_pieces():
    data = b"x" * 1000 + b"y" * 37
    hasher = ContentHasher("md5", piece_size=16)

    class CountingStream(io.BytesIO):
        reads = 0

        def read(self, size=-1):
            CountingStream.reads += 1
            assert 0 < size <= 16
            return super().read(size)

    assert hasher.hash(CountingStream(data)) == hashlib.md5(data).hexdigest()
    assert CountingStream.reads > 1


def test_hash_file_and_path_forms_agree(tmp_path, hasher):
    path = tmp_path / "content.bin"
    path.write_bytes(b"0123456789" * 100)

    assert hasher.hash(path) == hasher.hash(str(path)) == hasher.hash_bytes(path.read_bytes())


def test_empty_input_has_stable_digest(hasher):
    assert hasher.hash(b"") == "d41d8cd98f00b204e9800998ecf8427e"


def test_alternative_algorithm():
    hasher = ContentHasher("SHA256")

    assert hasher.algorithm == "sha256"
    assert hasher.hash(b"abc") == hashlib.sha256(b"abc").hexdigest()


def test_unknown_algorithm_rejected():
    with pytest.raises(ValueError):
        ContentHasher("not-a-digest")


def test_variable_length_digest_rejected():
    with pytest.raises(ValueError):
        ContentHasher("shake_128")


def test_unreadable_file_raises_storage_io_error(tmp_path, hasher):
    with pytest.raises(StorageIOError):
        hasher.hash(tmp_path / "missing.bin")


def test_storage_io_error_is_an_os_error(tmp_path, hasher):
    with pytest.raises(OSError):
        hasher.hash_file(tmp_path / "missing.bin")

