"""Tests for the upload service HTTP API."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from conftest import md5_hex
from uploader.main import create_app

PIECES = [b"ABCD", b"EFGH", b"IJ"]
CONTENT = b"".join(PIECES)
IDENTIFIER = md5_hex(CONTENT)


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def chunk_form(identifier, chunk_number, data, total_chunks=3, filename="notes.txt"):
    return {
        "identifier": identifier,
        "chunk_number": str(chunk_number),
        "chunk_size": str(len(data)),
        "total_chunks": str(total_chunks),
        "filename": filename,
    }


def upload(client, identifier, chunk_number, data, total_chunks=3, filename="notes.txt"):
    return client.post(
        "/chunks",
        data=chunk_form(identifier, chunk_number, data, total_chunks, filename),
        files={"file": ("blob", data, "application/octet-stream")},
    )


def upload_all(client, identifier=IDENTIFIER, pieces=PIECES, filename="notes.txt"):
    for number, piece in enumerate(pieces, start=1):
        response = upload(client, identifier, number, piece, len(pieces), filename)
        assert response.status_code == 201


def merge(client, identifier=IDENTIFIER, total_chunks=3, filename="notes.txt"):
    return client.post("/chunks/merge", json={
        "identifier": identifier,
        "total_chunks": total_chunks,
        "filename": filename,
    })


class TestServiceInfo:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy", "service": "uploader"}

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_generated(self, client):
        assert client.get("/health").headers["X-Request-ID"]


class TestChunks:

    def test_upload_chunk(self, client, settings):
        response = upload(client, IDENTIFIER, 1, b"ABCD")

        assert response.status_code == 201
        assert response.json() == {
            "identifier": IDENTIFIER,
            "chunk_number": 1,
            "total_chunks": 3,
            "size": 4,
        }
        assert (settings.chunks_root / IDENTIFIER / "1.tmp").read_bytes() == b"ABCD"

    def test_chunk_presence(self, client):
        params = {
            "identifier": IDENTIFIER,
            "chunk_number": 1,
            "chunk_size": 4,
            "total_chunks": 3,
            "filename": "notes.txt",
        }
        assert client.get("/chunks", params=params).json()["exists"] is False

        upload(client, IDENTIFIER, 1, b"ABCD")

        assert client.get("/chunks", params=params).json()["exists"] is True
        assert client.get("/chunks", params={**params, "chunk_size": 5}).json()["exists"] is False

    def test_upload_reports_bytes_written_by_store(self, client):
        chunk_store = client.app.state.components.chunk_store

        with patch.object(chunk_store, "save", return_value=4) as save:
            response = upload(client, IDENTIFIER, 1, b"ABCD")

        assert save.call_count == 1
        assert response.status_code == 201
        assert response.json()["size"] == 4

    def test_chunk_number_out_of_range(self, client):
        response = upload(client, IDENTIFIER, 4, b"ABCD", total_chunks=3)

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_CHUNK"

    def test_unsafe_identifier_rejected(self, client):
        response = upload(client, "..", 1, b"ABCD")

        assert response.status_code == 422

    def test_session_state(self, client):
        upload(client, IDENTIFIER, 1, b"ABCD")
        upload(client, IDENTIFIER, 3, b"IJ")

        body = client.get(f"/chunks/{IDENTIFIER}").json()

        assert body == {"identifier": IDENTIFIER, "state": "pending", "uploaded_chunks": [1, 3]}


class TestMerge:

    def test_merge_creates_record(self, client, settings):
        upload_all(client)

        response = merge(client)

        assert response.status_code == 200
        body = response.json()
        assert body["content_hash"] == IDENTIFIER
        assert body["extension"] == "txt"
        assert body["size_bytes"] == 10
        assert (settings.files_root / f"{IDENTIFIER}.txt").read_bytes() == CONTENT
        assert client.get(f"/chunks/{IDENTIFIER}").json()["state"] == "complete"

    def test_merge_is_idempotent(self, client):
        upload_all(client)

        first = merge(client).json()
        second = merge(client).json()

        assert second == first
        assert len(client.get("/files").json()["files"]) == 1

    def test_missing_chunk_reports_chunk_number(self, client):
        upload(client, IDENTIFIER, 1, b"ABCD")
        upload(client, IDENTIFIER, 3, b"IJ")

        response = merge(client)

        assert response.status_code == 409
        assert response.json()["code"] == "CHUNK_MISSING"
        assert response.json()["chunk_number"] == 2
        assert client.get(f"/files/hash/{IDENTIFIER}").status_code == 404

    def test_integrity_mismatch(self, client):
        identifier = md5_hex(b"different content")
        upload_all(client, identifier=identifier)

        response = merge(client, identifier=identifier)

        assert response.status_code == 422
        assert response.json()["code"] == "INTEGRITY_MISMATCH"
        assert client.get(f"/chunks/{identifier}").json()["state"] == "failed"

    def test_merge_validates_body(self, client):
        response = client.post("/chunks/merge", json={"identifier": IDENTIFIER, "total_chunks": 0})

        assert response.status_code == 422


class TestFiles:

    @pytest.fixture
    def record(self, client):
        upload_all(client)
        return merge(client).json()

    def test_get_by_id_and_hash(self, client, record):
        assert client.get(f"/files/{record['id']}").json() == record
        assert client.get(f"/files/hash/{IDENTIFIER}").json() == record

    def test_unknown_id(self, client):
        response = client.get("/files/does-not-exist")

        assert response.status_code == 404
        assert response.json()["code"] == "RECORD_NOT_FOUND"

    def test_download(self, client, record):
        response = client.get(f"/files/{record['id']}/download")

        assert response.status_code == 200
        assert response.content == CONTENT

    def test_delete(self, client, record, settings):
        response = client.delete(f"/files/{record['id']}")

        assert response.status_code == 200
        assert client.get(f"/files/{record['id']}").status_code == 404
        assert client.get(f"/files/{record['id']}/download").status_code == 404
        assert client.app.state.components.deletion_queue.pending() == [record["storage_path"]]

    def test_delete_then_reupload(self, client, record):
        client.delete(f"/files/{record['id']}")

        again = merge(client)

        assert again.status_code == 200
        assert again.json()["id"] != record["id"]
        assert client.get(f"/files/{again.json()['id']}/download").content == CONTENT

    def test_list_pagination(self, client, record):
        assert client.get("/files", params={"limit": 1}).json()["files"] == [record]
        assert client.get("/files", params={"offset": 1}).json()["files"] == []


def test_shutdown_drains_deleted_files(settings):
    app = create_app(settings)
    with TestClient(app) as client:
        upload_all(client)
        record = merge(client).json()
        client.delete(f"/files/{record['id']}")
        target = settings.files_root / f"{IDENTIFIER}.txt"
        assert target.exists()

    assert not target.exists()


def test_openapi_documents_merge_errors(client):
    responses = client.get("/openapi.json").json()["paths"]["/chunks/merge"]["post"]["responses"]

    assert {"200", "409", "422", "503"} <= set(responses)
