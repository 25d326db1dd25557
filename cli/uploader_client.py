"""HTTP client that uploads files to the upload service in resumable chunks."""

import math
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

from common.constants import DEFAULT_CLIENT_CHUNK_SIZE_BYTES, DEFAULT_HASH_ALGORITHM
from common.hashing import ContentHasher
from common.logging_config import get_logger

logger = get_logger(__name__)


class UploadFailedError(Exception):
    """
    Raised when the service rejects a request.
    """

    def __init__(self, message: str, status_code: int = 0, code: str = "", chunk_number: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.chunk_number = chunk_number


class UploaderClient:
    """HTTP client for the upload service with retry logic and error handling."""

    def __init__(
        self,
        base_url: str,
        chunk_size: int = DEFAULT_CLIENT_CHUNK_SIZE_BYTES,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_backoff_multiplier: float = 2,
        hash_algorithm: str = DEFAULT_HASH_ALGORITHM,
        session: Optional[httpx.Client] = None
    ):
        """
        Initialize uploader client.

        Args:
            base_url: Service URL, e.g. http://localhost:8000
            chunk_size: Bytes per uploaded chunk
            timeout: Per-request timeout in seconds
            max_retries: Retries on 5xx responses and network errors
            retry_backoff_multiplier: Base of the exponential retry delay
            hash_algorithm: Digest algorithm; must match the service
            session: Preconfigured httpx.Client (testing)
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

        self.base_url = base_url
        self.chunk_size = chunk_size
        self.max_retries = max_retries
        self.retry_backoff_multiplier = retry_backoff_multiplier
        self.hasher = ContentHasher(hash_algorithm)
        self.session = session or httpx.Client(base_url=base_url, timeout=timeout)
        self.request_id: Optional[str] = None
        logger.info(f"Initialized UploaderClient [base_url={base_url}]")

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "UploaderClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request_with_retry(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Raises:
            ConnectionError: If max retries exceeded or connection fails
        """
        self.request_id = str(uuid.uuid4())
        headers = kwargs.setdefault('headers', {})
        headers['X-Request-ID'] = self.request_id

        logger.debug(f"Making request: {method} {endpoint} [request_id={self.request_id}]")

        last_exception = None
        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = self.retry_backoff_multiplier ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{self.max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={self.request_id}]"
                )
                break

            if response.status_code >= 500 and attempt < self.max_retries:
                delay = self.retry_backoff_multiplier ** attempt
                logger.warning(
                    f"Server error (attempt {attempt + 1}/{self.max_retries + 1}): "
                    f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                )
                time.sleep(delay)
                continue

            return response

        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Server may be overloaded.") from last_exception
        raise ConnectionError("Cannot connect to upload service. Is it running?") from last_exception

    @staticmethod
    def _json_or_raise(response: httpx.Response) -> Dict[str, Any]:
        if response.status_code < 400:
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        detail = body.get('detail', response.text)
        if not isinstance(detail, str):
            detail = str(detail)
        raise UploadFailedError(
            detail,
            status_code=response.status_code,
            code=body.get('code', ''),
            chunk_number=body.get('chunk_number'),
        )

    def chunk_exists(self, identifier: str, chunk_number: int, chunk_size: int, total_chunks: int, filename: str) -> bool:
        response = self._request_with_retry('GET', '/chunks', params={
            'identifier': identifier,
            'chunk_number': chunk_number,
            'chunk_size': chunk_size,
            'total_chunks': total_chunks,
            'filename': filename,
        })
        return bool(self._json_or_raise(response)['exists'])

    def upload_chunk(
        self,
        identifier: str,
        chunk_number: int,
        total_chunks: int,
        filename: str,
        data: bytes
    ) -> Dict[str, Any]:
        response = self._request_with_retry(
            'POST',
            '/chunks',
            data={
                'identifier': identifier,
                'chunk_number': str(chunk_number),
                'chunk_size': str(len(data)),
                'total_chunks': str(total_chunks),
                'filename': filename,
            },
            files={'file': (filename or 'chunk', data, 'application/octet-stream')},
        )
        return self._json_or_raise(response)

    def merge(self, identifier: str, total_chunks: int, filename: str) -> Dict[str, Any]:
        response = self._request_with_retry('POST', '/chunks/merge', json={
            'identifier': identifier,
            'total_chunks': total_chunks,
            'filename': filename,
        })
        return self._json_or_raise(response)

    def find_by_hash(self, content_hash: str) -> Optional[Dict[str, Any]]:
        response = self._request_with_retry('GET', f'/files/hash/{content_hash}')
        if response.status_code == 404:
            return None
        return self._json_or_raise(response)

    def get_file(self, file_id: str) -> Dict[str, Any]:
        return self._json_or_raise(self._request_with_retry('GET', f'/files/{file_id}'))

    def delete_file(self, file_id: str) -> Dict[str, Any]:
        return self._json_or_raise(self._request_with_retry('DELETE', f'/files/{file_id}'))

    def upload_file(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        """
        Upload a local file, sending only the chunks the service lacks.

        The content hash doubles as the upload identifier, so content that
        is already cataloged is not sent at all.

        Returns:
            The catalog record as returned by the service

        Raises:
            UploadFailedError: If the service rejects a request
            ConnectionError: If the service is unreachable
        """
        path = Path(file_path)
        file_size = path.stat().st_size
        identifier = self.hasher.hash_file(path)
        total_chunks = max(1, math.ceil(file_size / self.chunk_size))
        filename = path.name

        existing = self.find_by_hash(identifier)
        if existing is not None:
            logger.info(f"Content already stored, skipping upload [identifier={identifier}]")
            return existing

        logger.info(
            f"Uploading {filename} ({file_size} bytes) in {total_chunks} chunks [identifier={identifier}]"
        )

        sent = 0
        with open(path, 'rb') as f:
            for chunk_number in range(1, total_chunks + 1):
                data = f.read(self.chunk_size)
                if self.chunk_exists(identifier, chunk_number, len(data), total_chunks, filename):
                    logger.debug(f"Chunk {chunk_number}/{total_chunks} already stored, skipping")
                    continue
                self.upload_chunk(identifier, chunk_number, total_chunks, filename, data)
                sent += 1

        logger.info(f"Sent {sent}/{total_chunks} chunks, requesting merge [identifier={identifier}]")
        return self.merge(identifier, total_chunks, filename)

    def download_file(self, file_id: str, destination: Union[str, Path]) -> Path:
        """
        Download a cataloged file's bytes to destination.

        Raises:
            UploadFailedError: If the file is unknown or unavailable
        """
        destination = Path(destination)
        with self.session.stream('GET', f'/files/{file_id}/download') as response:
            if response.status_code >= 400:
                response.read()
                self._json_or_raise(response)

            destination.parent.mkdir(parents=True, exist_ok=True)
            with open(destination, 'wb') as f:
                for piece in response.iter_bytes():
                    f.write(piece)

        logger.info(f"Downloaded file {file_id} to {destination}")
        return destination
