"""CLI entry point."""

import argparse
import json
import os
import sys
from typing import List, Optional

from common.constants import DEFAULT_CLIENT_CHUNK_SIZE_BYTES, DEFAULT_HASH_ALGORITHM
from common.logging_config import setup_logging
from cli.uploader_client import UploaderClient, UploadFailedError

DEFAULT_SERVER_URL = "http://localhost:8000"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chunk-uploader",
        description="Upload files to the chunked upload service",
    )
    parser.add_argument(
        "--server",
        default=os.getenv("UPLOADER_SERVER_URL", DEFAULT_SERVER_URL),
        help="Service base URL (env: UPLOADER_SERVER_URL)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--hash-algorithm", default=DEFAULT_HASH_ALGORITHM)

    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="Upload a file in chunks")
    upload.add_argument("path")
    upload.add_argument("--chunk-size", type=int, default=DEFAULT_CLIENT_CHUNK_SIZE_BYTES)

    info = subparsers.add_parser("info", help="Show a catalog record by id")
    info.add_argument("file_id")

    lookup = subparsers.add_parser("lookup", help="Show a catalog record by content hash")
    lookup.add_argument("content_hash")

    delete = subparsers.add_parser("delete", help="Delete a catalog record")
    delete.add_argument("file_id")

    download = subparsers.add_parser("download", help="Download a stored file")
    download.add_argument("file_id")
    download.add_argument("destination")

    return parser


def run(args: argparse.Namespace, client: UploaderClient) -> dict:
    """
    Execute one parsed command.

    Returns:
        JSON-serializable result
    """
    if args.command == "upload":
        return client.upload_file(args.path)
    if args.command == "info":
        return client.get_file(args.file_id)
    if args.command == "lookup":
        record = client.find_by_hash(args.content_hash)
        if record is None:
            raise UploadFailedError(f"No file with content hash {args.content_hash}", 404, "RECORD_NOT_FOUND")
        return record
    if args.command == "delete":
        return client.delete_file(args.file_id)
    if args.command == "download":
        path = client.download_file(args.file_id, args.destination)
        return {"file_id": args.file_id, "path": str(path)}
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logger = setup_logging('cli', log_level='DEBUG' if args.debug else None)

    chunk_size = getattr(args, "chunk_size", DEFAULT_CLIENT_CHUNK_SIZE_BYTES)
    try:
        with UploaderClient(args.server, chunk_size=chunk_size, hash_algorithm=args.hash_algorithm) as client:
            result = run(args, client)
    except UploadFailedError as e:
        print(f"Error ({e.code or e.status_code}): {e}", file=sys.stderr)
        return 1
    except OSError as e:
        logger.error(f"CLI error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
