"""Deferred removal of cataloged file bytes."""

import asyncio
import os
import sqlite3
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from common.constants import DELETION_INTERVAL_SECONDS
from common.logging_config import get_logger

logger = get_logger(__name__)


class DeletionQueue:
    """
    Queue of file paths whose catalog records are already gone.

    Paths are removed on every drain: periodically while the background
    task runs and once more when it is stopped. Pending paths live only
    in memory, so a crash before the next drain leaves the bytes behind.
    """

    def __init__(
        self,
        interval_seconds: float = DELETION_INTERVAL_SECONDS,
        in_use: Optional[Callable[[str], bool]] = None
    ):
        """
        Initialize deletion queue.

        Args:
            interval_seconds: Time between background drains
            in_use: Tells whether a live catalog record still points at a path;
                such paths are dropped from the queue instead of deleted
        """
        self.interval_seconds = interval_seconds
        self.in_use = in_use
        self._pending: Dict[str, None] = {}
        self._lock = threading.Lock()
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def schedule(self, path: Union[str, Path]) -> None:
        key = os.path.abspath(str(path))
        with self._lock:
            self._pending[key] = None
        logger.debug(f"Scheduled file for deletion [path={key}]")

    def cancel(self, path: Union[str, Path]) -> bool:
        """
        Drop a pending deletion.

        Returns:
            True if the path was pending, False otherwise
        """
        key = os.path.abspath(str(path))
        with self._lock:
            if key in self._pending:
                del self._pending[key]
                logger.info(f"Cancelled pending deletion [path={key}]")
                return True
        return False

    def pending(self) -> List[str]:
        with self._lock:
            return list(self._pending)

    def drain(self) -> List[str]:
        """
        Delete every pending path now.

        Files that are already gone count as deleted. Paths that fail to
        delete stay queued for the next drain. Paths a live record points
        at again are released without deleting them.

        Returns:
            Paths that were deleted
        """
        deleted = []
        failed = 0

        for path in self.pending():
            # Held per path so cancel() can't interleave with the unlink.
            with self._lock:
                if path not in self._pending:
                    continue
                try:
                    reclaimed = self.in_use is not None and self.in_use(path)
                except (OSError, sqlite3.Error) as e:
                    logger.warning(f"Cannot check whether file is in use [path={path}]: {e}")
                    failed += 1
                    continue
                if reclaimed:
                    del self._pending[path]
                    logger.info(f"Skipped deletion of file owned by a live record [path={path}]")
                    continue
                try:
                    os.remove(path)
                except FileNotFoundError:
                    pass
                except OSError as e:
                    logger.warning(f"Failed to delete file [path={path}]: {e}")
                    failed += 1
                    continue
                del self._pending[path]
            deleted.append(path)

        if deleted or failed:
            logger.info(f"Deletion drain complete: {len(deleted)} deleted, {failed} remaining")
        return deleted

    async def start(self) -> None:
        """Start the background drain task."""
        if self._running:
            logger.warning("Deletion queue already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started deletion queue (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background task and drain whatever is still pending."""
        if self._running:
            self._running = False
            if self._task:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
                self._task = None

        await asyncio.to_thread(self.drain)
        logger.info("Stopped deletion queue")

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                await asyncio.to_thread(self.drain)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in deletion queue: {e}", exc_info=True)
