"""Background task that reclaims abandoned chunk upload sessions."""

import asyncio
import time
from typing import Callable, List, Optional

from chunkstore.chunk_storage import ChunkStore
from common.constants import SESSION_TTL_SECONDS, SWEEP_INTERVAL_SECONDS
from common.exceptions import StorageIOError
from common.keyed_lock import KeyedLock
from common.logging_config import get_logger

logger = get_logger(__name__)


class StaleSessionSweeper:
    """
    Periodically removes chunk sessions that have not been touched for
    longer than the configured TTL.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        session_ttl_seconds: float = SESSION_TTL_SECONDS,
        interval_seconds: float = SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
        session_locks: Optional[KeyedLock] = None
    ):
        """
        Initialize sweeper task.

        Args:
            chunk_store: Store whose sessions are swept
            session_ttl_seconds: Idle age after which a session is abandoned
            interval_seconds: Time between sweeps
            clock: Source of the current POSIX time
            session_locks: Locks shared with the assembler; a session is only
                discarded while its lock is held
        """
        self.chunk_store = chunk_store
        self.session_ttl_seconds = session_ttl_seconds
        self.interval_seconds = interval_seconds
        self._clock = clock
        self.session_locks = session_locks if session_locks is not None else KeyedLock()
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def sweep(self) -> List[str]:
        """
        Remove every session idle for longer than the TTL.

        Returns:
            Identifiers of the removed sessions
        """
        cutoff = self._clock() - self.session_ttl_seconds
        removed = []

        for identifier in self.chunk_store.list_sessions():
            if not self._is_stale(identifier, cutoff):
                continue
            # Waits for an in-flight merge of the session to finish.
            with self.session_locks.hold(identifier):
                if not self._is_stale(identifier, cutoff):
                    continue
                try:
                    if self.chunk_store.discard(identifier):
                        removed.append(identifier)
                except StorageIOError as e:
                    logger.warning(f"Failed to remove stale session [identifier={identifier}]: {e}")

        if removed:
            logger.info(f"Swept {len(removed)} stale chunk sessions")
        return removed

    def _is_stale(self, identifier: str, cutoff: float) -> bool:
        last_modified = self.chunk_store.session_last_modified(identifier)
        return last_modified is not None and last_modified < cutoff

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._running:
            logger.warning("Session sweeper already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(
            f"Started stale session sweeper (interval: {self.interval_seconds}s, "
            f"ttl: {self.session_ttl_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Stopped stale session sweeper")

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                await asyncio.to_thread(self.sweep)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in session sweeper: {e}", exc_info=True)
