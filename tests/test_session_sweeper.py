"""Tests for reclaiming abandoned chunk sessions."""

import asyncio
import os
import threading
import time
from unittest.mock import patch

from chunkstore.session_sweeper import StaleSessionSweeper
from common.keyed_lock import KeyedLock
from common.types import ChunkDescriptor
from conftest import md5_hex, store_chunks
from uploader.services.assembly_service import FileAssembler


def save_session(chunk_store, identifier, mtime):
    chunk_store.save(ChunkDescriptor(identifier, 1, 4, 1, "a.bin"), b"ABCD")
    os.utime(chunk_store.chunk_path(identifier, 1), (mtime, mtime))
    os.utime(chunk_store.session_dir(identifier), (mtime, mtime))


def test_sweep_removes_only_stale_sessions(chunk_store):
    now = 1_000_000.0
    save_session(chunk_store, "stale", now - 7200)
    save_session(chunk_store, "fresh", now - 60)
    sweeper = StaleSessionSweeper(chunk_store, session_ttl_seconds=3600, clock=lambda: now)

    assert sweeper.sweep() == ["stale"]
    assert chunk_store.list_sessions() == ["fresh"]


def test_sweep_with_no_sessions(chunk_store):
    sweeper = StaleSessionSweeper(chunk_store, session_ttl_seconds=1)

    assert sweeper.sweep() == []


def test_sweep_waits_for_in_flight_merge(chunk_store, catalog, hasher, settings):
    pieces = [b"ABCD", b"EFGH", b"IJ"]
    identifier = md5_hex(b"".join(pieces))
    descriptors = store_chunks(chunk_store, identifier, pieces)
    locks = KeyedLock()
    assembler = FileAssembler(
        chunk_store=chunk_store,
        catalog=catalog,
        hasher=hasher,
        files_root=settings.files_root,
        session_locks=locks,
    )
    sweeper = StaleSessionSweeper(
        chunk_store,
        session_ttl_seconds=60,
        clock=lambda: time.time() + 10 ** 6,
        session_locks=locks,
    )
    swept = []
    sweep_thread = threading.Thread(target=lambda: swept.extend(sweeper.sweep()))
    sweep_blocked = []
    read_chunk = chunk_store.read

    def read_then_sweep(session_id, chunk_number):
        stream = read_chunk(session_id, chunk_number)
        if chunk_number == 1:
            sweep_thread.start()
            sweep_thread.join(timeout=0.5)
            sweep_blocked.append(sweep_thread.is_alive())
        return stream

    with patch.object(chunk_store, "read", side_effect=read_then_sweep):
        record = assembler.merge_chunks(descriptors[0])
    sweep_thread.join()

    assert sweep_blocked == [True]
    assert record.size_bytes == 10
    assert swept == [identifier]
    assert chunk_store.list_sessions() == []


def test_session_touched_while_waiting_is_kept(chunk_store):
    now = 1_000_000.0
    save_session(chunk_store, "busy", now - 7200)
    locks = KeyedLock()
    sweeper = StaleSessionSweeper(
        chunk_store, session_ttl_seconds=3600, clock=lambda: now, session_locks=locks
    )
    lock_holder = locks.hold("busy")
    lock_holder.__enter__()
    sweep_thread = threading.Thread(target=sweeper.sweep)
    sweep_thread.start()
    sweep_thread.join(timeout=0.2)

    os.utime(chunk_store.session_dir("busy"), (now, now))
    lock_holder.__exit__(None, None, None)
    sweep_thread.join()

    assert chunk_store.list_sessions() == ["busy"]


def test_start_and_stop(chunk_store):
    sweeper = StaleSessionSweeper(chunk_store, interval_seconds=3600)

    async def scenario():
        await sweeper.start()
        assert sweeper._task is not None
        await sweeper.stop()

    asyncio.run(scenario())

    assert sweeper._task is None
