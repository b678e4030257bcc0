"""Async key-value store over a versioned SQLite container.

The durable tier of the config store. One connection is opened lazily,
shared by every caller and released after ``idle_timeout`` seconds without
activity. SQLite calls run in a worker thread so the event loop never blocks
on disk I/O.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


class KeyValueStoreError(Exception):
    """Opening the container or running a transaction failed."""


class KeyValueStore:
    def __init__(
        self,
        db_path: Path,
        store_name: str = "config",
        version: int = 1,
        idle_timeout: float = 5.0,
    ) -> None:
        if not store_name.isidentifier():
            raise ValueError(f"Invalid store name: {store_name!r}")
        self._db_path = db_path
        self._store_name = store_name
        self._version = version
        self._idle_timeout = idle_timeout
        self._conn: Optional[sqlite3.Connection] = None
        self._opening: Optional[asyncio.Task[sqlite3.Connection]] = None
        self._idle_handle: Optional[asyncio.TimerHandle] = None
        self._lock = asyncio.Lock()
        self._active = 0
        self.open_count = 0

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    # ── Public API ─────────────────────────────────────

    async def get(self, key: str) -> Any:
        row = await self._run(
            lambda conn: conn.execute(
                f"SELECT value FROM {self._store_name} WHERE key = ?", (key,)
            ).fetchone()
        )
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except ValueError as e:
            log.warning("Corrupt value for %r in %s: %s", key, self._db_path, e)
            raise KeyValueStoreError(f"Corrupt value for {key!r}: {e}") from e

    async def put(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)

        def op(conn: sqlite3.Connection) -> None:
            with conn:
                conn.execute(
                    f"""INSERT OR REPLACE INTO {self._store_name}
                        (key, value, updated_at) VALUES (?, ?, ?)""",
                    (key, payload, time.time()),
                )

        await self._run(op)

    async def delete(self, key: str) -> None:
        def op(conn: sqlite3.Connection) -> None:
            with conn:
                conn.execute(
                    f"DELETE FROM {self._store_name} WHERE key = ?", (key,)
                )

        await self._run(op)

    def invalidate(self) -> None:
        """Drop the cached connection; the next call reopens it."""
        self._cancel_idle_timer()
        if self._conn is not None:
            log.debug("Dropping connection to %s", self._db_path)
            conn, self._conn = self._conn, None
            conn.close()

    async def close(self) -> None:
        if self._opening is not None:
            try:
                await self._opening
            except KeyValueStoreError:
                pass
        async with self._lock:
            self.invalidate()

    # ── Connection pool ────────────────────────────────

    async def _connection(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        if self._opening is None:
            self._opening = asyncio.get_running_loop().create_task(self._open())
            self._opening.add_done_callback(self._on_open_done)
        return await asyncio.shield(self._opening)

    def _on_open_done(self, task: asyncio.Task) -> None:
        self._opening = None
        if not task.cancelled():
            # Retrieved here so an unawaited failure is not reported as lost.
            task.exception()

    async def _open(self) -> sqlite3.Connection:
        try:
            conn = await asyncio.to_thread(self._open_sync)
        except (sqlite3.Error, OSError) as e:
            log.error("Failed to open %s: %s", self._db_path, e)
            raise KeyValueStoreError(f"Cannot open {self._db_path}: {e}") from e
        self.open_count += 1
        self._conn = conn
        self._arm_idle_timer()
        log.debug("Opened %s (v%d)", self._db_path, self._version)
        return conn

    def _open_sync(self) -> sqlite3.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            current = conn.execute("PRAGMA user_version").fetchone()[0]
            if current > self._version:
                raise sqlite3.DatabaseError(
                    f"container version {current} is newer than {self._version}"
                )
            # Upgrade needed: create the table and stamp the version.
            with conn:
                conn.execute(
                    f"""CREATE TABLE IF NOT EXISTS {self._store_name} (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at REAL NOT NULL
                    )"""
                )
                if current < self._version:
                    conn.execute(f"PRAGMA user_version = {int(self._version)}")
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def _arm_idle_timer(self) -> None:
        self._cancel_idle_timer()
        loop = asyncio.get_running_loop()
        self._idle_handle = loop.call_later(self._idle_timeout, self._release_idle)

    def _cancel_idle_timer(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

    def _release_idle(self) -> None:
        self._idle_handle = None
        if self._active or self._lock.locked():
            self._arm_idle_timer()
            return
        log.debug("Releasing idle connection to %s", self._db_path)
        self.invalidate()

    # ── Transactions ───────────────────────────────────

    async def _run(self, op: Callable[[sqlite3.Connection], T]) -> T:
        self._active += 1
        try:
            async with self._lock:
                conn = await self._connection()
                try:
                    return await asyncio.to_thread(self._checked, conn, op)
                except sqlite3.Error as e:
                    log.warning("Transaction on %s failed: %s", self._db_path, e)
                    if self._conn is conn:
                        self.invalidate()
                    raise KeyValueStoreError(str(e)) from e
        finally:
            self._active -= 1
            if self._conn is not None:
                self._arm_idle_timer()

    def _checked(
        self, conn: sqlite3.Connection, op: Callable[[sqlite3.Connection], T]
    ) -> T:
        on_disk = conn.execute("PRAGMA user_version").fetchone()[0]
        if on_disk != self._version:
            raise sqlite3.DatabaseError(
                f"container version changed to {on_disk} by another writer"
            )
        return op(conn)
