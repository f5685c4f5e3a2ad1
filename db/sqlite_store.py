"""SQLite-backed store for single-node deployments."""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
import time
from typing import Any, Callable, TypeVar

import anyio

from catalog.errors import StoreError
from db.migrations import ensure_kv_tables
from db.store import ChangeCallback, ChangeListeners, Unsubscribe, parent_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _encode(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def _decode(raw: str | None) -> Any:
    if raw is None:
        return None
    return json.loads(raw)


class SqliteStore:
    """``KeyValueStore`` persisted in one SQLite table.

    Blocking sqlite calls run in worker threads through
    ``anyio.to_thread.run_sync``; a connection-level lock serializes them, so
    ``insert_if_absent`` and ``compare_and_swap`` are atomic for every caller
    of this process and, through SQLite's own write lock, for other processes
    sharing the file.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        directory = os.path.dirname(os.path.abspath(db_path))
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._lock = threading.Lock()
        self._listeners = ChangeListeners()
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False, timeout=30)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            ensure_kv_tables(self._conn)
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to open store at {db_path}: {exc}") from exc

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        def _locked() -> T:
            with self._lock:
                try:
                    return func(*args)
                except sqlite3.Error as exc:
                    self._conn.rollback()
                    raise StoreError(f"Store operation failed: {exc}") from exc
                except (TypeError, ValueError) as exc:
                    # json encode/decode of a stored value; JSONDecodeError is a ValueError.
                    self._conn.rollback()
                    raise StoreError(f"Store value is not valid JSON: {exc}") from exc

        return await anyio.to_thread.run_sync(_locked)

    def _ensure_ancestors(self, cur: sqlite3.Cursor, key: str, now: float) -> None:
        child = key
        parent = parent_key(child)
        while parent:
            grandparent = parent_key(parent)
            cur.execute(
                "INSERT OR IGNORE INTO kv_entries (key, parent, value, updated_at) VALUES (?, ?, NULL, ?)",
                (parent, grandparent, now),
            )
            if cur.rowcount == 0:
                break
            child, parent = parent, grandparent

    def _upsert_sync(self, key: str, value: Any) -> None:
        now = time.time()
        cur = self._conn.cursor()
        cur.execute(
            """
            INSERT INTO kv_entries (key, parent, value, updated_at) VALUES (?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
            """,
            (key, parent_key(key), _encode(value), now),
        )
        self._ensure_ancestors(cur, key, now)
        self._conn.commit()

    def _get_sync(self, key: str) -> Any:
        row = self._conn.execute("SELECT value FROM kv_entries WHERE key=?", (key,)).fetchone()
        if row is None:
            return None
        return _decode(row["value"])

    def _children_sync(self, key: str) -> dict[str, Any]:
        rows = self._conn.execute(
            """
            SELECT e.key, e.value
            FROM kv_entries e
            WHERE e.parent=?
              AND (
                e.value IS NOT NULL
                OR EXISTS (SELECT 1 FROM kv_entries c WHERE c.parent=e.key AND c.value IS NOT NULL)
              )
            ORDER BY e.key
            """,
            (key,),
        ).fetchall()
        prefix_len = len(key) + 1
        return {row["key"][prefix_len:]: _decode(row["value"]) for row in rows}

    def _insert_if_absent_sync(self, key: str, value: Any) -> bool:
        now = time.time()
        cur = self._conn.cursor()
        cur.execute(
            """
            INSERT INTO kv_entries (key, parent, value, updated_at) VALUES (?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
            WHERE kv_entries.value IS NULL
            """,
            (key, parent_key(key), _encode(value), now),
        )
        written = cur.rowcount == 1
        if written:
            self._ensure_ancestors(cur, key, now)
        self._conn.commit()
        return written

    def _compare_and_swap_sync(self, key: str, expected: Any, new: Any) -> bool:
        if expected is None:
            return self._insert_if_absent_sync(key, new)
        cur = self._conn.cursor()
        cur.execute(
            "UPDATE kv_entries SET value=?, updated_at=? WHERE key=? AND value=?",
            (_encode(new), time.time(), key, _encode(expected)),
        )
        swapped = cur.rowcount == 1
        self._conn.commit()
        return swapped

    async def get(self, key: str) -> Any:
        return await self._run(self._get_sync, key)

    async def put(self, key: str, value: Any) -> None:
        await self._run(self._upsert_sync, key, value)
        self._listeners.notify(key, value)

    def on_change(self, key: str, callback: ChangeCallback) -> Unsubscribe:
        return self._listeners.subscribe(key, callback)

    async def children(self, key: str) -> dict[str, Any]:
        return await self._run(self._children_sync, key)

    async def insert_if_absent(self, key: str, value: Any) -> bool:
        written = await self._run(self._insert_if_absent_sync, key, value)
        if written:
            self._listeners.notify(key, value)
        return written

    async def compare_and_swap(self, key: str, expected: Any, new: Any) -> bool:
        swapped = await self._run(self._compare_and_swap_sync, key, expected, new)
        if swapped:
            self._listeners.notify(key, new)
        return swapped

    def close(self) -> None:
        with self._lock:
            try:
                self._conn.close()
            except sqlite3.Error:
                logger.exception("Failed to close store at %s", self.db_path)
