"""SQLite migrations for the key-value store backend."""

from __future__ import annotations

import sqlite3


def ensure_kv_tables(conn: sqlite3.Connection) -> None:
    """Ensure the key-value table and its parent index exist."""
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS kv_entries (
            key TEXT PRIMARY KEY,
            parent TEXT NOT NULL,
            value TEXT,
            updated_at REAL NOT NULL
        )
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_kv_entries_parent "
        "ON kv_entries (parent, key)"
    )
    conn.commit()
