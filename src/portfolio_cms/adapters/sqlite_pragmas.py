"""Shared SQLite PRAGMA helpers for the primary store connection."""

from __future__ import annotations

import sqlite3


def apply_connection_pragmas(
    conn: sqlite3.Connection,
    *,
    busy_timeout_ms: int | None = 5000,
    journal_mode: str = "WAL",
    synchronous: str = "NORMAL",
    cache_size_kb: int = -16384,
    foreign_keys: bool = True,
) -> None:
    """Apply the PRAGMAs every store connection runs with."""
    if busy_timeout_ms is not None:
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
    # In-memory databases silently stay in "memory" journal mode.
    conn.execute(f"PRAGMA journal_mode = {journal_mode}")
    conn.execute(f"PRAGMA synchronous = {synchronous}")
    conn.execute(f"PRAGMA cache_size = {cache_size_kb}")
    conn.execute(f"PRAGMA foreign_keys = {'ON' if foreign_keys else 'OFF'}")


def fts5_available(conn: sqlite3.Connection) -> bool:
    """Return True when the linked SQLite library was compiled with FTS5."""
    try:
        rows = conn.execute("PRAGMA compile_options").fetchall()
    except sqlite3.Error:
        return False
    return any(str(row[0]).upper() == "ENABLE_FTS5" for row in rows)
