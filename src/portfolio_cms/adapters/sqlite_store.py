"""Single-connection async wrapper around the embedded SQLite database.

The store owns exactly one ``sqlite3`` connection. Blocking calls run in a worker
thread, and an ``asyncio.Lock`` makes sure only one of them is active at a time:
requests interleave at each awaited call but never execute concurrently.

A task that opened a transaction holds the lock until it commits or rolls back;
its own calls inside the transaction run without re-acquiring it, while every
other task waits at its next store call.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Iterable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
import logging
from pathlib import Path
import sqlite3
from typing import Any, TypeVar

import anyio

from portfolio_cms.adapters.sqlite_pragmas import apply_connection_pragmas
from portfolio_cms.errors import StoreError


logger = logging.getLogger(__name__)

T = TypeVar("T")

MEMORY_PATH = ":memory:"


@dataclass(frozen=True, slots=True)
class ExecResult:
    """Outcome of a mutating statement."""

    rowcount: int
    lastrowid: int | None


class SqliteStore:
    """Explicitly owned store handle injected into migrator, index and planner."""

    def __init__(self, db_path: Path | str, *, busy_timeout_ms: int = 5000):
        self.db_path = str(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()
        self._tx_owner: asyncio.Task | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        if self._conn is not None:
            return
        if self.db_path != MEMORY_PATH:
            Path(self.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = await anyio.to_thread.run_sync(self._connect)
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open database {self.db_path}: {exc}") from exc
        logger.info("Opened SQLite store at %s", self.db_path)

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are only ever opened explicitly via begin().
        conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        conn.row_factory = sqlite3.Row
        apply_connection_pragmas(conn, busy_timeout_ms=self.busy_timeout_ms)
        return conn

    async def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        async with self._lock:
            await anyio.to_thread.run_sync(conn.close)
        logger.info("Closed SQLite store at %s", self.db_path)

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #

    def in_transaction(self) -> bool:
        """True when the calling task owns the open transaction."""
        owner = self._tx_owner
        return owner is not None and owner is asyncio.current_task()

    async def begin(self) -> None:
        """Acquire the store and open an IMMEDIATE transaction."""
        if self.in_transaction():
            raise StoreError("Transaction already open in this task")
        await self._lock.acquire()
        self._tx_owner = asyncio.current_task()
        try:
            await self._run(lambda conn: conn.execute("BEGIN IMMEDIATE"))
        except BaseException:
            self._release()
            raise

    async def commit(self) -> None:
        self._require_owner()
        try:
            await self._run(lambda conn: conn.execute("COMMIT"))
        except StoreError:
            await self._rollback_quietly()
            raise
        finally:
            self._release()

    async def rollback(self) -> None:
        self._require_owner()
        try:
            await self._run(lambda conn: conn.execute("ROLLBACK"))
        finally:
            self._release()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqliteStore]:
        """All-or-nothing unit: commit on success, roll back on any exception.

        Re-entering from the task that already owns the transaction joins it.
        """
        if self.in_transaction():
            yield self
            return
        await self.begin()
        try:
            yield self
        except BaseException:
            await self.rollback()
            raise
        else:
            await self.commit()

    async def _rollback_quietly(self) -> None:
        conn = self._conn
        if conn is None or not conn.in_transaction:
            return
        try:
            await anyio.to_thread.run_sync(lambda: conn.execute("ROLLBACK"))
        except sqlite3.Error:
            logger.warning("Rollback after failed commit also failed", exc_info=True)

    def _require_owner(self) -> None:
        if not self.in_transaction():
            raise StoreError("No transaction owned by the current task")

    def _release(self) -> None:
        self._tx_owner = None
        if self._lock.locked():
            self._lock.release()

    # ------------------------------------------------------------------ #
    # Statements
    # ------------------------------------------------------------------ #

    async def _run(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        conn = self._conn
        if conn is None:
            raise StoreError("Store is not open")

        def call() -> T:
            try:
                return fn(conn)
            except sqlite3.Error as exc:
                raise StoreError(str(exc)) from exc

        return await anyio.to_thread.run_sync(call)

    async def _serialized(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        if self.in_transaction():
            return await self._run(fn)
        async with self._lock:
            return await self._run(fn)

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecResult:
        def op(conn: sqlite3.Connection) -> ExecResult:
            cursor = conn.execute(sql, tuple(params))
            return ExecResult(rowcount=cursor.rowcount, lastrowid=cursor.lastrowid)

        return await self._serialized(op)

    async def executemany(self, sql: str, rows: Iterable[Sequence[Any]]) -> int:
        materialized = [tuple(row) for row in rows]
        if not materialized:
            return 0
        return await self._serialized(lambda conn: conn.executemany(sql, materialized).rowcount)

    async def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        def op(conn: sqlite3.Connection) -> list[dict[str, Any]]:
            return [dict(row) for row in conn.execute(sql, tuple(params)).fetchall()]

        return await self._serialized(op)

    async def fetchone(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        def op(conn: sqlite3.Connection) -> dict[str, Any] | None:
            row = conn.execute(sql, tuple(params)).fetchone()
            return dict(row) if row is not None else None

        return await self._serialized(op)

    async def scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        def op(conn: sqlite3.Connection) -> Any:
            row = conn.execute(sql, tuple(params)).fetchone()
            return row[0] if row is not None else None

        return await self._serialized(op)

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    async def table_exists(self, name: str) -> bool:
        found = await self.scalar(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (name,),
        )
        return found is not None

    async def table_columns(self, name: str) -> list[str]:
        """Column names of ``name`` in declaration order; empty when the table is absent."""
        rows = await self.fetchall("SELECT name FROM pragma_table_info(?) ORDER BY cid", (name,))
        return [row["name"] for row in rows]

    async def user_version(self) -> int:
        return int(await self.scalar("PRAGMA user_version") or 0)

    async def set_user_version(self, version: int) -> None:
        await self.execute(f"PRAGMA user_version = {int(version)}")
