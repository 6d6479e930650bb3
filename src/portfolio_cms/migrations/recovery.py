"""Recovery of a designated legacy database file into a fresh primary store.

Runs before the primary store is opened. The fresh store is assembled in a
temporary file next to the primary and only swapped in with ``os.replace``
once every table has been copied, so a failure never leaves a half-written
primary behind.
"""

from __future__ import annotations

import contextlib
import logging
import os
from pathlib import Path
import sqlite3

from portfolio_cms.adapters.tables import TABLES, TableSpec
from portfolio_cms.domain.model import Collection, ProjectData


logger = logging.getLogger(__name__)

RECOVERY_SUFFIX = ".recovering"
LEGACY_PROJECT_COLUMN = "description"


def _columns(conn: sqlite3.Connection, schema: str, table: str) -> list[str]:
    rows = conn.execute("SELECT name FROM pragma_table_info(?, ?) ORDER BY cid", (table, schema)).fetchall()
    return [row[0] for row in rows]


def _copy_table(conn: sqlite3.Connection, table: TableSpec) -> int:
    legacy_columns = _columns(conn, "legacy", table.name)
    if not legacy_columns:
        return 0

    if table.collection is Collection.PROJECTS and LEGACY_PROJECT_COLUMN in legacy_columns and "data" not in legacy_columns:
        shared = [name for name in table.column_names if name in legacy_columns and name != "data"]
        rows = conn.execute(
            f"SELECT {', '.join(shared)}, {LEGACY_PROJECT_COLUMN} FROM legacy.{table.name}"
        ).fetchall()
        placeholders = ", ".join("?" for _ in range(len(shared) + 1))
        conn.executemany(
            f"INSERT INTO main.{table.name} ({', '.join(shared)}, data) VALUES ({placeholders})",
            [(*row[:-1], ProjectData.from_legacy(row[-1]).to_json()) for row in rows],
        )
        return len(rows)

    shared = [name for name in table.column_names if name in legacy_columns]
    selects = ", ".join(_select_expression(table, name) for name in shared)
    cursor = conn.execute(
        f"INSERT INTO main.{table.name} ({', '.join(shared)}) SELECT {selects} FROM legacy.{table.name}"
    )
    return cursor.rowcount


def _select_expression(table: TableSpec, name: str) -> str:
    # An explicit NULL bypasses a column DEFAULT, so NOT NULL columns fall back to it here.
    ddl = dict(table.columns)[name]
    marker = "NOT NULL DEFAULT "
    if marker in ddl:
        return f"COALESCE({name}, {ddl.split(marker, 1)[1]})"
    return name


def _build_fresh_store(target: Path, legacy_path: Path) -> dict[str, int]:
    copied: dict[str, int] = {}
    conn = sqlite3.connect(target, isolation_level=None)
    try:
        conn.execute("ATTACH DATABASE ? AS legacy", (str(legacy_path),))
        conn.execute("BEGIN")
        try:
            for table in TABLES.values():
                conn.execute(table.create_sql())
                copied[table.name] = _copy_table(conn, table)
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
        conn.execute("DETACH DATABASE legacy")
    finally:
        conn.close()
    return copied


def _discard(path: Path) -> None:
    with contextlib.suppress(FileNotFoundError):
        path.unlink()


def recover_legacy_store(primary_path: Path, legacy_path: Path) -> bool:
    """Rebuild the primary store from ``legacy_path`` when that file exists.

    Best-effort: failures are logged, the temporary file is removed, the primary
    and the legacy file are left untouched, and False is returned.

    Returns:
        True when the primary was replaced and the legacy file removed
    """
    if not legacy_path.is_file():
        return False

    temp_path = primary_path.with_name(primary_path.name + RECOVERY_SUFFIX)
    logger.warning("Legacy database %s found; rebuilding %s from it", legacy_path, primary_path)
    try:
        primary_path.parent.mkdir(parents=True, exist_ok=True)
        _discard(temp_path)
        copied = _build_fresh_store(temp_path, legacy_path)
        # Stale WAL/SHM files would be replayed onto the new file.
        for sidecar in ("-wal", "-shm"):
            _discard(primary_path.with_name(primary_path.name + sidecar))
        os.replace(temp_path, primary_path)
        legacy_path.unlink()
    except (sqlite3.Error, OSError):
        logger.error("Legacy database recovery from %s failed; continuing without it", legacy_path, exc_info=True)
        _discard(temp_path)
        return False

    logger.info("Recovered legacy database into %s: %s", primary_path, copied)
    return True
