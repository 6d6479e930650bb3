"""Forward-only schema migrations for the collection tables.

Every step inspects the live table structure first and does nothing when the
table is already in shape, so each can run on every startup.
"""

from __future__ import annotations

import logging

from portfolio_cms.adapters.sqlite_store import SqliteStore
from portfolio_cms.adapters.tables import TABLES, table_for
from portfolio_cms.domain.model import Collection, ProjectData
from portfolio_cms.errors import MigrationError, StoreError
from portfolio_cms.migrations.recovery import LEGACY_PROJECT_COLUMN


logger = logging.getLogger(__name__)

LEGACY_PROJECTS_TABLE = "projects_legacy"


async def create_tables(store: SqliteStore) -> None:
    """Create any missing collection table in its current shape."""
    async with store.transaction():
        for table in TABLES.values():
            await store.execute(table.create_sql())


async def add_missing_columns(store: SqliteStore) -> list[str]:
    """Append nullable/defaulted columns that older tables lack (check-then-add).

    Returns:
        ``table.column`` names that were added
    """
    added: list[str] = []
    try:
        async with store.transaction():
            for table in TABLES.values():
                existing = set(await store.table_columns(table.name))
                if not existing:
                    continue
                for name, ddl in table.additive_columns:
                    if name in existing:
                        continue
                    await store.execute(f"ALTER TABLE {table.name} ADD COLUMN {name} {ddl}")
                    added.append(f"{table.name}.{name}")
    except StoreError as exc:
        logger.error("Additive column migration failed and was rolled back: %s", exc)
        raise MigrationError(f"Adding columns failed: {exc}") from exc

    if added:
        logger.info("Added columns: %s", ", ".join(added))
    return added


def _legacy_payload(row: dict) -> str:
    payload = ProjectData.from_stored(row.get("data"))
    if not payload.summary:
        payload.summary = row.get(LEGACY_PROJECT_COLUMN) or ""
    return payload.to_json()


def _shared_value(row: dict, name: str):
    if name == "status" and row.get(name) is None:
        return "published"
    return row[name]


async def migrate_project_payloads(store: SqliteStore) -> int | None:
    """Rewrite a legacy ``projects`` table (flat ``description``) into the structured-payload shape.

    Rename -> create -> transform -> insert -> drop, all in one transaction.
    Ids and the AUTOINCREMENT counter are preserved.

    Returns:
        Number of migrated rows, or None when the table is already current

    Raises:
        MigrationError: the transaction was rolled back; the table is untouched
    """
    table = table_for(Collection.PROJECTS)
    old_columns = await store.table_columns(table.name)
    if LEGACY_PROJECT_COLUMN not in old_columns:
        return None

    shared = [name for name in table.column_names if name in old_columns and name != "data"]
    logger.warning("Legacy %s schema detected (%s); migrating", table.name, ", ".join(old_columns))
    try:
        async with store.transaction():
            sequence = None
            if await store.table_exists("sqlite_sequence"):
                sequence = await store.scalar("SELECT seq FROM sqlite_sequence WHERE name = ?", (table.name,))

            await store.execute(f"ALTER TABLE {table.name} RENAME TO {LEGACY_PROJECTS_TABLE}")
            await store.execute(table.create_sql(if_not_exists=False))

            rows = await store.fetchall(f"SELECT * FROM {LEGACY_PROJECTS_TABLE} ORDER BY id")
            placeholders = ", ".join("?" for _ in range(len(shared) + 1))
            await store.executemany(
                f"INSERT INTO {table.name} ({', '.join(shared)}, data) VALUES ({placeholders})",
                ((*(_shared_value(row, name) for name in shared), _legacy_payload(row)) for row in rows),
            )
            await store.execute(f"DROP TABLE {LEGACY_PROJECTS_TABLE}")

            if sequence is not None:
                await store.execute(
                    "INSERT INTO sqlite_sequence (name, seq) SELECT ?, 0 "
                    "WHERE NOT EXISTS (SELECT 1 FROM sqlite_sequence WHERE name = ?)",
                    (table.name, table.name),
                )
                await store.execute(
                    "UPDATE sqlite_sequence SET seq = ? WHERE name = ? AND seq < ?",
                    (sequence, table.name, sequence),
                )
    except StoreError as exc:
        logger.error("Migration of %s failed and was rolled back: %s", table.name, exc)
        raise MigrationError(f"Structural migration of {table.name} failed: {exc}") from exc

    logger.info("Migrated %d %s rows to the structured payload shape", len(rows), table.name)
    return len(rows)
