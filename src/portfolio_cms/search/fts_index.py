"""FTS5-backed search index kept in step with the collection tables.

Each collection gets a ``<table>_fts(title, body)`` virtual table whose rowid is
the row id. There are no triggers: the content service calls ``add``,
``replace`` and ``remove`` right after the row write, inside the same
transaction, so row and index commit or roll back together.
"""

from __future__ import annotations

from collections.abc import Mapping
import logging
import sqlite3
from typing import Any

from portfolio_cms.adapters.sqlite_pragmas import fts5_available
from portfolio_cms.adapters.sqlite_store import SqliteStore
from portfolio_cms.adapters.tables import TABLES, table_for
from portfolio_cms.domain.model import Collection
from portfolio_cms.search.index import AbstractSearchIndex, IndexCount
from portfolio_cms.search.text import build_match_expression, searchable_text


logger = logging.getLogger(__name__)

TOKENIZER = "unicode61 remove_diacritics 2"
PREFIX_LENGTHS = "2 3"
TITLE_WEIGHT = 10.0
BODY_WEIGHT = 1.0


def create_fts_sql(collection: Collection) -> str:
    table = table_for(collection)
    return (
        f"CREATE VIRTUAL TABLE IF NOT EXISTS {table.fts_name} "
        f"USING fts5(title, body, tokenize='{TOKENIZER}', prefix='{PREFIX_LENGTHS}')"
    )


class FtsSearchIndex(AbstractSearchIndex):
    """Engine-maintained relevance index (BM25 with the title weighted up)."""

    strategy = "fts"
    cacheable = False

    def __init__(self, store: SqliteStore):
        self.store = store

    async def prepare(self) -> None:
        async with self.store.transaction():
            for collection in Collection:
                await self.store.execute(create_fts_sql(collection))

    async def add(self, collection: Collection, row_id: int, row: Mapping[str, Any]) -> None:
        title, body = searchable_text(collection, row)
        await self.store.execute(
            f"INSERT INTO {table_for(collection).fts_name} (rowid, title, body) VALUES (?, ?, ?)",
            (row_id, title, body),
        )

    async def remove(self, collection: Collection, row_id: int) -> None:
        await self.store.execute(f"DELETE FROM {table_for(collection).fts_name} WHERE rowid = ?", (row_id,))

    async def replace(self, collection: Collection, row_id: int, row: Mapping[str, Any]) -> None:
        # Logical delete + insert under the same id.
        async with self.store.transaction():
            await self.remove(collection, row_id)
            await self.add(collection, row_id, row)

    async def search(self, collection: Collection, text: str, *, published_only: bool) -> list[int]:
        expression = build_match_expression(text)
        if expression is None:
            return []
        table = table_for(collection)
        fts = table.fts_name
        status_filter = f" AND {table.name}.status = 'published'" if published_only else ""
        rows = await self.store.fetchall(
            f"SELECT {fts}.rowid AS id FROM {fts} "
            f"JOIN {table.name} ON {table.name}.id = {fts}.rowid "
            f"WHERE {fts} MATCH ?{status_filter} "
            f"ORDER BY bm25({fts}, {TITLE_WEIGHT}, {BODY_WEIGHT}), {fts}.rowid",
            (expression,),
        )
        return [row["id"] for row in rows]

    async def rebuild(self, collection: Collection | None = None) -> list[Collection]:
        """Drop, recreate and bulk-load the index from the current rows, atomically."""
        targets = [collection] if collection is not None else list(Collection)
        async with self.store.transaction():
            for target in targets:
                table = table_for(target)
                await self.store.execute(f"DROP TABLE IF EXISTS {table.fts_name}")
                await self.store.execute(create_fts_sql(target))
                rows = await self.store.fetchall(f"SELECT * FROM {table.name}")
                await self.store.executemany(
                    f"INSERT INTO {table.fts_name} (rowid, title, body) VALUES (?, ?, ?)",
                    ((row["id"], *searchable_text(target, row)) for row in rows),
                )
                logger.info("Rebuilt %s search index with %d rows", table.name, len(rows))
        return targets

    async def ensure_consistent(self) -> list[Collection]:
        counts = await self.counts()
        stale = [collection for collection, count in counts.items() if count.indexed is None or not count.consistent]
        if not stale:
            return []
        for collection in stale:
            logger.warning(
                "Search index for %s out of step (rows=%s indexed=%s); rebuilding",
                collection.value,
                counts[collection].rows,
                counts[collection].indexed,
            )
            await self.rebuild(collection)
        return stale

    async def counts(self) -> dict[Collection, IndexCount]:
        result: dict[Collection, IndexCount] = {}
        for collection, table in TABLES.items():
            rows = int(await self.store.scalar(f"SELECT COUNT(*) FROM {table.name}") or 0)
            indexed = None
            if await self.store.table_exists(table.fts_name):
                indexed = int(await self.store.scalar(f"SELECT COUNT(*) FROM {table.fts_name}") or 0)
            result[collection] = IndexCount(rows=rows, indexed=indexed)
        return result


def check_fts5_available() -> tuple[bool, str]:
    """Probe the linked SQLite for working FTS5 prefix search.

    Creates an in-memory FTS5 table, inserts a sentence and searches it with a
    prefix query. Returns ``(ok, message)``.
    """
    conn = sqlite3.connect(":memory:")
    try:
        compiled = fts5_available(conn)
        try:
            conn.execute(f"CREATE VIRTUAL TABLE probe USING fts5(content, tokenize='{TOKENIZER}')")
        except sqlite3.Error as exc:
            return False, f"FTS5 is not available in SQLite {sqlite3.sqlite_version}: {exc}"
        conn.execute("INSERT INTO probe (content) VALUES ('this is a test in barcelona')")
        row = conn.execute("SELECT content FROM probe WHERE probe MATCH ?", ('"barc"*',)).fetchone()
        if row is None:
            return False, "FTS5 table created but the prefix query returned nothing"
        suffix = "" if compiled else " (ENABLE_FTS5 not listed in compile options)"
        return True, f"FTS5 prefix search works on SQLite {sqlite3.sqlite_version}{suffix}"
    finally:
        conn.close()
