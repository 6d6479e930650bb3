"""Repository for collection rows stored in SQLite."""

from __future__ import annotations

from abc import ABC, abstractmethod
import json
import logging
from typing import Any

from portfolio_cms.adapters.sqlite_store import SqliteStore
from portfolio_cms.adapters.tables import table_for
from portfolio_cms.domain.model import Collection, SortMode, Status


logger = logging.getLogger(__name__)

_PUBLISHED_FILTER = "status = 'published'"


class AbstractContentRepository(ABC):
    """Abstract repository for collection rows, addressed by collection and integer id."""

    @abstractmethod
    async def insert(self, collection: Collection, columns: dict[str, Any]) -> int:
        """Insert a row and return its newly assigned id."""
        raise NotImplementedError

    @abstractmethod
    async def update(self, collection: Collection, row_id: int, columns: dict[str, Any]) -> int:
        """Replace a row's columns; returns the number of affected rows."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, collection: Collection, row_id: int) -> int:
        raise NotImplementedError

    @abstractmethod
    async def set_status(self, collection: Collection, row_id: int, status: Status) -> int:
        raise NotImplementedError

    @abstractmethod
    async def get(self, collection: Collection, row_id: int) -> dict[str, Any] | None:
        raise NotImplementedError

    @abstractmethod
    async def get_many(self, collection: Collection, row_ids: list[int]) -> dict[int, dict[str, Any]]:
        """Fetch rows by id; the result is keyed by id and carries no ordering."""
        raise NotImplementedError

    @abstractmethod
    async def count(self, collection: Collection, *, published_only: bool) -> int:
        raise NotImplementedError

    @abstractmethod
    async def page(
        self,
        collection: Collection,
        *,
        published_only: bool,
        sort: SortMode,
        limit: int,
        offset: int,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    async def rows(self, collection: Collection, *, published_only: bool = False) -> list[dict[str, Any]]:
        """Every row of the collection in id order."""
        raise NotImplementedError

    @abstractmethod
    async def order_ids(self, collection: Collection, row_ids: list[int], sort: SortMode) -> list[int]:
        """Re-sort a set of ids by the collection's date or id field."""
        raise NotImplementedError


class SqliteContentRepository(AbstractContentRepository):
    """Collection rows in the primary SQLite store.

    Statements run inside the caller's transaction when one is open on the store.
    """

    def __init__(self, store: SqliteStore):
        self.store = store

    async def insert(self, collection: Collection, columns: dict[str, Any]) -> int:
        table = table_for(collection)
        names = list(columns)
        placeholders = ", ".join("?" for _ in names)
        result = await self.store.execute(
            f"INSERT INTO {table.name} ({', '.join(names)}) VALUES ({placeholders})",
            [columns[name] for name in names],
        )
        if result.lastrowid is None:
            raise RuntimeError(f"Insert into {table.name} returned no row id")
        return result.lastrowid

    async def update(self, collection: Collection, row_id: int, columns: dict[str, Any]) -> int:
        table = table_for(collection)
        assignments = ", ".join(f"{name} = ?" for name in columns)
        result = await self.store.execute(
            f"UPDATE {table.name} SET {assignments} WHERE id = ?",
            [*columns.values(), row_id],
        )
        return result.rowcount

    async def delete(self, collection: Collection, row_id: int) -> int:
        table = table_for(collection)
        result = await self.store.execute(f"DELETE FROM {table.name} WHERE id = ?", (row_id,))
        return result.rowcount

    async def set_status(self, collection: Collection, row_id: int, status: Status) -> int:
        table = table_for(collection)
        result = await self.store.execute(f"UPDATE {table.name} SET status = ? WHERE id = ?", (status, row_id))
        return result.rowcount

    async def get(self, collection: Collection, row_id: int) -> dict[str, Any] | None:
        table = table_for(collection)
        return await self.store.fetchone(f"SELECT * FROM {table.name} WHERE id = ?", (row_id,))

    async def get_many(self, collection: Collection, row_ids: list[int]) -> dict[int, dict[str, Any]]:
        if not row_ids:
            return {}
        table = table_for(collection)
        rows = await self.store.fetchall(
            f"SELECT * FROM {table.name} WHERE id IN (SELECT value FROM json_each(?))",
            (json.dumps(row_ids),),
        )
        return {row["id"]: row for row in rows}

    async def count(self, collection: Collection, *, published_only: bool) -> int:
        table = table_for(collection)
        where = f" WHERE {_PUBLISHED_FILTER}" if published_only else ""
        return int(await self.store.scalar(f"SELECT COUNT(*) FROM {table.name}{where}") or 0)

    async def page(
        self,
        collection: Collection,
        *,
        published_only: bool,
        sort: SortMode,
        limit: int,
        offset: int,
    ) -> list[dict[str, Any]]:
        table = table_for(collection)
        where = f" WHERE {_PUBLISHED_FILTER}" if published_only else ""
        order = table.order_clause(newest=sort is not SortMode.OLDEST)
        return await self.store.fetchall(
            f"SELECT * FROM {table.name}{where} ORDER BY {order} LIMIT ? OFFSET ?",
            (limit, offset),
        )

    async def rows(self, collection: Collection, *, published_only: bool = False) -> list[dict[str, Any]]:
        table = table_for(collection)
        where = f" WHERE {_PUBLISHED_FILTER}" if published_only else ""
        return await self.store.fetchall(f"SELECT * FROM {table.name}{where} ORDER BY id")

    async def order_ids(self, collection: Collection, row_ids: list[int], sort: SortMode) -> list[int]:
        if not row_ids:
            return []
        table = table_for(collection)
        order = table.order_clause(newest=sort is not SortMode.OLDEST)
        rows = await self.store.fetchall(
            f"SELECT id FROM {table.name} WHERE id IN (SELECT value FROM json_each(?)) ORDER BY {order}",
            (json.dumps(row_ids),),
        )
        return [row["id"] for row in rows]
