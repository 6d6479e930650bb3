"""Content service - mutations and single-item reads for every collection.

Each mutation is one unit of work: the row write and the matching index write
commit together. Concurrent edits of the same row are last-write-wins; there is
no row versioning.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
from typing import Any

from portfolio_cms.adapters.content_repository import AbstractContentRepository
from portfolio_cms.adapters.tables import table_for
from portfolio_cms.domain.model import Collection, parse_payload_text, validate_record, validate_status
from portfolio_cms.observability.metrics import CONTENT_MUTATIONS
from portfolio_cms.service_layer.query_planner import QueryPlanner
from portfolio_cms.service_layer.unit_of_work import AbstractUnitOfWork


logger = logging.getLogger(__name__)


class ContentService:
    """Injectable service behind the create/update/delete/status/get endpoints."""

    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        repository: AbstractContentRepository,
        planner: QueryPlanner,
    ):
        self.uow_factory = uow_factory
        self.repository = repository
        self.planner = planner

    async def create(self, collection: Collection, payload: Any) -> int:
        record = validate_record(collection, payload)
        columns = record.columns()
        async with self.uow_factory() as uow:
            row_id = await uow.content.insert(collection, columns)
            await uow.index.add(collection, row_id, columns)
            await uow.commit()
        self._after_write(collection, "create")
        logger.info("Created %s %d", collection.value, row_id)
        return row_id

    async def update(self, collection: Collection, row_id: int, payload: Any) -> int:
        """Full update that keeps the stored status unless the payload sets one.

        Returns the number of affected rows (0 when the id is unknown).
        """
        record = validate_record(collection, payload)
        columns = record.update_columns()
        async with self.uow_factory() as uow:
            changes = await uow.content.update(collection, row_id, columns)
            if changes:
                await uow.index.replace(collection, row_id, columns)
            await uow.commit()
        self._after_write(collection, "update")
        logger.info("Updated %s %d (changes=%d)", collection.value, row_id, changes)
        return changes

    async def delete(self, collection: Collection, row_id: int) -> int:
        async with self.uow_factory() as uow:
            deleted = await uow.content.delete(collection, row_id)
            if deleted:
                await uow.index.remove(collection, row_id)
            await uow.commit()
        self._after_write(collection, "delete")
        logger.info("Deleted %s %d (deleted=%d)", collection.value, row_id, deleted)
        return deleted

    async def set_status(self, collection: Collection, row_id: int, status: Any) -> int:
        """Publish or unpublish; the index is untouched since visibility is filtered at query time."""
        checked = validate_status(status)
        async with self.uow_factory() as uow:
            changes = await uow.content.set_status(collection, row_id, checked)
            await uow.commit()
        self._after_write(collection, "status")
        logger.info("Set %s %d status=%s (changes=%d)", collection.value, row_id, checked, changes)
        return changes

    async def get(self, collection: Collection, row_id: int, *, published_only: bool = False) -> dict[str, Any] | None:
        row = await self.repository.get(collection, row_id)
        if row is None or (published_only and row.get("status") != "published"):
            return None
        return _deserialise(collection, row)

    async def snapshot(self, *, published_only: bool = True) -> dict[str, list[dict[str, Any]]]:
        """Rows of every collection keyed by table name, in id order."""
        snapshot: dict[str, list[dict[str, Any]]] = {}
        for collection in Collection:
            rows = await self.repository.rows(collection, published_only=published_only)
            snapshot[table_for(collection).name] = [_deserialise(collection, row) for row in rows]
        return snapshot

    def _after_write(self, collection: Collection, operation: str) -> None:
        self.planner.invalidate(collection)
        CONTENT_MUTATIONS.labels(collection=collection.value, operation=operation).inc()


def _deserialise(collection: Collection, row: dict[str, Any]) -> dict[str, Any]:
    if collection is Collection.PROJECTS:
        row["data"] = parse_payload_text(row.get("data"))
    return row
