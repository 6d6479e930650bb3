"""Composition root: builds the store, index, planner and service for one process."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from portfolio_cms.adapters.content_repository import SqliteContentRepository
from portfolio_cms.adapters.image_storage import ImageStorage
from portfolio_cms.adapters.sqlite_store import SqliteStore
from portfolio_cms.config import Settings
from portfolio_cms.migrations.runner import MigrationReport, MigrationRunner
from portfolio_cms.observability.metrics import INDEX_ROW_COUNT
from portfolio_cms.search.cache import TTLCache
from portfolio_cms.search.fts_index import FtsSearchIndex
from portfolio_cms.search.fuzzy_index import FuzzySearchIndex
from portfolio_cms.search.index import AbstractSearchIndex
from portfolio_cms.service_layer.query_planner import QueryPlanner
from portfolio_cms.service_layer.services import ContentService
from portfolio_cms.service_layer.unit_of_work import SqliteUnitOfWork


logger = logging.getLogger(__name__)


@dataclass
class PortfolioRuntime:
    """Everything a running server needs, created once and closed at shutdown."""

    settings: Settings
    store: SqliteStore
    index: AbstractSearchIndex
    planner: QueryPlanner
    service: ContentService
    images: ImageStorage
    migration: MigrationReport

    async def reindex(self) -> list[str]:
        """Rebuild every search index and drop cached results."""
        rebuilt = await self.index.rebuild()
        self.planner.invalidate_all()
        await publish_index_counts(self.index)
        return [collection.value for collection in rebuilt]

    async def close(self) -> None:
        await self.store.close()


def build_index(settings: Settings, store: SqliteStore) -> AbstractSearchIndex:
    if settings.uses_fts():
        return FtsSearchIndex(store)
    return FuzzySearchIndex(SqliteContentRepository(store), threshold=settings.fuzzy_threshold)


async def publish_index_counts(index: AbstractSearchIndex) -> None:
    for collection, count in (await index.counts()).items():
        INDEX_ROW_COUNT.labels(collection=collection.value).set(
            count.indexed if count.indexed is not None else count.rows
        )


async def migrate_store(settings: Settings, store: SqliteStore) -> MigrationReport:
    legacy_path = settings.legacy_database_path
    return await MigrationRunner(store, legacy_path=legacy_path).run()


async def bootstrap(settings: Settings, *, store: SqliteStore | None = None) -> PortfolioRuntime:
    """Migrate the store, bring the search index in step and wire the services.

    Raises:
        MigrationError: the schema could not be brought up to date
    """
    store = store or SqliteStore(settings.database_path, busy_timeout_ms=settings.busy_timeout_ms)
    try:
        report = await migrate_store(settings, store)

        index = build_index(settings, store)
        await index.prepare()
        if settings.reindex_on_startup:
            await index.rebuild()
        else:
            await index.ensure_consistent()
        await publish_index_counts(index)
    except Exception:
        await store.close()
        raise

    cache = None
    if index.cacheable:
        cache = TTLCache(settings.search_cache_ttl_seconds)

    repository = SqliteContentRepository(store)
    planner = QueryPlanner(
        repository,
        index,
        public_page_size=settings.public_page_size,
        admin_page_size=settings.admin_page_size,
        cache=cache,
    )
    service = ContentService(lambda: SqliteUnitOfWork(store, index), repository, planner)

    images = ImageStorage(settings.upload_dir, max_bytes=settings.max_upload_bytes)
    images.ensure_ready()

    logger.info(
        "Portfolio runtime ready (store=%s, search=%s, schema=v%d)",
        store.db_path,
        index.strategy,
        report.schema_version,
    )
    return PortfolioRuntime(
        settings=settings,
        store=store,
        index=index,
        planner=planner,
        service=service,
        images=images,
        migration=report,
    )
