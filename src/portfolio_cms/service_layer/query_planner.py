"""Read path: paginated, optionally searched and sorted listings."""

from __future__ import annotations

import logging
import math
from typing import Any

from portfolio_cms.adapters.content_repository import AbstractContentRepository
from portfolio_cms.domain.model import Collection, Page, SortMode, parse_payload_text
from portfolio_cms.observability.metrics import SEARCH_CACHE_EVENTS, SEARCH_LATENCY, track_latency
from portfolio_cms.search.cache import TTLCache
from portfolio_cms.search.index import AbstractSearchIndex
from portfolio_cms.search.text import normalize_query


logger = logging.getLogger(__name__)

SearchKey = tuple[str, str, str, bool]


def listing_description(collection: Collection, row: dict[str, Any]) -> str:
    """Short text shown in listings.

    Projects expose their payload summary; other collections prefer ``summary``
    and fall back to their primary content field.
    """
    if collection is Collection.PROJECTS:
        summary = parse_payload_text(row.get("data")).get("summary")
        return summary if isinstance(summary, str) else ""
    fallback = "content" if collection is Collection.POSTS else "description"
    return row.get("summary") or row.get(fallback) or ""


def shape_listing_item(collection: Collection, row: dict[str, Any]) -> dict[str, Any]:
    item = {
        "id": row["id"],
        "title": row["title"],
        "description": listing_description(collection, row),
        "url": row.get("url"),
        "image": row.get("image"),
        "status": row.get("status"),
    }
    if collection is Collection.POSTS:
        item["date"] = row.get("date")
    return item


def total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if total > 0 else 0


class QueryPlanner:
    """Combines the relational store and the search index to answer listing requests.

    Owns the search-result cache; it is only consulted when the index reports
    that its results may be cached.
    """

    def __init__(
        self,
        repository: AbstractContentRepository,
        index: AbstractSearchIndex,
        *,
        public_page_size: int,
        admin_page_size: int,
        cache: TTLCache[SearchKey, list[int]] | None = None,
    ):
        self.repository = repository
        self.index = index
        self.public_page_size = public_page_size
        self.admin_page_size = admin_page_size
        self.cache = cache

    async def list_public(
        self,
        collection: Collection,
        page: int = 1,
        query: str | None = None,
        sort: str | None = None,
    ) -> Page:
        """Published rows only, optionally searched."""
        text = normalize_query(query)
        mode = SortMode.parse(sort, has_query=bool(text))
        if not text:
            if self.cache is not None:
                self.cache.clear()
            return await self._plain_page(collection, page, self.public_page_size, published_only=True, sort=mode)
        return await self._search_page(collection, page, self.public_page_size, text=text, sort=mode)

    async def list_admin(self, collection: Collection, page: int = 1) -> Page:
        """Every row regardless of status, newest first, no search."""
        return await self._plain_page(
            collection,
            page,
            self.admin_page_size,
            published_only=False,
            sort=SortMode.NEWEST,
        )

    async def matched_ids(
        self,
        collection: Collection,
        text: str,
        sort: SortMode,
        *,
        published_only: bool = True,
    ) -> list[int]:
        """Full ordered id list for a search; pagination happens on this list."""
        key: SearchKey = (collection.value, text, sort.value, published_only)
        use_cache = self.cache is not None and self.index.cacheable
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                SEARCH_CACHE_EVENTS.labels(collection=collection.value, outcome="hit").inc()
                return cached
            SEARCH_CACHE_EVENTS.labels(collection=collection.value, outcome="miss").inc()

        with track_latency(SEARCH_LATENCY, collection=collection.value, strategy=self.index.strategy):
            ids = await self.index.search(collection, text, published_only=published_only)
        if sort is not SortMode.RELEVANCE:
            ids = await self.repository.order_ids(collection, ids, sort)

        if use_cache:
            self.cache.set(key, ids)
        return ids

    def invalidate_all(self) -> None:
        if self.cache is not None:
            self.cache.clear()

    def invalidate(self, collection: Collection) -> None:
        """Drop cached search results for ``collection`` after a write."""
        if self.cache is None:
            return
        dropped = self.cache.invalidate(lambda key: key[0] == collection.value)
        if dropped:
            logger.debug("Invalidated %d cached searches for %s", dropped, collection.value)

    async def _plain_page(
        self,
        collection: Collection,
        page: int,
        page_size: int,
        *,
        published_only: bool,
        sort: SortMode,
    ) -> Page:
        page = max(page, 1)
        total = await self.repository.count(collection, published_only=published_only)
        rows = await self.repository.page(
            collection,
            published_only=published_only,
            sort=sort,
            limit=page_size,
            offset=(page - 1) * page_size,
        )
        return Page(
            items=[shape_listing_item(collection, row) for row in rows],
            total_pages=total_pages(total, page_size),
            current_page=page,
        )

    async def _search_page(
        self,
        collection: Collection,
        page: int,
        page_size: int,
        *,
        text: str,
        sort: SortMode,
    ) -> Page:
        page = max(page, 1)
        ids = await self.matched_ids(collection, text, sort)
        offset = (page - 1) * page_size
        page_ids = ids[offset : offset + page_size]

        rows_by_id = await self.repository.get_many(collection, page_ids)
        # Row fetch order is arbitrary; the id list carries the ranking. Ids whose
        # rows vanished since a cached search simply drop out.
        items = [
            shape_listing_item(collection, rows_by_id[row_id])
            for row_id in page_ids
            if row_id in rows_by_id and rows_by_id[row_id].get("status") == "published"
        ]
        logger.debug("Search %s %r (%s): %d matches, page %d", collection.value, text, sort.value, len(ids), page)
        return Page(items=items, total_pages=total_pages(len(ids), page_size), current_page=page)
