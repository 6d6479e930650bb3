"""Application-computed fuzzy search over the live rows of a collection."""

from __future__ import annotations

import logging

from portfolio_cms.adapters.content_repository import AbstractContentRepository
from portfolio_cms.domain.model import Collection
from portfolio_cms.search.fuzzy import text_score
from portfolio_cms.search.index import AbstractSearchIndex, IndexCount
from portfolio_cms.search.text import searchable_text, tokenize


logger = logging.getLogger(__name__)


class FuzzySearchIndex(AbstractSearchIndex):
    """Scores every row on each search; nothing is persisted.

    Because the work is repeated per request, the planner caches the resulting
    id lists for a bounded time (see ``TTLCache``).
    """

    strategy = "fuzzy"
    cacheable = True

    def __init__(self, repository: AbstractContentRepository, *, threshold: float = 0.4):
        self.repository = repository
        self.threshold = threshold

    async def search(self, collection: Collection, text: str, *, published_only: bool) -> list[int]:
        query_tokens = tokenize(text)
        if not query_tokens:
            return []

        rows = await self.repository.rows(collection, published_only=published_only)
        query_set = set(query_tokens)
        scored: list[tuple[float, float, int, int]] = []
        for row in rows:
            title, body = searchable_text(collection, row)
            title_tokens = tokenize(title)
            score = text_score(query_tokens, title_tokens + tokenize(body))
            if score <= self.threshold:
                # Ties: title hits first, then titles with the fewest words beyond the query.
                extra_words = sum(1 for token in title_tokens if token not in query_set)
                scored.append((score, text_score(query_tokens, title_tokens), extra_words, row["id"]))

        scored.sort()
        logger.debug(
            "Fuzzy search on %s for %r matched %d of %d rows",
            collection.value,
            text,
            len(scored),
            len(rows),
        )
        return [row_id for *_, row_id in scored]

    async def counts(self) -> dict[Collection, IndexCount]:
        result: dict[Collection, IndexCount] = {}
        for collection in Collection:
            result[collection] = IndexCount(
                rows=await self.repository.count(collection, published_only=False),
                indexed=None,
            )
        return result
