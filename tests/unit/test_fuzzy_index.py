"""Unit tests for the in-memory fuzzy search strategy."""

import pytest

from portfolio_cms.adapters.content_repository import SqliteContentRepository
from portfolio_cms.domain.model import Collection, validate_record
from portfolio_cms.search.fuzzy_index import FuzzySearchIndex


@pytest.fixture
def repository(store) -> SqliteContentRepository:
    return SqliteContentRepository(store)


@pytest.fixture
def index(repository) -> FuzzySearchIndex:
    return FuzzySearchIndex(repository, threshold=0.4)


async def _insert(repository, collection: Collection, payload: dict) -> int:
    return await repository.insert(collection, validate_record(collection, payload).columns())


@pytest.mark.unit
class TestFuzzySearchIndex:
    @pytest.mark.asyncio
    async def test_prefix_query_matches(self, repository, index):
        row_id = await _insert(repository, Collection.APPS, {"title": "Foo", "description": "bar baz"})

        assert await index.search(Collection.APPS, "ba", published_only=True) == [row_id]

    @pytest.mark.asyncio
    async def test_tolerates_typos(self, repository, index):
        row_id = await _insert(repository, Collection.POSTS, {"title": "Learning Python", "content": "notes"})

        assert await index.search(Collection.POSTS, "pyhton", published_only=True) == [row_id]

    @pytest.mark.asyncio
    async def test_rows_above_threshold_are_dropped(self, repository, index):
        await _insert(repository, Collection.APPS, {"title": "Foo", "description": "bar baz"})

        assert await index.search(Collection.APPS, "kumquat", published_only=True) == []

    @pytest.mark.asyncio
    async def test_orders_by_score_then_title_then_id(self, repository, index):
        typo = await _insert(repository, Collection.APPS, {"title": "Widgt", "description": "tool"})
        body_hit = await _insert(repository, Collection.APPS, {"title": "Tool", "description": "widget maker"})
        title_hit = await _insert(repository, Collection.APPS, {"title": "Widget", "description": "tool"})

        results = await index.search(Collection.APPS, "widget", published_only=True)

        assert results == [title_hit, body_hit, typo]

    @pytest.mark.asyncio
    async def test_drafts_only_for_unfiltered_search(self, repository, index):
        row_id = await _insert(repository, Collection.APPS, {"title": "Hidden", "status": "draft"})

        assert await index.search(Collection.APPS, "hidden", published_only=True) == []
        assert await index.search(Collection.APPS, "hidden", published_only=False) == [row_id]

    @pytest.mark.asyncio
    async def test_counts_have_no_index_side(self, repository, index):
        await _insert(repository, Collection.APPS, {"title": "Foo"})

        counts = await index.counts()

        assert counts[Collection.APPS].rows == 1
        assert counts[Collection.APPS].indexed is None
        assert counts[Collection.APPS].consistent
        assert FuzzySearchIndex.cacheable

    @pytest.mark.asyncio
    async def test_exact_title_ranks_before_longer_prefix_matches(self, repository, index):
        longer = [await _insert(repository, Collection.APPS, {"title": f"Foo Widget {n}"}) for n in range(3)]
        exact = await _insert(repository, Collection.APPS, {"title": "Foo"})

        assert await index.search(Collection.APPS, "foo", published_only=True) == [exact, *longer]
