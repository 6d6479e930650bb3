"""Unit tests for the FTS5 search index and its synchronisation with rows."""

import pytest

from portfolio_cms.domain.model import Collection, validate_record
from portfolio_cms.search.fts_index import FtsSearchIndex, check_fts5_available
from portfolio_cms.service_layer.unit_of_work import SqliteUnitOfWork


@pytest.fixture
async def index(store):
    fts = FtsSearchIndex(store)
    await fts.prepare()
    return fts


async def _insert(store, index, collection: Collection, payload: dict) -> int:
    columns = validate_record(collection, payload).columns()
    async with SqliteUnitOfWork(store, index) as uow:
        row_id = await uow.content.insert(collection, columns)
        await uow.index.add(collection, row_id, columns)
        await uow.commit()
    return row_id


@pytest.mark.unit
def test_fts5_probe_succeeds():
    ok, message = check_fts5_available()
    assert ok, message
    assert "FTS5" in message


@pytest.mark.unit
class TestFtsSearchIndex:
    @pytest.mark.asyncio
    async def test_prefix_query_matches_body(self, store, index):
        row_id = await _insert(store, index, Collection.APPS, {"title": "Foo", "description": "bar baz"})

        assert await index.search(Collection.APPS, "ba", published_only=True) == [row_id]

    @pytest.mark.asyncio
    async def test_exact_title_ranks_first(self, store, index):
        await _insert(store, index, Collection.POSTS, {"title": "Cooking notes", "content": "garden garden"})
        target = await _insert(store, index, Collection.POSTS, {"title": "Garden diary", "content": "spring"})
        await _insert(store, index, Collection.POSTS, {"title": "Misc", "content": "a garden visit"})

        results = await index.search(Collection.POSTS, "Garden diary", published_only=True)

        assert results[0] == target

    @pytest.mark.asyncio
    async def test_terms_are_and_ed(self, store, index):
        await _insert(store, index, Collection.APPS, {"title": "Foo", "description": "bar"})
        both = await _insert(store, index, Collection.APPS, {"title": "Foo", "description": "bar qux"})

        assert await index.search(Collection.APPS, "foo qux", published_only=True) == [both]

    @pytest.mark.asyncio
    async def test_project_payload_is_searchable(self, store, index):
        row_id = await _insert(
            store,
            index,
            Collection.PROJECTS,
            {"title": "Shop", "data": {"summary": "storefront", "technologies": ["django", "htmx"]}},
        )

        assert await index.search(Collection.PROJECTS, "htm", published_only=True) == [row_id]

    @pytest.mark.asyncio
    async def test_drafts_hidden_from_public_search(self, store, index):
        row_id = await _insert(store, index, Collection.APPS, {"title": "Secret", "status": "draft"})

        assert await index.search(Collection.APPS, "secret", published_only=True) == []
        assert await index.search(Collection.APPS, "secret", published_only=False) == [row_id]

    @pytest.mark.asyncio
    async def test_replace_swaps_indexed_text(self, store, index):
        row_id = await _insert(store, index, Collection.APPS, {"title": "Old name", "description": "x"})
        await index.replace(Collection.APPS, row_id, {"title": "New name", "description": "x"})

        assert await index.search(Collection.APPS, "old", published_only=True) == []
        assert await index.search(Collection.APPS, "new", published_only=True) == [row_id]

    @pytest.mark.asyncio
    async def test_remove(self, store, index):
        row_id = await _insert(store, index, Collection.APPS, {"title": "Foo"})
        await index.remove(Collection.APPS, row_id)

        assert await index.search(Collection.APPS, "foo", published_only=False) == []

    @pytest.mark.asyncio
    async def test_empty_query_returns_nothing(self, store, index):
        await _insert(store, index, Collection.APPS, {"title": "Foo"})
        assert await index.search(Collection.APPS, "   ", published_only=True) == []


@pytest.mark.unit
class TestFtsConsistency:
    @pytest.mark.asyncio
    async def test_rebuild_loads_existing_rows(self, store, index):
        await store.execute("INSERT INTO apps (title, description) VALUES ('Foo', 'bar baz')")
        await store.execute("INSERT INTO blog (title, content) VALUES ('Hello', 'world')")

        rebuilt = await index.rebuild()

        assert rebuilt == list(Collection)
        counts = await index.counts()
        assert counts[Collection.APPS].indexed == 1
        assert counts[Collection.POSTS].indexed == 1
        assert all(count.consistent for count in counts.values())
        assert len(await index.search(Collection.APPS, "baz", published_only=True)) == 1

    @pytest.mark.asyncio
    async def test_ensure_consistent_repairs_only_stale_indexes(self, store, index):
        await store.execute("INSERT INTO apps (title) VALUES ('Unindexed')")

        repaired = await index.ensure_consistent()

        assert repaired == [Collection.APPS]
        assert (await index.counts())[Collection.APPS].consistent
        assert await index.ensure_consistent() == []

    @pytest.mark.asyncio
    async def test_missing_index_table_is_rebuilt(self, store, index):
        await store.execute("DROP TABLE blog_fts")
        assert (await index.counts())[Collection.POSTS].indexed is None

        assert await index.ensure_consistent() == [Collection.POSTS]
        assert await store.table_exists("blog_fts")
