"""Tests for the health endpoint."""

import json
from types import SimpleNamespace

import pytest

from portfolio_cms.adapters.sqlite_store import MEMORY_PATH
from portfolio_cms.domain.model import Collection
from portfolio_cms.errors import StoreError
from portfolio_cms.migrations.runner import MigrationReport
from portfolio_cms.runtime.health import build_health_endpoint
from portfolio_cms.search.index import IndexCount


class _StubIndex:
    strategy = "fts"

    def __init__(self, counts=None, error=None):
        self._counts = counts or {}
        self._error = error

    async def counts(self):
        if self._error is not None:
            raise self._error
        return self._counts


def _request(runtime):
    state = SimpleNamespace(runtime=runtime) if runtime is not None else SimpleNamespace()
    return SimpleNamespace(app=SimpleNamespace(state=state))


def _runtime(index):
    return SimpleNamespace(
        index=index,
        store=SimpleNamespace(db_path=MEMORY_PATH, is_open=True),
        migration=MigrationReport(schema_version=3),
    )


@pytest.mark.unit
class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_starting_before_lifespan(self):
        response = await build_health_endpoint()(_request(None))

        assert response.status_code == 503
        assert json.loads(response.body) == {"status": "starting"}

    @pytest.mark.asyncio
    async def test_healthy_when_indexes_match(self):
        index = _StubIndex({Collection.APPS: IndexCount(rows=2, indexed=2), Collection.POSTS: IndexCount(0, None)})

        response = await build_health_endpoint()(_request(_runtime(index)))
        body = json.loads(response.body)

        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["store"] == {"path": MEMORY_PATH, "open": True}
        assert body["search"]["indexes"]["blog"] == {"rows": 0, "indexed": None, "consistent": True}
        assert body["schema"]["schema_version"] == 3

    @pytest.mark.asyncio
    async def test_degraded_when_index_drifts(self):
        index = _StubIndex({Collection.APPS: IndexCount(rows=3, indexed=2)})

        response = await build_health_endpoint()(_request(_runtime(index)))

        assert response.status_code == 200
        assert json.loads(response.body)["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_unhealthy_when_store_fails(self):
        index = _StubIndex(error=StoreError("database is closed"))

        response = await build_health_endpoint()(_request(_runtime(index)))

        assert response.status_code == 503
        assert json.loads(response.body)["status"] == "unhealthy"
