"""Shared test fixtures and configuration."""

import os
from pathlib import Path

import pytest


# Complete test environment that overrides every setting a developer .env could supply
TEST_ENV = {
    "PORTFOLIO_DATABASE_PATH": ":memory:",
    "PORTFOLIO_LEGACY_DATABASE_PATH": "missing-legacy-portfolio.db",
    "PORTFOLIO_UPLOAD_DIR": "uploads",
    "PORTFOLIO_SITE_DIR": "site",
    "PORTFOLIO_MAX_UPLOAD_BYTES": "1048576",
    "PORTFOLIO_BUSY_TIMEOUT_MS": "1000",
    "PORTFOLIO_SEARCH_STRATEGY": "fts",
    "PORTFOLIO_FUZZY_THRESHOLD": "0.4",
    "PORTFOLIO_SEARCH_CACHE_TTL_SECONDS": "300",
    "PORTFOLIO_REINDEX_ON_STARTUP": "true",
    "PORTFOLIO_PUBLIC_PAGE_SIZE": "9",
    "PORTFOLIO_ADMIN_PAGE_SIZE": "5",
    "PORTFOLIO_HOST": "127.0.0.1",
    "PORTFOLIO_PORT": "13000",
    "PORTFOLIO_TLS_ENABLED": "false",
    "PORTFOLIO_LOG_LEVEL": "warning",
    "PORTFOLIO_LOG_JSON": "false",
    "PORTFOLIO_ACCESS_LOG": "false",
    "PORTFOLIO_OTLP_ENDPOINT": "",
    "PORTFOLIO_OTLP_PROTOCOL": "http",
}


# Set environment variables immediately when conftest.py is loaded
for key, value in TEST_ENV.items():
    os.environ[key] = value

from portfolio_cms.adapters.sqlite_store import MEMORY_PATH, SqliteStore
from portfolio_cms.config import Settings
from portfolio_cms.migrations.runner import MigrationRunner


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset the portfolio environment before each test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with an in-memory store and a per-test upload directory."""
    return Settings(upload_dir=tmp_path / "uploads", legacy_database_path=tmp_path / "legacy.db")


@pytest.fixture
async def store():
    """Open, fully migrated in-memory store."""
    sqlite_store = SqliteStore(MEMORY_PATH)
    await MigrationRunner(sqlite_store).run()
    yield sqlite_store
    await sqlite_store.close()
