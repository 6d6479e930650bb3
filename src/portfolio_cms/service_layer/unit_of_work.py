"""Unit of Work for SQLite: one transaction covering a row write and its index write."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging

from portfolio_cms.adapters.content_repository import AbstractContentRepository, SqliteContentRepository
from portfolio_cms.adapters.sqlite_store import SqliteStore
from portfolio_cms.search.index import AbstractSearchIndex


logger = logging.getLogger(__name__)


class AbstractUnitOfWork(ABC):
    """Abstract Unit of Work."""

    content: AbstractContentRepository
    index: AbstractSearchIndex

    async def __aenter__(self):
        """Enter transaction context."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit transaction context - rollback unless explicitly committed."""
        if not getattr(self, "_committed", False):
            await self.rollback()

    @abstractmethod
    async def commit(self):
        """Commit the transaction."""
        raise NotImplementedError

    @abstractmethod
    async def rollback(self):
        """Rollback the transaction."""
        raise NotImplementedError


class SqliteUnitOfWork(AbstractUnitOfWork):
    """Unit of Work over the single store connection.

    Entering opens an IMMEDIATE transaction and holds the store until commit or
    rollback, so the repository write and the index write that follows it are
    seen by other requests together or not at all.
    """

    def __init__(self, store: SqliteStore, index: AbstractSearchIndex):
        self.store = store
        self.content = SqliteContentRepository(store)
        self.index = index
        self._committed = False

    async def __aenter__(self):
        await self.store.begin()
        self._committed = False
        return self

    async def commit(self):
        await self.store.commit()
        self._committed = True

    async def rollback(self):
        if self.store.in_transaction():
            await self.store.rollback()
            logger.debug("Unit of work rolled back")
        self._committed = False
