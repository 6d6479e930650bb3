"""Service layer - unit of work, content service and query planner."""

from portfolio_cms.service_layer.bootstrap import PortfolioRuntime, bootstrap
from portfolio_cms.service_layer.query_planner import QueryPlanner
from portfolio_cms.service_layer.services import ContentService
from portfolio_cms.service_layer.unit_of_work import AbstractUnitOfWork, SqliteUnitOfWork


__all__ = [
    "AbstractUnitOfWork",
    "ContentService",
    "PortfolioRuntime",
    "QueryPlanner",
    "SqliteUnitOfWork",
    "bootstrap",
]
