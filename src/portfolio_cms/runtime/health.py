"""Health endpoint factory."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from starlette.responses import JSONResponse

from portfolio_cms.errors import StoreError


if TYPE_CHECKING:
    from starlette.requests import Request

logger = logging.getLogger(__name__)


def build_health_endpoint():
    """Return a coroutine function reporting store and search-index state."""

    async def health_check(request: Request) -> JSONResponse:
        runtime = getattr(request.app.state, "runtime", None)
        if runtime is None:
            return JSONResponse({"status": "starting"}, status_code=503)

        indexes: dict[str, dict] = {}
        status = "healthy"
        try:
            counts = await runtime.index.counts()
        except StoreError as exc:
            logger.error("Health check could not read index counts: %s", exc, exc_info=True)
            return JSONResponse({"status": "unhealthy", "error": str(exc)}, status_code=503)

        for collection, count in counts.items():
            indexes[collection.value] = count.to_dict()
            if not count.consistent:
                status = "degraded"

        # Always 200 once started; "status" carries degradation.
        return JSONResponse(
            {
                "status": status,
                "store": {"path": runtime.store.db_path, "open": runtime.store.is_open},
                "search": {"strategy": runtime.index.strategy, "indexes": indexes},
                "schema": runtime.migration.to_dict(),
            }
        )

    return health_check
