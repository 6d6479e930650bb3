"""Composable builder for the portfolio HTTP server."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from starlette.applications import Starlette
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import FileResponse, JSONResponse, Response
from starlette.routing import Mount, Route
from starlette.staticfiles import StaticFiles

from portfolio_cms import api
from portfolio_cms.config import Settings
from portfolio_cms.errors import PortfolioError
from portfolio_cms.observability import (
    configure_logging,
    configure_trace_exporter,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    init_tracing,
)
from portfolio_cms.observability.tracing import TraceContextMiddleware, trace_request
from portfolio_cms.runtime.health import build_health_endpoint
from portfolio_cms.service_layer.bootstrap import bootstrap


if TYPE_CHECKING:
    from starlette.requests import Request


logger = logging.getLogger(__name__)

SERVICE_NAME = "portfolio-cms"


class AppBuilder:
    """Builds the ASGI app from ``Settings``.

    The store is opened, migrated and indexed in the lifespan, so a migration
    failure stops the server before it accepts requests.
    """

    def __init__(self, settings: Settings | None = None, *, configure_observability: bool = True) -> None:
        self.settings = settings or Settings()
        self.configure_observability = configure_observability

    def build(self) -> Starlette:
        settings = self.settings
        if self.configure_observability:
            configure_logging(
                level=settings.log_level,
                json_output=settings.log_json,
                access_log=settings.access_log,
            )
            init_metrics(service_name=SERVICE_NAME)
            init_tracing(service_name=SERVICE_NAME)
            configure_trace_exporter(settings.otlp_endpoint, settings.otlp_protocol)

        settings.upload_dir.mkdir(parents=True, exist_ok=True)

        app = Starlette(
            debug=settings.log_level.lower() == "debug",
            routes=self._build_routes(),
            lifespan=self._build_lifespan_manager(),
            exception_handlers={PortfolioError: api.portfolio_error_handler},
        )
        app.add_middleware(BaseHTTPMiddleware, dispatch=api.record_request_metrics)
        app.add_middleware(BaseHTTPMiddleware, dispatch=trace_request)
        app.add_middleware(TraceContextMiddleware)

        logger.info("Portfolio server built (search=%s)", settings.search_strategy)
        return app

    def _build_routes(self) -> list[Route | Mount]:
        # Literal segments (images, admin, add, ...) are registered before the
        # catch-all ``/api/{type}`` routes so they are never read as a type key.
        return [
            Route("/health", endpoint=build_health_endpoint(), methods=["GET"]),
            Route("/metrics", endpoint=self._build_metrics_endpoint(), methods=["GET"]),
            Route("/", endpoint=self._build_page_endpoint("index.html"), methods=["GET"]),
            Route("/admin", endpoint=self._build_page_endpoint("admin.html"), methods=["GET"]),
            Route("/api/images", endpoint=api.list_images, methods=["GET"]),
            Route("/api/images", endpoint=api.upload_image, methods=["POST"]),
            Route("/api/images/{name:path}", endpoint=api.delete_image, methods=["DELETE"]),
            Route("/api/admin/reindex", endpoint=api.reindex, methods=["POST"]),
            Route("/api/admin/data", endpoint=api.all_data_admin, methods=["GET"]),
            Route("/api/admin/{type}", endpoint=api.list_admin, methods=["GET"]),
            Route("/api/admin/{type}/{id:int}", endpoint=api.get_item_admin, methods=["GET"]),
            Route("/api/add/{type}", endpoint=api.add_item, methods=["POST"]),
            Route("/api/edit/{type}/{id:int}", endpoint=api.edit_item, methods=["PUT"]),
            Route("/api/delete/{type}/{id:int}", endpoint=api.delete_item, methods=["DELETE"]),
            Route("/api/status/{type}/{id:int}", endpoint=api.set_status, methods=["PATCH"]),
            Route("/api/data", endpoint=api.all_data, methods=["GET"]),
            Route("/api/{type}", endpoint=api.list_public, methods=["GET"]),
            Route("/api/{type}/{id:int}", endpoint=api.get_item, methods=["GET"]),
            Mount("/uploads", app=StaticFiles(directory=self.settings.upload_dir, check_dir=False), name="uploads"),
        ]

    def _build_metrics_endpoint(self):
        async def metrics_endpoint(_: Request) -> Response:
            return Response(content=get_metrics(), media_type=get_metrics_content_type())

        return metrics_endpoint

    def _build_page_endpoint(self, filename: str):
        page_path = self.settings.site_dir / filename

        async def page_endpoint(_: Request) -> Response:
            if not page_path.is_file():
                return JSONResponse({"error": f"{filename} not found"}, status_code=404)
            return FileResponse(page_path, media_type="text/html")

        page_endpoint.__name__ = f"page_{page_path.stem}"
        return page_endpoint

    def _build_lifespan_manager(self):
        settings = self.settings

        @asynccontextmanager
        async def lifespan(app: Starlette):
            runtime = await bootstrap(settings)
            app.state.runtime = runtime
            try:
                yield
            finally:
                await runtime.close()
                logger.info("Portfolio store closed")

        return lifespan
