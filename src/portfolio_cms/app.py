"""Main ASGI application entry point and command line.

Usage:
    # Serve HTTP (or HTTPS when PORTFOLIO_TLS_ENABLED=true)
    portfolio-cms serve

    # Bring the database schema up to date and exit
    portfolio-cms migrate

    # Rebuild every search index
    portfolio-cms reindex

    # Check that the linked SQLite supports FTS5 prefix search
    portfolio-cms check-fts
"""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
import json
import logging
import sys

from pydantic import ValidationError
from starlette.applications import Starlette

from portfolio_cms.adapters.sqlite_store import SqliteStore
from portfolio_cms.app_builder import AppBuilder
from portfolio_cms.config import Settings
from portfolio_cms.errors import PortfolioError
from portfolio_cms.observability import configure_logging
from portfolio_cms.search.fts_index import check_fts5_available
from portfolio_cms.service_layer.bootstrap import bootstrap, migrate_store


logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> Starlette:
    """Create the ASGI application; the store is opened when the lifespan starts."""
    return AppBuilder(settings).build()


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portfolio-cms",
        description="Portfolio content server backed by SQLite with full-text search",
    )
    subcommands = parser.add_subparsers(dest="command")

    serve = subcommands.add_parser("serve", help="Run the HTTP server (default)")
    serve.add_argument("--host", help="Override PORTFOLIO_HOST")
    serve.add_argument("--port", type=int, help="Override PORTFOLIO_PORT")

    subcommands.add_parser("migrate", help="Recover legacy data and migrate the schema, then exit")
    subcommands.add_parser("reindex", help="Rebuild every search index, then exit")
    subcommands.add_parser("check-fts", help="Probe SQLite for FTS5 prefix-search support")
    return parser


async def _migrate(settings: Settings) -> dict:
    store = SqliteStore(settings.database_path, busy_timeout_ms=settings.busy_timeout_ms)
    try:
        report = await migrate_store(settings, store)
    finally:
        await store.close()
    return report.to_dict()


async def _reindex(settings: Settings) -> list[str]:
    runtime = await bootstrap(settings.model_copy(update={"reindex_on_startup": False}))
    try:
        return await runtime.reindex()
    finally:
        await runtime.close()


def _serve(settings: Settings, args: argparse.Namespace) -> int:
    import uvicorn

    host = args.host or settings.host
    port = args.port or settings.port

    ssl_kwargs: dict[str, str] = {}
    if settings.tls_enabled:
        missing = settings.missing_tls_files()
        if missing:
            logger.error("TLS is enabled but these files are missing: %s", ", ".join(str(path) for path in missing))
            return 1
        cert, key = settings.tls_files()
        ssl_kwargs = {"ssl_certfile": str(cert), "ssl_keyfile": str(key)}

    app = create_app(settings)
    scheme = "https" if ssl_kwargs else "http"
    logger.info("Starting server on %s://%s:%d", scheme, host, port)
    logger.info("Health check: %s://%s:%d/health", scheme, host, port)

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
        log_config=None,  # keep our logging config
        **ssl_kwargs,
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)
    command = args.command or "serve"

    try:
        settings = Settings()
    except ValidationError as exc:
        configure_logging(json_output=False)
        logger.error("Configuration is invalid: %s", exc)
        return 1
    configure_logging(level=settings.log_level, json_output=settings.log_json, access_log=settings.access_log)

    if command == "check-fts":
        ok, message = check_fts5_available()
        print(message)
        return 0 if ok else 1

    if command == "serve":
        if not hasattr(args, "host"):
            args.host, args.port = None, None
        return _serve(settings, args)

    try:
        if command == "migrate":
            print(json.dumps(asyncio.run(_migrate(settings)), indent=2))
        else:
            print(json.dumps({"rebuilt": asyncio.run(_reindex(settings))}))
    except PortfolioError as exc:
        logger.error("%s failed: %s", command, exc, exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
