"""Startup sequencing of recovery and schema migrations."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path

import anyio

from portfolio_cms.adapters.sqlite_store import MEMORY_PATH, SqliteStore
from portfolio_cms.migrations.recovery import recover_legacy_store
from portfolio_cms.migrations.schema import add_missing_columns, create_tables, migrate_project_payloads
from portfolio_cms.observability.metrics import MIGRATION_EVENTS


logger = logging.getLogger(__name__)

# 1: flat tables, 2: status/image/summary columns, 3: structured project payload
SCHEMA_VERSION = 3


@dataclass(slots=True)
class MigrationReport:
    """What a startup migration pass changed."""

    recovered_legacy: bool = False
    added_columns: list[str] = field(default_factory=list)
    migrated_projects: int | None = None
    previous_version: int = 0
    schema_version: int = SCHEMA_VERSION

    @property
    def changed(self) -> bool:
        return self.recovered_legacy or bool(self.added_columns) or self.migrated_projects is not None

    def to_dict(self) -> dict:
        return {
            "recovered_legacy": self.recovered_legacy,
            "added_columns": list(self.added_columns),
            "migrated_projects": self.migrated_projects,
            "previous_version": self.previous_version,
            "schema_version": self.schema_version,
        }


class MigrationRunner:
    """Brings an on-disk store of unknown vintage up to ``SCHEMA_VERSION``.

    Order: legacy-file recovery (before the store is opened) -> open -> create
    missing tables -> additive columns -> structural project migration ->
    record the version. Any ``MigrationError`` propagates and aborts startup;
    the next start retries from whatever state was committed.
    """

    def __init__(self, store: SqliteStore, *, legacy_path: Path | None = None):
        self.store = store
        self.legacy_path = legacy_path

    async def run(self) -> MigrationReport:
        report = MigrationReport()

        if self.legacy_path is not None and self.store.db_path != MEMORY_PATH:
            if self.store.is_open:
                raise RuntimeError("Legacy recovery must run before the primary store is opened")
            report.recovered_legacy = await anyio.to_thread.run_sync(
                recover_legacy_store,
                Path(self.store.db_path),
                self.legacy_path,
            )

        await self.store.open()
        report.previous_version = await self.store.user_version()

        await create_tables(self.store)
        report.added_columns = await add_missing_columns(self.store)
        report.migrated_projects = await migrate_project_payloads(self.store)
        await self.store.set_user_version(SCHEMA_VERSION)

        if report.recovered_legacy:
            MIGRATION_EVENTS.labels(step="recover_legacy").inc()
        if report.added_columns:
            MIGRATION_EVENTS.labels(step="add_columns").inc(len(report.added_columns))
        if report.migrated_projects is not None:
            MIGRATION_EVENTS.labels(step="project_payloads").inc()

        if report.changed:
            logger.info("Schema migrated from v%d to v%d: %s", report.previous_version, SCHEMA_VERSION, report.to_dict())
        else:
            logger.debug("Schema already at v%d", SCHEMA_VERSION)
        return report
