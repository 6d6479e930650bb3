"""Startup recovery and forward-only schema migrations."""

from .recovery import recover_legacy_store
from .runner import SCHEMA_VERSION, MigrationReport, MigrationRunner
from .schema import add_missing_columns, create_tables, migrate_project_payloads


__all__ = [
    "SCHEMA_VERSION",
    "MigrationReport",
    "MigrationRunner",
    "add_missing_columns",
    "create_tables",
    "migrate_project_payloads",
    "recover_legacy_store",
]
