"""Adapters layer - SQLite store, repositories and image storage.

Following Cosmic Python Chapter 2: Repository Pattern.
"""

from .content_repository import AbstractContentRepository, SqliteContentRepository
from .image_storage import ImageStorage
from .sqlite_store import ExecResult, SqliteStore
from .tables import TABLES, TableSpec, table_for


__all__ = [
    "TABLES",
    "AbstractContentRepository",
    "ExecResult",
    "ImageStorage",
    "SqliteContentRepository",
    "SqliteStore",
    "TableSpec",
    "table_for",
]
