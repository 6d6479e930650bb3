"""Physical table layout for each content collection."""

from __future__ import annotations

from dataclasses import dataclass

from portfolio_cms.domain.model import Collection


ID_COLUMN = ("id", "INTEGER PRIMARY KEY AUTOINCREMENT")
STATUS_COLUMN = ("status", "TEXT NOT NULL DEFAULT 'published'")


@dataclass(frozen=True, slots=True)
class TableSpec:
    """Current shape of one collection table plus what migrations may add to it."""

    collection: Collection
    name: str
    columns: tuple[tuple[str, str], ...]
    content_columns: tuple[str, ...]
    date_column: str | None = None
    additive_columns: tuple[tuple[str, str], ...] = ()

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.columns)

    @property
    def fts_name(self) -> str:
        return f"{self.name}_fts"

    def create_sql(self, *, if_not_exists: bool = True) -> str:
        guard = "IF NOT EXISTS " if if_not_exists else ""
        body = ",\n    ".join(f"{name} {ddl}" for name, ddl in self.columns)
        return f"CREATE TABLE {guard}{self.name} (\n    {body}\n)"

    def order_clause(self, *, newest: bool) -> str:
        direction = "DESC" if newest else "ASC"
        if self.date_column:
            return f"{self.date_column} {direction}, id {direction}"
        return f"id {direction}"


TABLES: dict[Collection, TableSpec] = {
    Collection.PROJECTS: TableSpec(
        collection=Collection.PROJECTS,
        name="projects",
        columns=(
            ID_COLUMN,
            ("title", "TEXT NOT NULL"),
            ("url", "TEXT"),
            ("image", "TEXT"),
            STATUS_COLUMN,
            ("data", "TEXT NOT NULL DEFAULT '{}'"),
        ),
        content_columns=("data",),
        additive_columns=(("image", "TEXT"), STATUS_COLUMN),
    ),
    Collection.APPS: TableSpec(
        collection=Collection.APPS,
        name="apps",
        columns=(
            ID_COLUMN,
            ("title", "TEXT NOT NULL"),
            ("description", "TEXT NOT NULL DEFAULT ''"),
            ("summary", "TEXT"),
            ("url", "TEXT"),
            ("image", "TEXT"),
            STATUS_COLUMN,
        ),
        content_columns=("description", "summary"),
        additive_columns=(("summary", "TEXT"), ("image", "TEXT"), STATUS_COLUMN),
    ),
    Collection.POSTS: TableSpec(
        collection=Collection.POSTS,
        name="blog",
        columns=(
            ID_COLUMN,
            ("title", "TEXT NOT NULL"),
            ("content", "TEXT NOT NULL DEFAULT ''"),
            ("summary", "TEXT"),
            ("date", "TEXT"),
            ("image", "TEXT"),
            STATUS_COLUMN,
        ),
        content_columns=("content", "summary"),
        date_column="date",
        additive_columns=(("summary", "TEXT"), ("image", "TEXT"), STATUS_COLUMN),
    ),
}


def table_for(collection: Collection) -> TableSpec:
    return TABLES[collection]
