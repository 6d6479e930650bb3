"""Domain layer - collections and records with no infrastructure dependencies."""

from portfolio_cms.domain.model import (
    AppRecord,
    Collection,
    Page,
    PostRecord,
    ProjectData,
    ProjectRecord,
    SortMode,
    Status,
    validate_record,
    validate_status,
)


__all__ = [
    "AppRecord",
    "Collection",
    "Page",
    "PostRecord",
    "ProjectData",
    "ProjectRecord",
    "SortMode",
    "Status",
    "validate_record",
    "validate_status",
]
