"""Exception hierarchy shared by the store, migrations, services and HTTP layer."""

from __future__ import annotations


class PortfolioError(Exception):
    """Base class for all application errors."""

    status_code = 500


class UnknownCollectionError(PortfolioError, ValueError):
    """Raised when a request names a collection type that does not exist."""

    status_code = 400

    def __init__(self, type_key: str):
        super().__init__(f"Unknown collection type: {type_key!r}")
        self.type_key = type_key


class InvalidPayloadError(PortfolioError, ValueError):
    """Raised when a create/update body fails validation."""

    status_code = 400


class InvalidPathError(PortfolioError, ValueError):
    """Raised when an image reference resolves outside the storage root."""

    status_code = 400


class StoreError(PortfolioError):
    """Raised when the embedded database rejects an operation."""


class MigrationError(PortfolioError):
    """Raised when a schema migration fails and has been rolled back."""
