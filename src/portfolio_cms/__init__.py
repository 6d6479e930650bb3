"""Portfolio content backend: collections, schema migrations and search index sync."""

__version__ = "0.4.0"
