"""Search index synchronisation and query support.

- text: searchable-text extraction and FTS5 query building
- fts_index: FTS5 index written alongside every row mutation
- fuzzy / fuzzy_index: typo-tolerant in-memory matching
- cache: TTL cache for fuzzy result id lists
"""

from portfolio_cms.search.cache import TTLCache
from portfolio_cms.search.fts_index import FtsSearchIndex, check_fts5_available
from portfolio_cms.search.fuzzy_index import FuzzySearchIndex
from portfolio_cms.search.index import AbstractSearchIndex, IndexCount


__all__ = [
    "AbstractSearchIndex",
    "FtsSearchIndex",
    "FuzzySearchIndex",
    "IndexCount",
    "TTLCache",
    "check_fts5_available",
]
