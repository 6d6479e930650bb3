"""Search index abstraction shared by the FTS5 and fuzzy strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from portfolio_cms.domain.model import Collection


@dataclass(frozen=True, slots=True)
class IndexCount:
    """Row count of a collection next to the number of entries its index holds."""

    rows: int
    indexed: int | None

    @property
    def consistent(self) -> bool:
        return self.indexed is None or self.indexed == self.rows

    def to_dict(self) -> dict[str, Any]:
        return {"rows": self.rows, "indexed": self.indexed, "consistent": self.consistent}


class AbstractSearchIndex(ABC):
    """Derived text index over a collection's searchable fields.

    The mutation hooks are called by the content service inside the same
    transaction as the row write they mirror.
    """

    strategy: str = "abstract"
    #: Whether id lists from ``search`` may be cached for a while by the planner.
    cacheable: bool = False

    @abstractmethod
    async def search(self, collection: Collection, text: str, *, published_only: bool) -> list[int]:
        """Ids of matching rows, best match first."""
        raise NotImplementedError

    async def prepare(self) -> None:
        """Create whatever structures the index needs; idempotent."""
        return

    async def add(self, collection: Collection, row_id: int, row: Mapping[str, Any]) -> None:
        return

    async def replace(self, collection: Collection, row_id: int, row: Mapping[str, Any]) -> None:
        return

    async def remove(self, collection: Collection, row_id: int) -> None:
        return

    async def rebuild(self, collection: Collection | None = None) -> list[Collection]:
        """Rebuild one collection's index (or all); returns what was rebuilt."""
        return []

    async def ensure_consistent(self) -> list[Collection]:
        """Rebuild every index that is missing or out of step with its table."""
        return []

    @abstractmethod
    async def counts(self) -> dict[Collection, IndexCount]:
        raise NotImplementedError
