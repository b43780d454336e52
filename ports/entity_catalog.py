"""
Port: EntityCatalog
Responsibility: supplying the entity snapshot the dictionary is built from.
"""
from typing import Protocol, runtime_checkable

from contracts import EntityRecord


@runtime_checkable
class EntityCatalog(Protocol):
    async def load_entities(self) -> list[EntityRecord]:
        """
        Returns every catalog entity together with its synonyms.
        Raises CatalogLoadError when the underlying storage cannot be read.
        No retries are performed by callers.
        """
        ...
