"""
Port: AffiliateStore
Responsibility: pre-fetching affiliate providers and entity↔provider links.
"""
from typing import Protocol, runtime_checkable

from contracts import AffiliateProvider, EntityProviderLink


@runtime_checkable
class AffiliateStore(Protocol):
    async def list_providers(self, active_only: bool = True) -> list[AffiliateProvider]:
        """Returns affiliate providers, by default only the active ones."""
        ...

    async def list_links(
        self,
        entity_id: str,
        active_only: bool = True,
    ) -> list[EntityProviderLink]:
        """Returns the provider links of a single entity."""
        ...
