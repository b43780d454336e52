"""
Port: AffiliateRouter
Responsibility: selecting the best provider links for an entity.
"""
from typing import Protocol, Sequence, runtime_checkable

from contracts import (
    AffiliateLinkQuery,
    AffiliateProvider,
    EntityProviderLink,
    RankedAffiliateLink,
)


@runtime_checkable
class AffiliateRouter(Protocol):
    def rank(
        self,
        query: AffiliateLinkQuery,
        providers: Sequence[AffiliateProvider],
        links: Sequence[EntityProviderLink],
    ) -> list[RankedAffiliateLink]:
        """
        Filters links by hard eligibility rules and returns at most
        query.limit entries ordered by composite score.
        An empty list means "nothing to promote", never an error.
        """
        ...
