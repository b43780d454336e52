"""
Adapter: ScoringAffiliateRouter
Implements the AffiliateRouter port with a weighted composite score.

Pure function over pre-fetched data with no DB calls; the caller supplies
providers and links.

Hard filters (link skipped):
  - link inactive, link of another entity
  - provider missing from the active set
  - provider unverified while require_verified
  - provider quality_score below min_quality

Score:
  quality_score (0–100)
  + 20 verified
  + 15 region match / -10 region mismatch (only if a region was requested
    and the provider is not "global")
  + price tier bonus (budget 10, mid 5, premium 0)
  + link.priority (manual, may be negative)

Ordering: score desc, then provider name asc. Empty result = hide the module.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from contracts import (
    AffiliateLinkQuery,
    AffiliateProvider,
    EntityProviderLink,
    PriceRange,
    RankedAffiliateLink,
)

logger = logging.getLogger("synapedia.affiliate_router")

GLOBAL_REGION = "global"

VERIFIED_BONUS = 20
REGION_MATCH_BONUS = 15
REGION_MISMATCH_PENALTY = 10

# Lower price bucket is better for readers
PRICE_RANGE_SCORES: dict[PriceRange, int] = {
    PriceRange.BUDGET: 10,
    PriceRange.MID: 5,
    PriceRange.PREMIUM: 0,
}


def compute_score(
    provider: AffiliateProvider,
    link: EntityProviderLink,
    region: Optional[str] = None,
) -> int:
    score = provider.quality_score

    if provider.verified:
        score += VERIFIED_BONUS

    if region and provider.region.lower() != GLOBAL_REGION:
        if provider.region.lower() == region.lower():
            score += REGION_MATCH_BONUS
        else:
            score -= REGION_MISMATCH_PENALTY

    if provider.price_range is not None:
        score += PRICE_RANGE_SCORES.get(provider.price_range, 0)

    score += link.priority
    return score


def get_best_affiliate_links(
    query: AffiliateLinkQuery,
    providers: Sequence[AffiliateProvider],
    links: Sequence[EntityProviderLink],
) -> list[RankedAffiliateLink]:
    """Returns at most query.limit ranked links for query.entity_id (possibly empty)."""
    active = {p.provider_id: p for p in providers if p.active}

    scored: list[RankedAffiliateLink] = []
    for link in links:
        if not link.active or link.entity_id != query.entity_id:
            continue

        provider = active.get(link.provider_id)
        if provider is None:
            continue
        if query.require_verified and not provider.verified:
            continue
        if provider.quality_score < query.min_quality:
            continue

        scored.append(RankedAffiliateLink(
            provider=provider,
            affiliate_url=link.affiliate_url,
            custom_label=link.custom_label,
            score=compute_score(provider, link, query.region),
        ))

    scored.sort(key=lambda r: (-r.score, r.provider.name.casefold(), r.provider.name))
    logger.debug(
        "Ranked %d affiliate links for %r (limit %d)",
        len(scored), query.entity_id, query.limit,
    )
    return scored[: query.limit]


class ScoringAffiliateRouter:
    """AffiliateRouter port adapter."""

    def rank(
        self,
        query: AffiliateLinkQuery,
        providers: Sequence[AffiliateProvider],
        links: Sequence[EntityProviderLink],
    ) -> list[RankedAffiliateLink]:
        return get_best_affiliate_links(query, providers, links)
