"""
Router: GET /entities/{entity_id}/affiliate-links

Ranks the provider links of one entity for the reader's region.
Region: explicit ?region= > CDN country header > configured default.
An empty list tells the page to hide the provider module.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from adapters.affiliate_router import detect_user_region, generate_tracking_url, provider_badges
from api.dependencies import get_affiliate_router, get_affiliate_store, get_settings
from api.schemas import AffiliateLinkOut, AffiliateLinksResponse
from config import Settings
from contracts import AffiliateLinkQuery
from ports.affiliate_router import AffiliateRouter
from ports.affiliate_store import AffiliateStore

router = APIRouter(tags=["affiliate"])


@router.get("/entities/{entity_id}/affiliate-links", response_model=AffiliateLinksResponse)
async def affiliate_links(
    entity_id: str,
    request: Request,
    region: Optional[str] = Query(None, description="EU|US|UK|DE|...; detected when omitted"),
    limit: Optional[int] = Query(None, ge=1, le=20),
    min_quality: int = Query(0, ge=0, le=100),
    require_verified: bool = Query(False),
    session_id: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
    store: AffiliateStore = Depends(get_affiliate_store),
    ranker: AffiliateRouter = Depends(get_affiliate_router),
) -> AffiliateLinksResponse:
    user_region = detect_user_region(
        request.headers, user_preference=region, default=settings.affiliate_default_region
    )
    if not settings.monetization_enabled:
        return AffiliateLinksResponse(entity_id=entity_id, region=user_region, links=[])

    query = AffiliateLinkQuery(
        entity_id=entity_id,
        region=user_region,
        limit=limit or settings.affiliate_default_limit,
        min_quality=min_quality,
        require_verified=require_verified,
    )
    providers = await store.list_providers()
    links = await store.list_links(entity_id)
    ranked = ranker.rank(query, providers, links)

    return AffiliateLinksResponse(
        entity_id=entity_id,
        region=user_region,
        links=[
            AffiliateLinkOut(
                provider_id=r.provider.provider_id,
                provider_name=r.provider.name,
                label=r.custom_label or r.provider.name,
                url=generate_tracking_url(
                    r.affiliate_url,
                    entity_id,
                    session_id=session_id,
                    ref=settings.affiliate_tracking_ref,
                ),
                score=r.score,
                verified=r.provider.verified,
                region=r.provider.region,
                badges=provider_badges(r.provider),
            )
            for r in ranked
        ],
    )
