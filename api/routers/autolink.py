"""
Router: POST /autolink

Annotates markdown/MDX source with links to entity pages.
A failed catalog reload falls back to the last good dictionary so that
rendering is never blocked; with autolinking switched off the source
is returned untouched.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from adapters.autolinker import MarkdownAutolinker
from adapters.entity_dictionary import EntityDictionaryCache
from api.dependencies import (
    get_autolinker,
    get_dictionary_cache,
    get_entity_catalog,
    get_settings,
)
from api.schemas import AutolinkRequest, AutolinkResponse
from config import Settings
from ports.entity_catalog import EntityCatalog

router = APIRouter(prefix="/autolink", tags=["autolink"])


@router.post("", response_model=AutolinkResponse)
async def autolink(
    body: AutolinkRequest,
    settings: Settings = Depends(get_settings),
    catalog: EntityCatalog = Depends(get_entity_catalog),
    cache: EntityDictionaryCache = Depends(get_dictionary_cache),
    autolinker: MarkdownAutolinker = Depends(get_autolinker),
) -> AutolinkResponse:
    if not settings.autolink_active:
        return AutolinkResponse(content=body.source, linked_entity_ids=[], autolink_active=False)

    overrides = body.model_dump(
        include={"min_evidence_score", "allow_high_risk"}, exclude_none=True
    )
    config = autolinker.config.model_copy(update=overrides)

    dictionary = await cache.get_or_fallback(catalog.load_entities)
    result = autolinker.autolink(body.source, dictionary, config)

    return AutolinkResponse(
        content=result.content,
        linked_entity_ids=result.linked_entity_ids,
        autolink_active=True,
    )
