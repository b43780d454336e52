"""
Router: GET /dictionary, POST /dictionary/refresh, GET /dictionary/lookup
Admin view of the cached entity dictionary.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from adapters.entity_dictionary import EntityDictionaryCache
from api.dependencies import get_dictionary_cache, get_entity_catalog
from api.schemas import DictionaryLookupResponse, DictionaryStats
from ports.entity_catalog import EntityCatalog

router = APIRouter(prefix="/dictionary", tags=["dictionary"])


def _stats(cache: EntityDictionaryCache) -> DictionaryStats:
    snap = cache.snapshot
    if snap is None:
        return DictionaryStats(cached=False, fresh=False, ttl_s=cache.ttl_s)
    return DictionaryStats(
        cached=True,
        fresh=cache.is_fresh(),
        size=snap.size,
        entity_count=snap.entity_count,
        loaded_at=snap.loaded_at,
        ttl_s=cache.ttl_s,
    )


@router.get("", response_model=DictionaryStats)
async def dictionary_stats(
    cache: EntityDictionaryCache = Depends(get_dictionary_cache),
) -> DictionaryStats:
    return _stats(cache)


@router.post("/refresh", response_model=DictionaryStats)
async def refresh_dictionary(
    catalog: EntityCatalog = Depends(get_entity_catalog),
    cache: EntityDictionaryCache = Depends(get_dictionary_cache),
) -> DictionaryStats:
    # On failure the old snapshot stays; CatalogLoadError → 503
    await cache.reload(catalog.load_entities)
    return _stats(cache)


@router.get("/lookup", response_model=DictionaryLookupResponse)
async def lookup(
    term: str = Query(..., min_length=1),
    catalog: EntityCatalog = Depends(get_entity_catalog),
    cache: EntityDictionaryCache = Depends(get_dictionary_cache),
) -> DictionaryLookupResponse:
    dictionary = await cache.get_or_fallback(catalog.load_entities)
    key = term.strip().lower()
    if key not in dictionary:
        raise KeyError(f"No entity for term: {term!r}")
    return DictionaryLookupResponse(term=key, entity=dictionary[key])
