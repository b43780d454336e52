from __future__ import annotations

import asyncio

import pytest

from adapters.entity_dictionary import (
    EntityDictionaryCache,
    build_entity_dictionary,
    clear_entity_dictionary_cache,
    default_cache,
    get_entity_dictionary,
    lookup_keys,
)
from contracts import CatalogLoadError, EntityRecord


def _entity(entity_id: str, name: str, slug: str = "", score: int = 50, synonyms=None) -> EntityRecord:
    return EntityRecord(
        entity_id=entity_id,
        name=name,
        slug=slug,
        evidence_score=score,
        synonyms=synonyms or [],
    )


class _Clock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


class _Loader:
    def __init__(self, entities, fail: bool = False) -> None:
        self.entities = entities
        self.fail = fail
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        await asyncio.sleep(0)
        if self.fail:
            raise OSError("connection refused")
        return list(self.entities)


# ── build ────────────────────────────────────────────────────────────

def test_build_indexes_name_slug_and_synonyms_lowercased():
    mdma = _entity("e1", "MDMA", slug="mdma-3-4", synonyms=["Ecstasy", "Molly"])
    d = build_entity_dictionary([mdma])
    assert set(d) == {"mdma", "mdma-3-4", "ecstasy", "molly"}
    assert all(v is mdma for v in d.values())


def test_build_empty_list_gives_empty_map():
    assert build_entity_dictionary([]) == {}


def test_build_discards_blank_synonyms_and_trims():
    e = _entity("e1", "Ketamin", synonyms=["  ", "", " Special K "])
    assert lookup_keys(e) == ["Ketamin", "Special K"]
    assert set(build_entity_dictionary([e])) == {"ketamin", "special k"}


def test_build_entity_without_name_only_contributes_other_keys():
    e = _entity("e1", "", slug="lsd", synonyms=["Acid"])
    assert set(build_entity_dictionary([e])) == {"lsd", "acid"}


def test_collision_keeps_strictly_higher_score():
    low = _entity("low", "Molly", score=30)
    high = _entity("high", "MDMA", score=70, synonyms=["molly"])
    assert build_entity_dictionary([low, high])["molly"].entity_id == "high"
    assert build_entity_dictionary([high, low])["molly"].entity_id == "high"


def test_collision_tie_keeps_first_inserted():
    a = _entity("a", "Shrooms", score=50)
    b = _entity("b", "Pilze", score=50, synonyms=["shrooms"])
    assert build_entity_dictionary([a, b])["shrooms"].entity_id == "a"
    assert build_entity_dictionary([b, a])["shrooms"].entity_id == "b"


def test_collision_never_resolved_for_lower_score():
    entities = [
        _entity(f"e{i}", "Shared", score=score)
        for i, score in enumerate([10, 90, 40, 90, 5])
    ]
    assert build_entity_dictionary(entities)["shared"].evidence_score == 90
    assert build_entity_dictionary(entities)["shared"].entity_id == "e1"


# ── cache ────────────────────────────────────────────────────────────

def test_cache_hit_within_ttl_skips_loader():
    clock = _Clock()
    cache = EntityDictionaryCache(ttl_s=300, clock=clock)
    loader = _Loader([_entity("e1", "MDMA")])

    async def run():
        first = await cache.get_or_load(loader)
        clock.now += 299
        second = await cache.get_or_load(loader)
        return first, second

    first, second = asyncio.run(run())
    assert loader.calls == 1
    assert first is second
    assert "mdma" in first


def test_cache_reloads_after_ttl():
    clock = _Clock()
    cache = EntityDictionaryCache(ttl_s=300, clock=clock)
    loader = _Loader([_entity("e1", "MDMA")])

    async def run():
        await cache.get_or_load(loader)
        clock.now += 300
        loader.entities = [_entity("e2", "LSD")]
        return await cache.get_or_load(loader)

    d = asyncio.run(run())
    assert loader.calls == 2
    assert set(d) == {"lsd"}


def test_cache_without_loader_serves_stale_or_empty():
    clock = _Clock()
    cache = EntityDictionaryCache(ttl_s=10, clock=clock)

    async def run():
        empty = await cache.get_or_load()
        await cache.get_or_load(_Loader([_entity("e1", "MDMA")]))
        clock.now += 3600
        stale = await cache.get_or_load()
        return empty, stale

    empty, stale = asyncio.run(run())
    assert dict(empty) == {}
    assert "mdma" in stale
    assert not cache.is_fresh()


def test_clear_forces_reload():
    cache = EntityDictionaryCache(ttl_s=300, clock=_Clock())
    loader = _Loader([_entity("e1", "MDMA")])

    async def run():
        await cache.get_or_load(loader)
        cache.clear()
        assert cache.snapshot is None
        await cache.get_or_load(loader)

    asyncio.run(run())
    assert loader.calls == 2


def test_failed_reload_propagates_and_keeps_snapshot():
    clock = _Clock()
    cache = EntityDictionaryCache(ttl_s=300, clock=clock)
    good = _Loader([_entity("e1", "MDMA")])
    bad = _Loader([], fail=True)

    async def run():
        await cache.get_or_load(good)
        before = cache.snapshot
        clock.now += 301
        with pytest.raises(CatalogLoadError):
            await cache.get_or_load(bad)
        return before

    before = asyncio.run(run())
    assert cache.snapshot is before
    assert "mdma" in cache.snapshot.entries


def test_reload_ignores_ttl_and_keeps_snapshot_on_failure():
    cache = EntityDictionaryCache(ttl_s=300, clock=_Clock())
    loader = _Loader([_entity("e1", "MDMA")])

    async def run():
        await cache.get_or_load(loader)
        await cache.reload(loader)
        loader.fail = True
        with pytest.raises(CatalogLoadError):
            await cache.reload(loader)

    asyncio.run(run())
    assert loader.calls == 3
    assert "mdma" in cache.snapshot.entries


def test_get_or_fallback_serves_last_good_dictionary():
    clock = _Clock()
    cache = EntityDictionaryCache(ttl_s=300, clock=clock)

    async def run():
        empty = await cache.get_or_fallback(_Loader([], fail=True))
        await cache.get_or_load(_Loader([_entity("e1", "MDMA")]))
        clock.now += 301
        stale = await cache.get_or_fallback(_Loader([], fail=True))
        return empty, stale

    empty, stale = asyncio.run(run())
    assert dict(empty) == {}
    assert "mdma" in stale


def test_sync_loader_is_accepted():
    cache = EntityDictionaryCache(ttl_s=300, clock=_Clock())
    d = asyncio.run(cache.get_or_load(lambda: [_entity("e1", "Ketamin")]))
    assert "ketamin" in d


def test_concurrent_misses_share_one_load():
    cache = EntityDictionaryCache(ttl_s=300, clock=_Clock())
    loader = _Loader([_entity("e1", "MDMA")])

    async def run():
        return await asyncio.gather(*(cache.get_or_load(loader) for _ in range(5)))

    results = asyncio.run(run())
    assert loader.calls == 1
    assert all(r is results[0] for r in results)


def test_cached_dictionary_is_read_only():
    cache = EntityDictionaryCache(ttl_s=300, clock=_Clock())
    d = asyncio.run(cache.get_or_load(lambda: [_entity("e1", "MDMA")]))
    with pytest.raises(TypeError):
        d["lsd"] = _entity("e2", "LSD")  # type: ignore[index]


def test_snapshot_stats():
    cache = EntityDictionaryCache(ttl_s=300, clock=_Clock())
    asyncio.run(cache.get_or_load(lambda: [
        _entity("e1", "MDMA", slug="mdma-x", synonyms=["Molly"]),
        _entity("e2", "LSD"),
    ]))
    assert cache.snapshot.size == 4
    assert cache.snapshot.entity_count == 2
    assert cache.is_fresh()


def test_module_level_cache_helpers():
    clear_entity_dictionary_cache()
    try:
        d = asyncio.run(get_entity_dictionary(lambda: [_entity("e1", "MDMA")]))
        assert "mdma" in d
        assert default_cache().snapshot is not None
    finally:
        clear_entity_dictionary_cache()
    assert default_cache().snapshot is None


def test_one_cache_serves_contended_loads_across_event_loops():
    cache = EntityDictionaryCache(ttl_s=300, clock=_Clock())
    loader = _Loader([_entity("e1", "MDMA")])

    async def contend():
        return await asyncio.gather(*(cache.get_or_load(loader) for _ in range(3)))

    asyncio.run(contend())
    cache.clear()
    results = asyncio.run(contend())

    assert loader.calls == 2
    assert all("mdma" in r for r in results)
