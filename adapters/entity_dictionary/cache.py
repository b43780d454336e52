"""
Entity dictionary — time-bounded cache around build_entity_dictionary.

The cache holds one immutable DictionarySnapshot behind a single reference.
Readers always get a whole snapshot; a reload builds a new snapshot aside and
swaps the reference only after the loader succeeded, so a failed reload
leaves the previous snapshot untouched.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Awaitable, Callable, Mapping, Optional, Sequence, Union

from contracts import CatalogLoadError, EntityRecord

from .builder import build_entity_dictionary

logger = logging.getLogger("synapedia.entity_dictionary")

DEFAULT_TTL_S = 5 * 60.0

EntityLoader = Callable[
    [], Union[Sequence[EntityRecord], Awaitable[Sequence[EntityRecord]]]
]

_EMPTY: Mapping[str, EntityRecord] = MappingProxyType({})


@dataclass(frozen=True)
class DictionarySnapshot:
    entries: Mapping[str, EntityRecord]
    built_at: float        # clock() value, used for TTL checks
    loaded_at: datetime    # wall clock, for display only

    @property
    def size(self) -> int:
        return len(self.entries)

    @property
    def entity_count(self) -> int:
        return len({e.entity_id for e in self.entries.values()})


class EntityDictionaryCache:
    """
    TTL cache of the entity dictionary.

    Concurrent misses are collapsed into a single loader call (single-flight);
    this is an optimisation only, a rebuild is idempotent. The lock belongs to
    the running event loop, so one cache can serve successive asyncio.run() calls.
    """

    def __init__(
        self,
        ttl_s: float = DEFAULT_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_s = ttl_s
        self._clock = clock
        self._snapshot: Optional[DictionarySnapshot] = None
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def ttl_s(self) -> float:
        return self._ttl_s

    @property
    def snapshot(self) -> Optional[DictionarySnapshot]:
        return self._snapshot

    def is_fresh(self) -> bool:
        return self._fresh(self._snapshot)

    def _fresh(self, snap: Optional[DictionarySnapshot]) -> bool:
        return snap is not None and self._clock() - snap.built_at < self._ttl_s

    def clear(self) -> None:
        """Drops the cached snapshot; the next get_or_load() reloads."""
        self._snapshot = None

    async def get_or_load(
        self, loader: Optional[EntityLoader] = None
    ) -> Mapping[str, EntityRecord]:
        """
        Returns the cached dictionary, reloading through `loader` when stale.

        Without a loader a stale dictionary is still returned (or an empty one
        if nothing was ever loaded). Loader failures raise CatalogLoadError.
        """
        snap = self._snapshot
        if self._fresh(snap):
            return snap.entries

        if loader is None:
            return snap.entries if snap is not None else _EMPTY

        return await self._load(loader, force=False)

    async def reload(self, loader: EntityLoader) -> Mapping[str, EntityRecord]:
        """Rebuilds regardless of the TTL; on failure the current snapshot is kept."""
        return await self._load(loader, force=True)

    def _loop_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def _load(self, loader: EntityLoader, force: bool) -> Mapping[str, EntityRecord]:
        async with self._loop_lock():
            # Another caller may have reloaded while we waited
            snap = self._snapshot
            if not force and self._fresh(snap):
                return snap.entries

            entities = await _call_loader(loader)
            entries = MappingProxyType(build_entity_dictionary(entities))
            self._snapshot = DictionarySnapshot(
                entries=entries,
                built_at=self._clock(),
                loaded_at=datetime.now(tz=timezone.utc),
            )
            logger.info(
                "Entity dictionary rebuilt: %d entities, %d keys",
                self._snapshot.entity_count, self._snapshot.size,
            )
            return entries

    async def get_or_fallback(
        self, loader: EntityLoader
    ) -> Mapping[str, EntityRecord]:
        """Like get_or_load(), but a failed reload serves the last good (or empty) dictionary."""
        try:
            return await self.get_or_load(loader)
        except CatalogLoadError as exc:
            snap = self._snapshot
            logger.warning(
                "Entity dictionary reload failed, serving %s: %s",
                "stale cache" if snap is not None else "empty dictionary", exc,
            )
            return snap.entries if snap is not None else _EMPTY


async def _call_loader(loader: EntityLoader) -> Sequence[EntityRecord]:
    try:
        result = loader()
        if inspect.isawaitable(result):
            result = await result
        return list(result)
    except CatalogLoadError:
        raise
    except Exception as exc:
        raise CatalogLoadError(f"Entity loader failed: {exc}") from exc


# ─────────────────────────── Process-wide default ─────────────────────────

_default_cache = EntityDictionaryCache()


def default_cache() -> EntityDictionaryCache:
    return _default_cache


async def get_entity_dictionary(
    loader: Optional[EntityLoader] = None,
) -> Mapping[str, EntityRecord]:
    """Module-level shortcut for default_cache().get_or_load(loader)."""
    return await _default_cache.get_or_load(loader)


def clear_entity_dictionary_cache() -> None:
    """Clears the process-wide dictionary cache (tests, admin refresh)."""
    _default_cache.clear()
