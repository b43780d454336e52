"""
PostgresAffiliateStore — AffiliateStore port on PostgreSQL.

Tables: affiliate_providers, entity_provider_links (one link per
entity/provider pair). Schema is applied on create().
"""
from __future__ import annotations

import logging
import uuid

import asyncpg
from pydantic import ValidationError

from contracts import AffiliateProvider, CatalogLoadError, EntityProviderLink

logger = logging.getLogger("synapedia.catalog")

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS affiliate_providers (
    id             UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name           TEXT NOT NULL,
    slug           TEXT NOT NULL UNIQUE,
    website_url    TEXT NOT NULL,
    verified       BOOLEAN NOT NULL DEFAULT false,
    active         BOOLEAN NOT NULL DEFAULT true,
    quality_score  INTEGER NOT NULL DEFAULT 50
                   CHECK (quality_score >= 0 AND quality_score <= 100),
    region         TEXT NOT NULL DEFAULT 'global',
    price_range    TEXT,
    affiliate_tag  TEXT,
    lab_tested     BOOLEAN NOT NULL DEFAULT false,
    quality_rating REAL,
    created_at     TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at     TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS entity_provider_links (
    id            UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    entity_id     UUID NOT NULL,
    provider_id   UUID NOT NULL REFERENCES affiliate_providers(id) ON DELETE CASCADE,
    affiliate_url TEXT NOT NULL,
    custom_label  TEXT,
    priority      INTEGER NOT NULL DEFAULT 0,
    active        BOOLEAN NOT NULL DEFAULT true,
    created_at    TIMESTAMPTZ NOT NULL DEFAULT now(),
    UNIQUE (entity_id, provider_id)
);

CREATE INDEX IF NOT EXISTS idx_entity_provider_entity
    ON entity_provider_links (entity_id) WHERE active = true;
"""


class PostgresAffiliateStore:
    """AffiliateStore implementation on PostgreSQL + asyncpg."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    @classmethod
    async def create(cls, dsn: str) -> "PostgresAffiliateStore":
        pool = await asyncpg.create_pool(dsn, min_size=1, max_size=5)
        store = cls(pool)
        async with pool.acquire() as conn:
            await conn.execute(_SCHEMA_SQL)
        return store

    async def close(self) -> None:
        await self._pool.close()

    async def list_providers(self, active_only: bool = True) -> list[AffiliateProvider]:
        sql = """
            SELECT id, name, slug, website_url, verified, active, quality_score,
                   region, price_range, affiliate_tag, lab_tested, quality_rating
            FROM affiliate_providers
        """
        if active_only:
            sql += " WHERE active = true"
        sql += " ORDER BY name"

        rows = await self._fetch(sql)
        providers: list[AffiliateProvider] = []
        for r in rows:
            try:
                providers.append(AffiliateProvider(
                    provider_id=str(r["id"]),
                    name=r["name"],
                    slug=r["slug"],
                    website_url=r["website_url"],
                    verified=r["verified"],
                    active=r["active"],
                    quality_score=r["quality_score"],
                    region=r["region"],
                    price_range=r["price_range"],
                    affiliate_tag=r["affiliate_tag"],
                    lab_tested=r["lab_tested"],
                    quality_rating=r["quality_rating"],
                ))
            except ValidationError as exc:
                logger.warning("Skipping malformed provider row %s: %s", r["id"], exc)
        return providers

    async def list_links(
        self,
        entity_id: str,
        active_only: bool = True,
    ) -> list[EntityProviderLink]:
        try:
            uuid.UUID(entity_id)
        except ValueError:
            return []  # not a catalog id, so no links

        sql = """
            SELECT id, entity_id, provider_id, affiliate_url, custom_label, priority, active
            FROM entity_provider_links
            WHERE entity_id = $1::uuid
        """
        if active_only:
            sql += " AND active = true"

        rows = await self._fetch(sql, entity_id)
        return [
            EntityProviderLink(
                link_id=str(r["id"]),
                entity_id=str(r["entity_id"]),
                provider_id=str(r["provider_id"]),
                affiliate_url=r["affiliate_url"],
                custom_label=r["custom_label"],
                priority=r["priority"],
                active=r["active"],
            )
            for r in rows
        ]

    async def _fetch(self, sql: str, *args) -> list[asyncpg.Record]:
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetch(sql, *args)
        except (asyncpg.PostgresError, OSError) as exc:
            raise CatalogLoadError(f"Could not read affiliate data: {exc}") from exc
