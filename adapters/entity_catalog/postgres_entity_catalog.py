"""
PostgresEntityCatalog — EntityCatalog port on PostgreSQL.

The schema is created on first connect (apply_schema).
Uses asyncpg directly (no ORM).

Rows are returned in insertion order (created_at, id) so that dictionary
collisions with equal evidence scores keep the oldest entity.
"""
from __future__ import annotations

import logging

import asyncpg
from pydantic import ValidationError

from contracts import CatalogLoadError, EntityRecord

logger = logging.getLogger("synapedia.catalog")

# DDL, created at startup if missing
_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS entities (
    id                   UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name                 TEXT NOT NULL,
    slug                 TEXT NOT NULL UNIQUE,
    synonyms             TEXT[] NOT NULL DEFAULT '{}',
    entity_type          TEXT NOT NULL DEFAULT 'substance',
    evidence_score       INTEGER NOT NULL DEFAULT 0
                         CHECK (evidence_score >= 0 AND evidence_score <= 100),
    risk_level           TEXT NOT NULL DEFAULT 'unknown',
    monetization_enabled BOOLEAN NOT NULL DEFAULT false,
    autolink_whitelisted BOOLEAN NOT NULL DEFAULT false,
    created_at           TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at           TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_entities_monetization
    ON entities (monetization_enabled) WHERE monetization_enabled = true;
"""

_SELECT_SQL = """
SELECT id, name, slug, synonyms, entity_type, evidence_score, risk_level,
       monetization_enabled, autolink_whitelisted
FROM entities
ORDER BY created_at, id
"""


class PostgresEntityCatalog:
    """EntityCatalog implementation on PostgreSQL + asyncpg."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    # ──────────────────────── Lifecycle ──────────────────────────────────

    @classmethod
    async def create(cls, dsn: str) -> "PostgresEntityCatalog":
        """Factory: creates the connection pool and applies the schema."""
        pool = await asyncpg.create_pool(dsn, min_size=1, max_size=5)
        catalog = cls(pool)
        await catalog._apply_schema()
        return catalog

    async def _apply_schema(self) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(_SCHEMA_SQL)

    async def close(self) -> None:
        await self._pool.close()

    async def ping(self) -> None:
        async with self._pool.acquire() as conn:
            await conn.fetchval("SELECT 1")

    # ──────────────────────── Read ────────────────────────────────────────

    async def load_entities(self) -> list[EntityRecord]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(_SELECT_SQL)
        except (asyncpg.PostgresError, OSError) as exc:
            raise CatalogLoadError(f"Could not read entities: {exc}") from exc

        entities: list[EntityRecord] = []
        for row in rows:
            try:
                entities.append(_row_to_entity(row))
            except ValidationError as exc:
                logger.warning("Skipping malformed entity row %s: %s", row["id"], exc)
        return entities


def _row_to_entity(row: asyncpg.Record) -> EntityRecord:
    return EntityRecord(
        entity_id=str(row["id"]),
        name=row["name"],
        slug=row["slug"],
        synonyms=list(row["synonyms"] or []),
        entity_type=row["entity_type"],
        evidence_score=row["evidence_score"],
        risk_level=row["risk_level"],
        monetization_enabled=row["monetization_enabled"],
        autolink_whitelisted=row["autolink_whitelisted"],
    )
