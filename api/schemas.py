"""
schemas.py — FastAPI request/response models.
Kept apart from contracts.py so the API can evolve independently.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from contracts import EntityRecord


# ─────────────────────────── /autolink ───────────────────────────

class AutolinkRequest(BaseModel):
    source: str
    min_evidence_score: Optional[int] = Field(default=None, ge=0, le=100)
    allow_high_risk: Optional[bool] = None


class AutolinkResponse(BaseModel):
    content: str
    linked_entity_ids: list[str]
    autolink_active: bool


# ─────────────────────────── /entities/{id}/affiliate-links ──────

class AffiliateLinkOut(BaseModel):
    provider_id: str
    provider_name: str
    label: str                 # custom_label, else provider name
    url: str                   # affiliate URL with tracking parameters
    score: int
    verified: bool
    region: str
    badges: list[str] = []


class AffiliateLinksResponse(BaseModel):
    entity_id: str
    region: str
    links: list[AffiliateLinkOut]


# ─────────────────────────── /dictionary ─────────────────────────

class DictionaryStats(BaseModel):
    cached: bool
    fresh: bool
    size: int = 0              # lookup keys
    entity_count: int = 0
    loaded_at: Optional[datetime] = None
    ttl_s: float


class DictionaryLookupResponse(BaseModel):
    term: str
    entity: EntityRecord


# ─────────────────────────── /health ─────────────────────────────

class HealthResponse(BaseModel):
    status: str
    catalog: str
    backend: str               # "postgres" | "seed"
    version: str
