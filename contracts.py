"""
contracts.py — Single source of truth for every data type in Synapedia Linking.
All modules import types ONLY from here. Do not change without versioning.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

CONTRACTS_VERSION = "1.0.0"


def _clamp_score(v: Any) -> int:
    """Coerces a 0–100 score; anything int() rejects becomes a ValidationError."""
    try:
        return max(0, min(100, int(v)))
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValueError(f"score must be an integer, got {v!r}") from exc


# ─────────────────────────── Errors ──────────────────────────────────────

class CatalogLoadError(RuntimeError):
    """The entity catalog (or provider store) could not produce its records."""


# ─────────────────────────── Entity catalog ──────────────────────────────

class RiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    UNKNOWN = "unknown"


class EntityType(str, Enum):
    SUBSTANCE = "substance"
    SUPPLEMENT = "supplement"
    TOOL = "tool"


class EntityRecord(BaseModel):
    """Read-only snapshot of one catalog entity, plus its alternate names."""

    model_config = ConfigDict(frozen=True)

    entity_id: str
    name: str
    slug: str = ""
    evidence_score: int = 0          # 0–100, higher = more curated
    risk_level: RiskLevel = RiskLevel.UNKNOWN
    monetization_enabled: bool = False
    autolink_whitelisted: bool = False  # explicit override for high-risk entities
    synonyms: list[str] = Field(default_factory=list)
    entity_type: EntityType = EntityType.SUBSTANCE

    @field_validator("evidence_score", mode="before")
    @classmethod
    def _clamp_evidence(cls, v: Any) -> int:
        return _clamp_score(v)

    @field_validator("risk_level", mode="before")
    @classmethod
    def _coerce_risk(cls, v: Any) -> RiskLevel:
        if isinstance(v, RiskLevel):
            return v
        try:
            return RiskLevel(str(v).strip().lower())
        except ValueError:
            return RiskLevel.UNKNOWN

    @field_validator("name", "slug", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return "" if v is None else v

    @field_validator("synonyms", mode="before")
    @classmethod
    def _none_to_list(cls, v: Any) -> list[str]:
        return [] if v is None else v


# ─────────────────────────── Affiliate providers ─────────────────────────

class PriceRange(str, Enum):
    BUDGET = "budget"
    MID = "mid"
    PREMIUM = "premium"


class AffiliateProvider(BaseModel):
    provider_id: str
    name: str
    slug: str = ""
    website_url: str = ""
    verified: bool = False
    active: bool = True
    quality_score: int = 50          # 0–100
    region: str = "global"           # global | EU | US | DE | ...
    price_range: Optional[PriceRange] = None
    affiliate_tag: Optional[str] = None
    lab_tested: bool = False
    quality_rating: Optional[float] = Field(default=None, ge=0.0, le=5.0)

    @field_validator("quality_score", mode="before")
    @classmethod
    def _clamp_quality(cls, v: Any) -> int:
        return _clamp_score(v)

    @field_validator("price_range", mode="before")
    @classmethod
    def _unknown_price_to_none(cls, v: Any) -> Optional[PriceRange]:
        if v is None or isinstance(v, PriceRange):
            return v
        try:
            return PriceRange(str(v).strip().lower())
        except ValueError:
            return None


class EntityProviderLink(BaseModel):
    link_id: str = ""
    entity_id: str
    provider_id: str
    affiliate_url: str
    custom_label: Optional[str] = None
    priority: int = 0                # manual boost (+) / demotion (-)
    active: bool = True


class AffiliateLinkQuery(BaseModel):
    entity_id: str
    region: Optional[str] = None
    limit: int = Field(default=3, ge=0)
    min_quality: int = 0
    require_verified: bool = False


class RankedAffiliateLink(BaseModel):
    provider: AffiliateProvider
    affiliate_url: str
    custom_label: Optional[str] = None
    score: int


# ─────────────────────────── Autolink ────────────────────────────────────

class AutolinkConfig(BaseModel):
    min_evidence_score: int = Field(default=40, ge=0, le=100)  # inclusive
    allow_high_risk: bool = False
    link_base_path: str = "/entities/"


DEFAULT_AUTOLINK_CONFIG = AutolinkConfig()


class AutolinkResult(BaseModel):
    content: str
    linked_entity_ids: list[str] = Field(default_factory=list)  # first-link order
