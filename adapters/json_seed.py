"""
JSON seed adapters — EntityCatalog and AffiliateStore fed from a seed file
(or from records passed in directly). Used by the CLI, local dev and tests.

Seed JSON format:
{
  "entities": [
    {"entity_id": "ent-mdma", "name": "MDMA", "slug": "mdma",
     "synonyms": ["Ecstasy", "Molly"], "evidence_score": 70,
     "risk_level": "moderate", "monetization_enabled": true}
  ],
  "providers": [
    {"provider_id": "p-alpha", "name": "Alpha Labs", "verified": true,
     "quality_score": 90, "region": "EU", "price_range": "mid"}
  ],
  "links": [
    {"entity_id": "ent-mdma", "provider_id": "p-alpha",
     "affiliate_url": "https://alpha.example/mdma", "priority": 0}
  ]
}

The file is re-read on every load, so a dictionary refresh picks up edits.
Malformed records are skipped with a warning.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from contracts import AffiliateProvider, CatalogLoadError, EntityProviderLink, EntityRecord

logger = logging.getLogger("synapedia.catalog")

_M = TypeVar("_M", bound=BaseModel)


def read_seed(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise CatalogLoadError(f"Could not read seed file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise CatalogLoadError(f"Seed file {path} must contain a JSON object")
    return data


def _parse_records(raw: Any, model: type[_M], section: str) -> list[_M]:
    records: list[_M] = []
    for i, entry in enumerate(raw or []):
        try:
            records.append(model.model_validate(entry))
        except ValidationError as exc:
            logger.warning("Skipping malformed %s record #%d: %s", section, i, exc)
    return records


class JsonSeedEntityCatalog:
    """EntityCatalog reading the "entities" section of a seed file."""

    def __init__(
        self,
        seed_path: Optional[Path] = None,
        entries: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        self._seed_path = Path(seed_path) if seed_path is not None else None
        self._entries = entries or []

    async def load_entities(self) -> list[EntityRecord]:
        raw: list[Any] = []
        if self._seed_path is not None:
            raw.extend(read_seed(self._seed_path).get("entities", []))
        raw.extend(self._entries)
        return _parse_records(raw, EntityRecord, "entity")


class JsonSeedAffiliateStore:
    """AffiliateStore reading the "providers" and "links" sections of a seed file."""

    def __init__(
        self,
        seed_path: Optional[Path] = None,
        providers: Optional[list[dict[str, Any]]] = None,
        links: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        self._seed_path = Path(seed_path) if seed_path is not None else None
        self._providers = providers or []
        self._links = links or []

    def _section(self, name: str, extra: list[dict[str, Any]]) -> list[Any]:
        raw: list[Any] = []
        if self._seed_path is not None:
            raw.extend(read_seed(self._seed_path).get(name, []))
        raw.extend(extra)
        return raw

    async def list_providers(self, active_only: bool = True) -> list[AffiliateProvider]:
        providers = _parse_records(
            self._section("providers", self._providers), AffiliateProvider, "provider"
        )
        return [p for p in providers if p.active or not active_only]

    async def list_links(
        self,
        entity_id: str,
        active_only: bool = True,
    ) -> list[EntityProviderLink]:
        links = _parse_records(self._section("links", self._links), EntityProviderLink, "link")
        return [
            link for link in links
            if link.entity_id == entity_id and (link.active or not active_only)
        ]
