"""
Entity dictionary — builds the case-folded lookup map name/slug/synonym → entity.

Collision rule: a key already taken is only replaced by an entity with a
strictly higher evidence_score; ties keep the first inserted entity.
"""
from __future__ import annotations

import logging
from typing import Iterable

from contracts import EntityRecord

logger = logging.getLogger("synapedia.entity_dictionary")


def lookup_keys(entity: EntityRecord) -> list[str]:
    """Returns the raw (not yet case-folded) keys of an entity, in insertion order."""
    keys: list[str] = []
    if entity.name:
        keys.append(entity.name)
    else:
        logger.debug("Entity %r has no name, skipping name key", entity.entity_id)
    if entity.slug:
        keys.append(entity.slug)

    for syn in entity.synonyms:
        syn = (syn or "").strip()
        if syn:
            keys.append(syn)
        else:
            logger.debug("Blank synonym on %r ignored", entity.entity_id)
    return keys


def build_entity_dictionary(entities: Iterable[EntityRecord]) -> dict[str, EntityRecord]:
    """Builds a flat map lower(key) → EntityRecord. Pure, no side effects besides logging."""
    dictionary: dict[str, EntityRecord] = {}

    for entity in entities:
        for key in lookup_keys(entity):
            lower = key.lower()
            existing = dictionary.get(lower)
            if existing is None or entity.evidence_score > existing.evidence_score:
                dictionary[lower] = entity
            elif existing.entity_id != entity.entity_id:
                logger.debug(
                    "Key %r kept for %r (score %d), dropped for %r (score %d)",
                    lower, existing.entity_id, existing.evidence_score,
                    entity.entity_id, entity.evidence_score,
                )

    return dictionary
