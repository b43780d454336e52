"""
Adapter: MarkdownAutolinker
Implements the Autolinker port on markdown/MDX *source* (not rendered HTML).

Rules:
  1. Only the first eligible occurrence of each entity per document is linked.
  2. Never inside headings, fenced code, inline code, existing links,
     import lines, component tags or <NoAutoLink> … </NoAutoLink> sections.
  3. Entity must be monetization_enabled and reach min_evidence_score.
  4. High-risk entities need allow_high_risk or autolink_whitelisted.

Algorithm:
  - candidates = eligible dictionary keys, longest first, one key per entity
  - lines are classified linkable/protected by a two-flag state machine
    (fenced code, no-link span)
  - linkable lines are scanned candidate by candidate with a case-insensitive,
    word-delimited substring search; the match keeps its original casing
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from contracts import (
    DEFAULT_AUTOLINK_CONFIG,
    AutolinkConfig,
    AutolinkResult,
    EntityRecord,
    RiskLevel,
)

from .scanning import enclosing_link_target, is_linkable_position, iter_entity_mentions

logger = logging.getLogger("synapedia.autolinker")

FENCE_MARKER = "```"
NO_AUTOLINK_OPEN = "<NoAutoLink>"
NO_AUTOLINK_CLOSE = "</NoAutoLink>"

MIN_TERM_LENGTH = 2

_MD_HEADING_RE = re.compile(r"^#{1,6}\s")
_HTML_HEADING_RE = re.compile(r"^<h[1-6][\s>]", re.IGNORECASE)
_COMPONENT_TAG_RE = re.compile(r"^<[A-Z]")


@dataclass(frozen=True)
class Candidate:
    term: str              # lower-case dictionary key
    entity: EntityRecord


# ──────────────────────────────────────────────────────────────────
# Candidate selection
# ──────────────────────────────────────────────────────────────────

def is_eligible(entity: EntityRecord, config: AutolinkConfig) -> bool:
    if not entity.monetization_enabled:
        return False
    if entity.evidence_score < config.min_evidence_score:
        return False
    if (
        entity.risk_level == RiskLevel.HIGH
        and not config.allow_high_risk
        and not entity.autolink_whitelisted
    ):
        return False
    return True


def build_candidate_list(
    dictionary: Mapping[str, EntityRecord],
    config: AutolinkConfig = DEFAULT_AUTOLINK_CONFIG,
) -> list[Candidate]:
    """Eligible terms sorted longest first, deduplicated to one term per entity."""
    candidates: list[Candidate] = []
    for term, entity in dictionary.items():
        if not is_eligible(entity, config):
            continue
        if len(term) < MIN_TERM_LENGTH:
            logger.debug("Term %r of %r too short to autolink", term, entity.entity_id)
            continue
        if not entity.slug:
            logger.debug("Entity %r has no slug, nothing to link to", entity.entity_id)
            continue
        candidates.append(Candidate(term=term, entity=entity))

    # Stable sort: equal lengths keep dictionary (discovery) order
    candidates.sort(key=lambda c: len(c.term), reverse=True)

    seen: set[str] = set()
    deduped: list[Candidate] = []
    for c in candidates:
        if c.entity.entity_id not in seen:
            seen.add(c.entity.entity_id)
            deduped.append(c)
    return deduped


# ──────────────────────────────────────────────────────────────────
# Line classification
# ──────────────────────────────────────────────────────────────────

def is_protected_line(trimmed: str) -> bool:
    """Stateless part of the classification: headings, imports, component tags."""
    return bool(
        _MD_HEADING_RE.match(trimmed)
        or _HTML_HEADING_RE.match(trimmed)
        or trimmed.startswith("import ")
        or _COMPONENT_TAG_RE.match(trimmed)
    )


def _starts_with_marker(trimmed: str, marker: str) -> bool:
    return trimmed == marker or trimmed.startswith(marker)


# ──────────────────────────────────────────────────────────────────
# Engine
# ──────────────────────────────────────────────────────────────────

def autolink_entities(
    source: str,
    dictionary: Mapping[str, EntityRecord],
    config: Optional[AutolinkConfig] = None,
) -> AutolinkResult:
    """Links the first eligible mention of each dictionary entity in `source`."""
    cfg = config or DEFAULT_AUTOLINK_CONFIG
    if not source or not dictionary:
        return AutolinkResult(content=source)

    candidates = build_candidate_list(dictionary, cfg)
    if not candidates:
        return AutolinkResult(content=source)

    linked_ids: list[str] = []
    linked: set[str] = set()
    in_code_block = False
    in_no_autolink = False
    out: list[str] = []

    for line in source.split("\n"):
        trimmed = line.strip()

        if trimmed.startswith(FENCE_MARKER):
            in_code_block = not in_code_block
            out.append(line)
            continue

        if _starts_with_marker(trimmed, NO_AUTOLINK_OPEN):
            in_no_autolink = True
            out.append(line)
            continue
        if _starts_with_marker(trimmed, NO_AUTOLINK_CLOSE):
            in_no_autolink = False
            out.append(line)
            continue

        if in_code_block or in_no_autolink or is_protected_line(trimmed):
            out.append(line)
            continue

        out.append(_link_line(line, candidates, linked, linked_ids, cfg.link_base_path))

    logger.debug("Autolinked %d of %d candidate entities", len(linked_ids), len(candidates))
    return AutolinkResult(content="\n".join(out), linked_entity_ids=linked_ids)


def _link_line(
    line: str,
    candidates: list[Candidate],
    linked: set[str],
    linked_ids: list[str],
    base_path: str,
) -> str:
    result = line
    for candidate in candidates:
        entity_id = candidate.entity.entity_id
        if entity_id in linked:
            continue

        target = f"{base_path}{candidate.entity.slug}"
        idx = _first_linkable_mention(result, candidate.term, target)
        if idx is None:
            continue
        if idx == -1:
            # Mention already wrapped in a link to this entity's own page
            linked.add(entity_id)
            continue

        end = idx + len(candidate.term)
        matched = result[idx:end]
        result = f"{result[:idx]}[{matched}]({target}){result[end:]}"

        linked.add(entity_id)
        linked_ids.append(entity_id)
    return result


def _first_linkable_mention(text: str, term: str, target: str) -> Optional[int]:
    """
    Position of the first mention that may be linked, -1 if the first relevant
    mention already links to `target`, None if there is nothing to do.
    """
    for idx in iter_entity_mentions(text, term):
        if is_linkable_position(text, idx):
            return idx
        if enclosing_link_target(text, idx) == target:
            return -1
    return None


class MarkdownAutolinker:
    """Autolinker port adapter with a default AutolinkConfig."""

    def __init__(self, config: Optional[AutolinkConfig] = None) -> None:
        self._config = config or DEFAULT_AUTOLINK_CONFIG

    @property
    def config(self) -> AutolinkConfig:
        return self._config

    def autolink(
        self,
        source: str,
        dictionary: Mapping[str, EntityRecord],
        config: Optional[AutolinkConfig] = None,
    ) -> AutolinkResult:
        return autolink_entities(source, dictionary, config or self._config)
