"""
brandsafety/entity/disambiguator.py
====================================
Entity Disambiguator — Brand Safety entity stage

Responsibility:
    - Filter evidence to items plausibly about the target creator
    - Cheap local heuristics first, remote semantic check only when the
      heuristics are inconclusive
    - Attach a tagged DisambiguationResult to every surviving item

Acceptance rule:
    - heuristic accept                         → keep (identifier/fuzzy/contextual)
    - heuristic hard reject (misleading term)  → drop, no remote call
    - heuristic inconclusive → semantic accept → keep (semantic-match)
    - heuristic inconclusive → semantic reject → drop (rejected-unverified)

A semantic provider failure counts as a rejection of that item only.

This module does NOT:
    - Classify or score evidence
"""

import logging
from typing import Any

from brandsafety.entity.heuristics import SnippetContext, evaluate_heuristics
from brandsafety.entity.semantic import verify_entity_with_llm
from brandsafety.models import (
    CreatorEntityProfile,
    DisambiguationResult,
    EvidenceItem,
    MatchReason,
)

logger = logging.getLogger("brandsafety.entity.disambiguator")


async def disambiguate_item(
    item: EvidenceItem,
    profile: CreatorEntityProfile,
    client: Any | None,
    model: str,
) -> DisambiguationResult:
    """
    Decide whether one evidence item is about the creator.

    ``client`` may be None, in which case inconclusive items are rejected
    without a remote check.
    """
    context = SnippetContext.from_evidence(item)
    local = evaluate_heuristics(context, profile)

    if local.accepted or local.reason is MatchReason.REJECTED_MISLEADING:
        return local

    if client is None:
        return local

    try:
        verdict = await verify_entity_with_llm(context, profile, client, model)
    except Exception as exc:
        logger.warning("Semantic check failed for %s: %s — rejecting.", item.url, exc)
        return DisambiguationResult(
            False, MatchReason.REJECTED_UNVERIFIED, f"semantic check failed: {exc}",
        )

    if verdict.matches_creator:
        return DisambiguationResult(True, MatchReason.SEMANTIC_MATCH, verdict.reason)
    return DisambiguationResult(False, MatchReason.REJECTED_UNVERIFIED, verdict.reason)


async def disambiguate_evidence(
    evidence: list[EvidenceItem],
    profile: CreatorEntityProfile,
    client: Any | None,
    model: str,
) -> list[EvidenceItem]:
    """
    Return the items that survive disambiguation, in input order.

    Each survivor carries its DisambiguationResult on ``item.disambiguation``.
    """
    validated: list[EvidenceItem] = []
    reasons: dict[str, int] = {}

    for item in evidence:
        outcome = await disambiguate_item(item, profile, client, model)
        reasons[outcome.reason.value] = reasons.get(outcome.reason.value, 0) + 1
        if outcome.accepted:
            item.disambiguation = outcome
            validated.append(item)
        else:
            logger.debug("Rejected %s: %s (%s)", item.url, outcome.reason.value, outcome.detail)

    logger.info(
        "Disambiguation: %d/%d item(s) accepted. Reasons: %s",
        len(validated), len(evidence), reasons,
    )
    return validated
