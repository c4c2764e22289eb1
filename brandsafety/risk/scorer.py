"""
brandsafety/risk/scorer.py
===========================
Deterministic Risk Scorer — Brand Safety scoring stage

Responsibility:
    - Compute a per-item risk contribution (0–100) from its classification,
      recency weight and position in the result list
    - Aggregate contributions into a composite score (0–100)
    - Compute a confidence value (0.0–1.0)
    - Apply the mandatory-override policy
    - Map the final score onto a risk band (green | amber | red | unknown)

Per-item contribution:
    severity × categoryWeight
    + recencyWeight × 10
    + sentimentAdjustment
    − mitigationPenalty   (never for mandatory-red categories)
    + SOURCE_INDEX_WEIGHT × max(1, 10 − sourceIndex)
    clamped to [0, 100]

Composite:
    mean of the top 5 contributions + min(20, 2 × itemCount), clamped

Confidence:
    0.4 × min(1, itemCount / 10) + 0.6 × (mean offender severity / 5),
    rounded to 2 decimals; 0.1 when there is no evidence

Overrides, first match wins:
    1. Offender, severity ≥ 4, category minors / sexual misconduct
       → red, score ≥ min(100, 95 + (severity − 4) × 5), confidence ≥ 0.9
    2. two or more Offender items with severity ≥ 4
       → red, score 100, confidence 1
    3. an Offender item with severity ≥ 4 dated within 24 months
       → red, score ≥ 98, confidence ≥ 0.95

An empty evidence list yields score None and level "unknown": no signal
is not the same claim as confirmed safe.

This module does NOT:
    - Call any LLM or external API
    - Decide whether evidence is about the creator
    - Store data
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from brandsafety.config import (
    CATEGORY_WEIGHT,
    EMPTY_EVIDENCE_CONFIDENCE,
    EVIDENCE_BONUS_CAP,
    EVIDENCE_BONUS_PER_ITEM,
    HIGH_SEVERITY,
    MANDATORY_RED_CATEGORIES,
    MITIGATION_PENALTY,
    RECENT_MONTHS,
    RISK_BANDS,
    SENTIMENT_ADJUSTMENT,
    SOURCE_INDEX_WEIGHT,
    TOP_N_CONTRIBUTIONS,
    UNCLASSIFIED_CATEGORY_WEIGHT,
)
from brandsafety.models import Classification, EvidenceItem, RiskLevel, Stance
from brandsafety.risk.recency import (
    detect_recency_months,
    recency_weight_for_months,
)

logger = logging.getLogger("brandsafety.risk.scorer")


@dataclass(frozen=True)
class RiskAssessment:
    """Aggregate scoring result for one run."""

    final_score: float | None
    risk_level: RiskLevel
    confidence: float
    override: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalise_score(score: float) -> float:
    """Clamp to [0, 100]; NaN becomes 0."""
    if score != score:
        return 0.0
    return max(0.0, min(100.0, float(score)))


def category_weight(category: str) -> int:
    if not category:
        return UNCLASSIFIED_CATEGORY_WEIGHT
    return CATEGORY_WEIGHT.get(category, UNCLASSIFIED_CATEGORY_WEIGHT)


def _is_high_severity_offender(item: EvidenceItem) -> bool:
    c = item.classification
    return (
        c is not None
        and c.stance == Stance.OFFENDER.value
        and c.severity >= HIGH_SEVERITY
    )


def _offenders(evidence: list[EvidenceItem]) -> list[EvidenceItem]:
    return [
        e for e in evidence
        if e.classification is not None
        and e.classification.stance == Stance.OFFENDER.value
    ]


# ---------------------------------------------------------------------------
# Per-item contribution
# ---------------------------------------------------------------------------


def calculate_risk_contribution(
    classification: Classification,
    recency_weight: float,
    source_index: int,
) -> float:
    """Risk contribution of one classified item, clamped to [0, 100]."""
    severity_score = classification.severity * category_weight(classification.category)
    recency_score = recency_weight * 10
    sentiment_score = SENTIMENT_ADJUSTMENT.get(classification.sentiment, 0)
    source_score = SOURCE_INDEX_WEIGHT * max(1, 10 - source_index)

    exempt = classification.category in MANDATORY_RED_CATEGORIES
    mitigation = MITIGATION_PENALTY if classification.mitigation and not exempt else 0.0

    raw = severity_score + recency_score + sentiment_score + source_score - mitigation
    return normalise_score(raw)


def enrich_evidence_risk(
    evidence: list[EvidenceItem],
    now: datetime | None = None,
) -> list[EvidenceItem]:
    """
    Attach recency and contribution to every classified item, in place.

    ``source_index`` is the item's position in ``evidence``; items without
    a classification contribute 0.
    """
    for index, item in enumerate(evidence):
        months = detect_recency_months(f"{item.title} {item.snippet}", now)
        item.recency_months = months
        item.recency = recency_weight_for_months(months)
        if item.classification is None:
            item.risk_contribution = 0.0
            continue
        item.risk_contribution = calculate_risk_contribution(
            item.classification, item.recency, index,
        )
    return evidence


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def calculate_composite_score(evidence: list[EvidenceItem]) -> float:
    if not evidence:
        return 0.0
    ranked = sorted((e.risk_contribution for e in evidence), reverse=True)
    top = ranked[:TOP_N_CONTRIBUTIONS]
    average = sum(top) / len(top)
    bonus = min(EVIDENCE_BONUS_CAP, len(evidence) * EVIDENCE_BONUS_PER_ITEM)
    return round(normalise_score(average + bonus), 2)


def compute_confidence(evidence: list[EvidenceItem]) -> float:
    if not evidence:
        return EMPTY_EVIDENCE_CONFIDENCE
    offenders = _offenders(evidence)
    severity_avg = (
        sum(e.classification.severity for e in offenders) / len(offenders)  # type: ignore[union-attr]
        if offenders else 0.0
    )
    density = min(1.0, len(evidence) / 10)
    return round(0.4 * density + 0.6 * (severity_avg / 5), 2)


def derive_risk_level(score: float | None) -> RiskLevel:
    """Band a score; None (or NaN) is ``unknown``."""
    if score is None or score != score:
        return RiskLevel.UNKNOWN
    for level, _low, high in RISK_BANDS:
        if score <= high:
            return RiskLevel(level)
    return RiskLevel.RED


def _has_recent_high_severity(items: list[EvidenceItem]) -> bool:
    return any(
        item.recency_months is not None and item.recency_months <= RECENT_MONTHS
        for item in items
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def evaluate_risk_outcome(evidence: list[EvidenceItem]) -> RiskAssessment:
    """
    Score enriched evidence and apply the mandatory-override policy.

    ``evidence`` must already carry contributions (enrich_evidence_risk).
    """
    if not evidence:
        return RiskAssessment(None, RiskLevel.UNKNOWN, EMPTY_EVIDENCE_CONFIDENCE)

    composite = calculate_composite_score(evidence)
    confidence = compute_confidence(evidence)
    high = [e for e in evidence if _is_high_severity_offender(e)]

    mandatory = [
        e for e in high
        if e.classification.category in MANDATORY_RED_CATEGORIES  # type: ignore[union-attr]
    ]
    if mandatory:
        severity = max(e.classification.severity for e in mandatory)  # type: ignore[union-attr]
        forced = min(100.0, 95.0 + (severity - HIGH_SEVERITY) * 5.0)
        result = RiskAssessment(
            max(composite, forced), RiskLevel.RED, max(confidence, 0.9),
            override="mandatory-red-category",
        )
    elif len(high) >= 2:
        result = RiskAssessment(
            100.0, RiskLevel.RED, 1.0, override="multiple-high-severity",
        )
    elif _has_recent_high_severity(high):
        result = RiskAssessment(
            max(composite, 98.0), RiskLevel.RED, max(confidence, 0.95),
            override="recent-high-severity",
        )
    else:
        result = RiskAssessment(composite, derive_risk_level(composite), confidence)

    logger.info(
        "Risk assessment: score=%.2f level=%s confidence=%.2f override=%s",
        result.final_score, result.risk_level.value, result.confidence, result.override,
    )
    return result
