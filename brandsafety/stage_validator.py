"""
brandsafety/stage_validator.py
===============================
Stage Output Validator — Brand Safety Integration Layer

Responsibility:
    - Validate outputs from each pipeline stage against its contract
    - FAIL FAST with clear errors if a stage broke its contract
    - NO auto-correction

A failure here is a programming error in a stage, not a data problem:
insufficient data is reported through a normal RiskOutcome instead.

This module does NOT:
    - Execute any stage logic
    - Call any LLM or external API
    - Modify stage outputs
"""

import logging

from brandsafety.models import (
    VALID_CATEGORIES,
    VALID_SENTIMENTS,
    VALID_STANCES,
    EvidenceItem,
    RiskLevel,
    RiskOutcome,
)

logger = logging.getLogger("brandsafety.stage_validator")


class StageVerificationError(Exception):
    """Raised when a stage output fails verification."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        self.message = message
        super().__init__(f"Stage {stage} verification failed: {message}")


# =====================================================================
# Search / dedup
# =====================================================================


def verify_unique_urls(evidence: list[EvidenceItem], stage: str = "dedup") -> None:
    """
    Checks:
        - Every item has a non-empty URL
        - No two items share a URL (case-insensitive)
    """
    seen: set[str] = set()
    for i, item in enumerate(evidence):
        if not isinstance(item, EvidenceItem):
            raise StageVerificationError(
                stage, f"Item {i} is not an EvidenceItem: {type(item).__name__}"
            )
        url = (item.url or "").strip().lower()
        if not url:
            raise StageVerificationError(stage, f"Item {i} has an empty URL")
        if url in seen:
            raise StageVerificationError(stage, f"Duplicate URL after dedup: {item.url}")
        seen.add(url)

    logger.info("Stage %s verification passed: %d unique item(s).", stage, len(evidence))


# =====================================================================
# Disambiguation
# =====================================================================


def verify_disambiguated(evidence: list[EvidenceItem]) -> None:
    """
    Checks:
        - Every surviving item carries an accepted DisambiguationResult
    """
    verify_unique_urls(evidence, stage="disambiguation")
    for i, item in enumerate(evidence):
        if item.disambiguation is None or not item.disambiguation.accepted:
            raise StageVerificationError(
                "disambiguation", f"Item {i} ({item.url}) survived without acceptance"
            )


# =====================================================================
# Classification
# =====================================================================


def verify_classified(evidence: list[EvidenceItem]) -> None:
    """
    Checks:
        - Every item has a classification
        - Stance, category, sentiment are in their domains
        - Severity is an integer in [1, 5]
    """
    for i, item in enumerate(evidence):
        c = item.classification
        if c is None:
            raise StageVerificationError("classification", f"Item {i} is unclassified")
        if c.stance not in VALID_STANCES:
            raise StageVerificationError(
                "classification", f"Item {i} has invalid stance: {c.stance!r}"
            )
        if c.category and c.category not in VALID_CATEGORIES:
            raise StageVerificationError(
                "classification", f"Item {i} has invalid category: {c.category!r}"
            )
        if c.sentiment not in VALID_SENTIMENTS:
            raise StageVerificationError(
                "classification", f"Item {i} has invalid sentiment: {c.sentiment!r}"
            )
        if not isinstance(c.severity, int) or not 1 <= c.severity <= 5:
            raise StageVerificationError(
                "classification", f"Item {i} severity out of range: {c.severity!r}"
            )

    logger.info("Stage classification verification passed: %d item(s).", len(evidence))


# =====================================================================
# Outcome
# =====================================================================


def verify_outcome(outcome: RiskOutcome) -> None:
    """
    Checks:
        - Level "unknown" iff score is None
        - Score in [0, 100], confidence in [0.0, 1.0]
        - Evidence URLs unique
    """
    if outcome.final_score is None:
        if outcome.risk_level is not RiskLevel.UNKNOWN:
            raise StageVerificationError(
                "scoring", f"Null score must map to 'unknown', got {outcome.risk_level.value!r}"
            )
    else:
        if outcome.risk_level is RiskLevel.UNKNOWN:
            raise StageVerificationError("scoring", "Level 'unknown' requires a null score")
        if not 0.0 <= outcome.final_score <= 100.0:
            raise StageVerificationError(
                "scoring", f"Score out of range: {outcome.final_score}"
            )

    if not 0.0 <= outcome.confidence <= 1.0:
        raise StageVerificationError(
            "scoring", f"Confidence out of range: {outcome.confidence}"
        )

    verify_unique_urls(outcome.evidence, stage="scoring")
