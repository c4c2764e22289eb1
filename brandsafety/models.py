"""
brandsafety/models.py
======================
Core data model — Brand Safety evidence pipeline

Responsibility:
    - Define the enums shared by every stage (stance, category, sentiment,
      risk level, disambiguation reason)
    - Define the typed records passed between stages: Creator,
      CreatorEntityProfile, EvidenceItem, Classification,
      DisambiguationResult, RiskOutcome
    - Build the per-run CreatorEntityProfile from a Creator

This module does NOT:
    - Call any LLM, search provider, or persistence backend
    - Compute risk scores or perform disambiguation
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger("brandsafety.models")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Stance(str, Enum):
    """Role the creator plays in a piece of evidence."""

    OFFENDER = "Offender"
    VICTIM = "Victim"
    UNRELATED = "Unrelated"


class RiskCategory(str, Enum):
    """Fixed risk taxonomy used by the classifier and the scorer."""

    HARM_TO_MINORS = "harmToMinors"
    SEXUAL_MISCONDUCT = "sexualMisconduct"
    VIOLENCE = "violence"
    HATE_OR_DISCRIMINATION = "hateOrDiscrimination"
    FRAUD_OR_SCAM = "fraudOrScam"
    MISINFORMATION = "misinformation"
    GUIDELINE_VIOLATIONS = "guidelineViolations"
    PERSONAL_DRAMA = "personalDrama"
    INSUFFICIENT_DATA = "insufficient_data"


class Sentiment(str, Enum):
    """Sentiment of the evidence toward the creator."""

    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    POSITIVE = "positive"


class RiskLevel(str, Enum):
    """Discrete risk band."""

    GREEN = "green"
    AMBER = "amber"
    RED = "red"
    UNKNOWN = "unknown"


class MatchReason(str, Enum):
    """Why the disambiguator accepted or rejected an evidence item."""

    IDENTIFIER_MATCH = "identifier-match"
    FUZZY_MATCH = "fuzzy-match"
    CONTEXTUAL_MATCH = "contextual-match"
    SEMANTIC_MATCH = "semantic-match"
    REJECTED_MISLEADING = "rejected-misleading"
    REJECTED_UNVERIFIED = "rejected-unverified"


VALID_STANCES: set[str] = {e.value for e in Stance}
VALID_CATEGORIES: set[str] = {e.value for e in RiskCategory}
VALID_SENTIMENTS: set[str] = {e.value for e in Sentiment}


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Creator:
    """Identity under evaluation. Never mutated by the pipeline."""

    name: str
    handle: str | None = None
    channel_id: str | None = None
    channel_url: str | None = None
    id: str | None = None
    platform: str = "Other"

    @property
    def key(self) -> str:
        """Identity used to key persisted results."""
        if self.id:
            return self.id
        return self.name.strip().lower()


@dataclass(frozen=True)
class CreatorEntityProfile:
    """Identifier set the disambiguator matches evidence against."""

    primary_name: str
    identifiers: tuple[str, ...]
    real_name: str | None = None


def build_entity_profile(
    creator: Creator,
    aliases: list[str] | None = None,
    real_name: str | None = None,
    primary_name: str | None = None,
) -> CreatorEntityProfile:
    """
    Derive the per-run entity profile for a creator.

    The identifier set always contains the primary name, the creator's name
    and handle (with any leading ``@`` stripped), plus channel id / URL and
    any caller-supplied aliases. Order is preserved, duplicates are dropped.
    """
    handle = (creator.handle or "").lstrip("@").strip()
    pool = [
        *(aliases or []),
        primary_name,
        creator.name,
        handle,
        creator.channel_id,
        creator.channel_url,
    ]

    identifiers: list[str] = []
    seen: set[str] = set()
    for value in pool:
        if not value:
            continue
        value = value.strip()
        if value and value not in seen:
            seen.add(value)
            identifiers.append(value)

    profile = CreatorEntityProfile(
        primary_name=(primary_name or creator.name).strip(),
        identifiers=tuple(identifiers),
        real_name=real_name,
    )
    logger.debug(
        "Entity profile for %s: %d identifier(s).",
        profile.primary_name, len(profile.identifiers),
    )
    return profile


# ---------------------------------------------------------------------------
# Stage records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Classification:
    """Structured risk label for one evidence item."""

    stance: str
    category: str
    severity: int
    sentiment: str
    mitigation: bool
    summary: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Classification":
        return cls(
            stance=data["stance"],
            category=data.get("category") or "",
            severity=int(data["severity"]),
            sentiment=data["sentiment"],
            mitigation=bool(data.get("mitigation", False)),
            summary=data.get("summary") or "",
        )


@dataclass(frozen=True)
class DisambiguationResult:
    """Tagged outcome of the entity check for a single item."""

    accepted: bool
    reason: MatchReason
    detail: str = ""


@dataclass
class EvidenceItem:
    """
    One candidate piece of public content.

    Created by the search client; the classification, recency and
    contribution fields are filled in by later stages.
    """

    title: str
    snippet: str
    url: str
    meta_description: str | None = None
    rich_snippet: str | None = None
    query: str | None = None
    classification: Classification | None = None
    disambiguation: DisambiguationResult | None = None
    recency: float | None = None
    recency_months: float | None = None
    risk_contribution: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "snippet": self.snippet,
            "url": self.url,
            "meta_description": self.meta_description,
            "rich_snippet": self.rich_snippet,
            "classification": (
                self.classification.to_dict() if self.classification else None
            ),
            "match_reason": (
                self.disambiguation.reason.value if self.disambiguation else None
            ),
            "recency": self.recency,
            "recency_months": self.recency_months,
            "risk_contribution": self.risk_contribution,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EvidenceItem":
        classification = data.get("classification")
        reason = data.get("match_reason")
        return cls(
            title=data.get("title", ""),
            snippet=data.get("snippet", ""),
            url=data["url"],
            meta_description=data.get("meta_description"),
            rich_snippet=data.get("rich_snippet"),
            classification=(
                Classification.from_dict(classification) if classification else None
            ),
            disambiguation=(
                DisambiguationResult(accepted=True, reason=MatchReason(reason))
                if reason else None
            ),
            recency=data.get("recency"),
            recency_months=data.get("recency_months"),
            risk_contribution=data.get("risk_contribution", 0.0),
        )


@dataclass
class RiskOutcome:
    """Per-run verdict. One persisted entry per creator key."""

    creator_id: str
    creator_name: str
    creator_handle: str | None
    risk_level: RiskLevel
    final_score: float | None
    confidence: float
    summary: str
    categories_detected: dict[str, int] = field(default_factory=dict)
    evidence: list[EvidenceItem] = field(default_factory=list)
    last_checked: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "creator_id": self.creator_id,
            "creator_name": self.creator_name,
            "creator_handle": self.creator_handle,
            "risk_level": self.risk_level.value,
            "final_score": self.final_score,
            "confidence": self.confidence,
            "summary": self.summary,
            "categories_detected": dict(self.categories_detected),
            "evidence": [item.to_dict() for item in self.evidence],
            "last_checked": self.last_checked,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RiskOutcome":
        return cls(
            creator_id=data["creator_id"],
            creator_name=data["creator_name"],
            creator_handle=data.get("creator_handle"),
            risk_level=RiskLevel(data["risk_level"]),
            final_score=data.get("final_score"),
            confidence=data["confidence"],
            summary=data.get("summary", ""),
            categories_detected=dict(data.get("categories_detected") or {}),
            evidence=[EvidenceItem.from_dict(e) for e in data.get("evidence", [])],
            last_checked=data.get("last_checked", ""),
        )
