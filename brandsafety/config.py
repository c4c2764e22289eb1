"""
brandsafety/config.py
======================
Configuration & Policy Constants — Brand Safety

Responsibility:
    - Hold every tunable policy constant used by the pipeline
      (batch sizes, weights, thresholds, bands)
    - Resolve provider credentials from explicit ApiKeys or the environment
    - Raise ConfigurationError for a missing credential BEFORE any network call

The numeric constants below are policy, not correctness: adjust them to
change pipeline sensitivity.

This module does NOT:
    - Perform network I/O
    - Persist anything
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("brandsafety.config")


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

GOOGLE_SEARCH_ENDPOINT: str = "https://www.googleapis.com/customsearch/v1"
SEARCH_PAGE_SIZE: int = 5
SEARCH_BATCH_SIZE: int = 4
MAX_RESULTS: int = 40
SEARCH_TIMEOUT_SECONDS: float = 15.0

# Negative terms appended to every query; these names collide with short
# creator names such as "Ali-A".
SEARCH_EXCLUSION_TERMS: tuple[str, ...] = (
    "alias", "alis", "analysis", "aliexpress", "analyst", "aliases", "aliah",
)

# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

MODEL_DEFAULT: str = os.getenv("OPENAI_MODEL", "").strip() or "gpt-4o-mini"
CLASSIFICATION_BATCH_SIZE: int = 3
MAX_RETRIES: int = 3           # total attempts per item
RETRY_BASE_DELAY: float = 0.4  # seconds; delay = base * 2**attempt

# ---------------------------------------------------------------------------
# Disambiguation
# ---------------------------------------------------------------------------

MISLEADING_TERMS: frozenset[str] = frozenset(
    {"alias", "aliexpress", "analytical", "analysis"}
)

CREATOR_CONTEXT_TERMS: tuple[str, ...] = (
    "youtube",
    "youtuber",
    "influencer",
    "streamer",
    "twitch",
    "gaming",
    "beauty",
    "vlog",
    "commentary",
    "fashion",
    "lifestyle",
    "creator",
    "social media personality",
    "video",
    "stream",
)

TYPO_DISTANCE: int = 2
CONTEXTUAL_DISTANCE: int = 4

# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

CATEGORY_WEIGHT: dict[str, int] = {
    "harmToMinors":         5,
    "sexualMisconduct":     5,
    "violence":             4,
    "hateOrDiscrimination": 4,
    "fraudOrScam":          3,
    "misinformation":       3,
    "guidelineViolations":  2,
    "personalDrama":        1,
    "insufficient_data":    1,
}
UNCLASSIFIED_CATEGORY_WEIGHT: int = 1

MANDATORY_RED_CATEGORIES: frozenset[str] = frozenset(
    {"harmToMinors", "sexualMisconduct"}
)

SENTIMENT_ADJUSTMENT: dict[str, int] = {
    "negative": 10,
    "neutral":  0,
    "positive": -10,
}

MITIGATION_PENALTY: float = 15.0
SOURCE_INDEX_WEIGHT: float = 1.5
RECENCY_DEFAULT: float = 0.5

# (max months, weight): first bucket that fits wins
RECENCY_BUCKETS: tuple[tuple[float, float], ...] = (
    (12, 1.0),
    (36, 0.6),
    (60, 0.3),
    (float("inf"), 0.1),
)

TOP_N_CONTRIBUTIONS: int = 5
EVIDENCE_BONUS_PER_ITEM: float = 2.0
EVIDENCE_BONUS_CAP: float = 20.0

HIGH_SEVERITY: int = 4
RECENT_MONTHS: float = 24.0
EMPTY_EVIDENCE_CONFIDENCE: float = 0.1

# (level, min, max), inclusive bounds
RISK_BANDS: tuple[tuple[str, float, float], ...] = (
    ("green", 0, 25),
    ("amber", 26, 60),
    ("red", 61, 100),
)

# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

FRESHNESS_DAYS: int = 30
SCAN_TIMEOUT_SECONDS: float = float(os.getenv("SCAN_TIMEOUT_SECONDS", "180"))


# =====================================================================
# Credentials
# =====================================================================


class ConfigurationError(Exception):
    """Raised when a collaborator's required credentials are missing."""

    def __init__(self, collaborator: str, message: str):
        self.collaborator = collaborator
        self.message = message
        super().__init__(f"{collaborator} configuration error: {message}")


@dataclass(frozen=True)
class ApiKeys:
    """Per-run credentials. Empty fields fall back to the environment."""

    google_cse_api_key: str | None = None
    google_cse_cx: str | None = None
    openai_api_key: str | None = None
    openai_model: str | None = None

    @classmethod
    def from_env(cls) -> "ApiKeys":
        return cls(
            google_cse_api_key=os.getenv("GOOGLE_CSE_API_KEY"),
            google_cse_cx=os.getenv("GOOGLE_CSE_CX"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL"),
        )

    def merged_with_env(self) -> "ApiKeys":
        env = ApiKeys.from_env()
        return ApiKeys(
            google_cse_api_key=self.google_cse_api_key or env.google_cse_api_key,
            google_cse_cx=self.google_cse_cx or env.google_cse_cx,
            openai_api_key=self.openai_api_key or env.openai_api_key,
            openai_model=self.openai_model or env.openai_model,
        )

    @property
    def model(self) -> str:
        return (self.openai_model or "").strip() or MODEL_DEFAULT


def require_search_credentials(keys: ApiKeys) -> tuple[str, str]:
    """
    Return (api_key, cx) for the search provider.

    Raises:
        ConfigurationError: If either value is missing.
    """
    missing = [
        name for name, value in (
            ("GOOGLE_CSE_API_KEY", keys.google_cse_api_key),
            ("GOOGLE_CSE_CX", keys.google_cse_cx),
        ) if not value
    ]
    if missing:
        raise ConfigurationError(
            "search", f"missing required credentials: {', '.join(missing)}",
        )
    return keys.google_cse_api_key, keys.google_cse_cx  # type: ignore[return-value]


def require_openai_credentials(keys: ApiKeys) -> str:
    """
    Return the OpenAI API key.

    Raises:
        ConfigurationError: If the key is missing.
    """
    if not keys.openai_api_key:
        raise ConfigurationError(
            "classification", "missing required credentials: OPENAI_API_KEY",
        )
    return keys.openai_api_key
