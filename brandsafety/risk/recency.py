"""
brandsafety/risk/recency.py
============================
Recency Detection — Brand Safety scoring stage

Estimates the age of an evidence item from its text and maps it onto a
decay weight:

    - explicit 4-digit years (19xx / 20xx): the latest year wins, converted
      to months elapsed since January 1st of that year
    - otherwise relative phrases: "this year" / "recently" → 6 months,
      "last year" → 12, "N years ago" → 12·N, "N months ago" → N
    - months are bucketed: ≤12 → 1.0, ≤36 → 0.6, ≤60 → 0.3, else 0.1
    - no temporal signal → RECENCY_DEFAULT (0.5)
"""

import re
from datetime import datetime, timezone

from brandsafety.config import RECENCY_BUCKETS, RECENCY_DEFAULT

_YEAR = re.compile(r"(?<!\d)(19\d{2}|20\d{2})(?!\d)")
_THIS_YEAR = re.compile(r"\b(this year|recently)\b")
_LAST_YEAR = re.compile(r"\blast year\b")
_YEARS_AGO = re.compile(r"(\d+)\s+years?\s+ago")
_MONTHS_AGO = re.compile(r"(\d+)\s+months?\s+ago")

_DAYS_PER_MONTH: float = 30.0


def months_since_year(year: int, now: datetime | None = None) -> float:
    """Months elapsed since January 1st of ``year``."""
    current = now or datetime.now(timezone.utc)
    start = datetime(year, 1, 1, tzinfo=current.tzinfo)
    return (current - start).total_seconds() / 86400.0 / _DAYS_PER_MONTH


def parse_relative_months(text: str) -> float | None:
    """Months implied by relative phrases, or None."""
    lower = (text or "").lower()
    if _THIS_YEAR.search(lower):
        return 6.0
    if _LAST_YEAR.search(lower):
        return 12.0
    match = _YEARS_AGO.search(lower)
    if match:
        return int(match.group(1)) * 12.0
    match = _MONTHS_AGO.search(lower)
    if match:
        return float(match.group(1))
    return None


def detect_recency_months(text: str, now: datetime | None = None) -> float | None:
    """Estimated content age in months, or None when there is no signal."""
    years = [int(y) for y in _YEAR.findall(text or "")]
    if years:
        return months_since_year(max(years), now)
    return parse_relative_months(text)


def recency_weight_for_months(months: float | None) -> float:
    if months is None:
        return RECENCY_DEFAULT
    for max_months, weight in RECENCY_BUCKETS:
        if months <= max_months:
            return weight
    return RECENCY_DEFAULT


def detect_recency_weight(text: str, now: datetime | None = None) -> float:
    """Decay weight for the age detected in ``text``."""
    return recency_weight_for_months(detect_recency_months(text, now))
