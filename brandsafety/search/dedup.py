"""
brandsafety/search/dedup.py
============================
Evidence deduplication — Brand Safety search stage

Removes duplicates across URLs (case-insensitive), titles, and near-identical
snippets so the same allegation is not counted twice downstream. After this
step no two items share a URL.
"""

import re

from brandsafety.models import EvidenceItem

SNIPPET_SIMILARITY_THRESHOLD: float = 0.85

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def _snippet_tokens(text: str) -> set[str]:
    cleaned = _NON_ALNUM.sub(" ", (text or "").lower())
    return {token for token in cleaned.split() if len(token) > 2}


def snippet_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the two snippets' word sets."""
    tokens_a = _snippet_tokens(a)
    tokens_b = _snippet_tokens(b)
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def deduplicate_by_url(items: list[EvidenceItem]) -> list[EvidenceItem]:
    """Keep the first item for each URL, preserving order."""
    seen: set[str] = set()
    unique: list[EvidenceItem] = []
    for item in items:
        key = item.url.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def deduplicate_evidence(
    items: list[EvidenceItem],
    similarity_threshold: float = SNIPPET_SIMILARITY_THRESHOLD,
) -> list[EvidenceItem]:
    """
    Drop repeated URLs, repeated titles, and near-duplicate snippets.

    Order of first appearance is preserved. Empty titles and snippets never
    count as duplicates of each other.
    """
    seen_titles: set[str] = set()
    kept: list[EvidenceItem] = []

    for item in deduplicate_by_url(items):
        title = (item.title or "").strip().lower()
        if title and title in seen_titles:
            continue
        if any(
            snippet_similarity(existing.snippet, item.snippet) >= similarity_threshold
            for existing in kept
        ):
            continue
        if title:
            seen_titles.add(title)
        kept.append(item)

    return kept
