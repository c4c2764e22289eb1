"""
brandsafety/entity/heuristics.py
=================================
Local Entity Heuristics — Brand Safety entity stage (pass 1)

Responsibility:
    - Tokenize the aggregated evidence text (title, snippet, metadata,
      URL host + path)
    - Decide cheaply, without any network call, whether evidence is
      about the target creator

Decision order (first rule that fires wins):
    1. A misleading near-homoglyph token ("alias", "analysis", ...) is
       present and no identifier matches as a whole word
       → rejected-misleading (hard reject)
    2. Any identifier matches as a whole word → identifier-match
    3. A token is within Levenshtein 2 of an identifier and is not itself
       a misleading term → fuzzy-match
    4. A token is within Levenshtein 4 of the primary name AND a
       creator-ecosystem context term appears → contextual-match
    5. Otherwise → rejected-unverified (inconclusive; semantic pass decides)

Every function here is pure: the same (context, profile) input always
yields the same result.

This module does NOT:
    - Call any LLM or external API
    - Classify or score evidence
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

from rapidfuzz.distance import Levenshtein

from brandsafety.config import (
    CONTEXTUAL_DISTANCE,
    CREATOR_CONTEXT_TERMS,
    MISLEADING_TERMS,
    TYPO_DISTANCE,
)
from brandsafety.models import (
    CreatorEntityProfile,
    DisambiguationResult,
    EvidenceItem,
    MatchReason,
)

logger = logging.getLogger("brandsafety.entity.heuristics")

# Split on anything that is not alphanumeric, "@", "'", "+" or "-"
_TOKEN_SPLIT = re.compile(r"[^a-z0-9@'+\-]+", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Evidence context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SnippetContext:
    """Text fields of one evidence item used for identity checks."""

    snippet: str = ""
    title: str = ""
    url: str = ""
    meta_description: str = ""
    rich_snippet: str = ""

    @classmethod
    def from_evidence(cls, item: EvidenceItem) -> "SnippetContext":
        return cls(
            snippet=item.snippet or "",
            title=item.title or "",
            url=item.url or "",
            meta_description=item.meta_description or "",
            rich_snippet=item.rich_snippet or "",
        )

    @property
    def aggregated(self) -> str:
        parts = [
            self.title, self.meta_description, self.rich_snippet,
            self.snippet, self.url,
        ]
        return " ".join(p for p in parts if p).strip()


def _coerce_context(context: "SnippetContext | EvidenceItem | str") -> SnippetContext:
    if isinstance(context, SnippetContext):
        return context
    if isinstance(context, EvidenceItem):
        return SnippetContext.from_evidence(context)
    return SnippetContext(snippet=context or "")


# ---------------------------------------------------------------------------
# Text primitives
# ---------------------------------------------------------------------------


def levenshtein(a: str, b: str) -> int:
    """Unit-cost insert / delete / substitute edit distance."""
    return Levenshtein.distance(a or "", b or "")


def tokenize(text: str) -> list[str]:
    """Lowercase tokens split on non-alphanumeric boundaries."""
    return [t for t in _TOKEN_SPLIT.split((text or "").lower()) if t]


def url_tokens(url: str) -> list[str]:
    """Tokens from a URL's host (without ``www.``) and path."""
    if not url:
        return []
    parsed = urlparse(url.lower())
    if not parsed.netloc:
        return tokenize(url)
    host = parsed.netloc
    if host.startswith("www."):
        host = host[4:]
    path = re.sub(r"[/?#]", " ", parsed.path)
    return tokenize(host) + tokenize(path)


def build_token_set(context: SnippetContext) -> list[str]:
    """Unique tokens of the aggregated text plus URL host/path, in order."""
    text = " ".join(
        p for p in (
            context.title, context.meta_description, context.rich_snippet,
            context.snippet,
        ) if p
    )
    tokens = tokenize(text) + url_tokens(context.url)
    return list(dict.fromkeys(tokens))


@lru_cache(maxsize=1024)
def _whole_word_pattern(term: str) -> re.Pattern[str]:
    return re.compile(
        rf"(?<![a-z0-9]){re.escape(term)}(?![a-z0-9])", re.IGNORECASE,
    )


def whole_word_match(term: str, text: str) -> bool:
    """True if ``term`` appears in ``text`` not embedded in a longer word."""
    term = (term or "").strip()
    if not term:
        return False
    return _whole_word_pattern(term.lower()).search(text or "") is not None


def has_context_term(text: str) -> bool:
    """True if any creator-ecosystem term appears as a whole word."""
    return any(whole_word_match(term, text) for term in CREATOR_CONTEXT_TERMS)


def _identifier_pool(profile: CreatorEntityProfile) -> list[str]:
    pool = [profile.primary_name, profile.real_name, *profile.identifiers]
    names: list[str] = []
    for value in pool:
        value = (value or "").strip().lower()
        if value and value not in names:
            names.append(value)
    return names


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def evaluate_heuristics(
    context: "SnippetContext | EvidenceItem | str",
    profile: CreatorEntityProfile,
) -> DisambiguationResult:
    """
    Run the local heuristic pass and return a tagged result.

    ``rejected-misleading`` is a hard rejection; ``rejected-unverified``
    means the pass was inconclusive.
    """
    ctx = _coerce_context(context)
    aggregated = ctx.aggregated
    if not aggregated:
        return DisambiguationResult(False, MatchReason.REJECTED_UNVERIFIED, "empty text")

    tokens = build_token_set(ctx)
    names = _identifier_pool(profile)

    matched = next((n for n in names if whole_word_match(n, aggregated)), None)

    misleading = next((t for t in tokens if t in MISLEADING_TERMS), None)
    if misleading and matched is None:
        return DisambiguationResult(
            False, MatchReason.REJECTED_MISLEADING, f"misleading token {misleading!r}",
        )

    if matched is not None:
        return DisambiguationResult(
            True, MatchReason.IDENTIFIER_MATCH, f"identifier {matched!r}",
        )

    for name in names:
        for token in tokens:
            if token in MISLEADING_TERMS:
                continue
            if levenshtein(token, name) <= TYPO_DISTANCE:
                return DisambiguationResult(
                    True, MatchReason.FUZZY_MATCH, f"{token!r} ~ {name!r}",
                )

    primary = (profile.primary_name or "").strip().lower()
    if primary and has_context_term(aggregated):
        for token in tokens:
            if levenshtein(token, primary) <= CONTEXTUAL_DISTANCE:
                return DisambiguationResult(
                    True, MatchReason.CONTEXTUAL_MATCH,
                    f"{token!r} ~ {primary!r} with creator context",
                )

    return DisambiguationResult(False, MatchReason.REJECTED_UNVERIFIED, "no local match")


def is_likely_about_creator(
    context: "SnippetContext | EvidenceItem | str",
    profile: CreatorEntityProfile,
) -> bool:
    """Boolean form of :func:`evaluate_heuristics`."""
    return evaluate_heuristics(context, profile).accepted
