"""
brandsafety/pipeline.py
========================
Pipeline Orchestrator — Brand Safety Integration Layer

Responsibility:
    1. Check collaborator credentials BEFORE any network call
    2. Sequence the stages strictly left to right:
           Search → Dedup → Disambiguation → Classification → Scoring
    3. Verify every stage output (stage_validator)
    4. Turn insufficient data into a well-formed "unknown" RiskOutcome
    5. Persist the final RiskOutcome keyed by creator (last writer wins)

This layer MUST NOT:
    - Perform search, disambiguation, classification, or scoring itself
    - Retry a stage; partial stage results are accepted as they are

Entry points:
    - run_pipeline()               — one full scan
    - scan_creator()               — reuse a fresh cached result, else scan
    - run_pipeline_with_deadline() — scan bounded by an overall timeout
"""

import asyncio
import logging
from collections import Counter
from typing import Any

from openai import AsyncOpenAI

from brandsafety.classify.classifier import classify_evidence_batch
from brandsafety.config import (
    EMPTY_EVIDENCE_CONFIDENCE,
    FRESHNESS_DAYS,
    SCAN_TIMEOUT_SECONDS,
    ApiKeys,
    require_openai_credentials,
    require_search_credentials,
)
from brandsafety.entity.disambiguator import disambiguate_evidence
from brandsafety.models import (
    Creator,
    CreatorEntityProfile,
    EvidenceItem,
    RiskLevel,
    RiskOutcome,
    Stance,
    build_entity_profile,
)
from brandsafety.risk.scorer import enrich_evidence_risk, evaluate_risk_outcome
from brandsafety.search.client import SearchProvider, perform_smart_search
from brandsafety.search.dedup import deduplicate_evidence
from brandsafety.stage_validator import (
    verify_classified,
    verify_disambiguated,
    verify_outcome,
    verify_unique_urls,
)
from brandsafety.store import (
    ClassificationCache,
    KeyValueStore,
    ResultCache,
    default_store,
)

logger = logging.getLogger("brandsafety.pipeline")

NO_RESULTS_SUMMARY = "Insufficient validated data to determine risk."
NO_VALIDATED_SUMMARY = (
    "No search results could be confirmed as referring to this creator; "
    "risk could not be assessed."
)
NO_CLASSIFIED_SUMMARY = (
    "Validated evidence could not be classified; risk could not be assessed."
)
TIMEOUT_SUMMARY = "Scan timed out before completing; risk could not be assessed."


# =====================================================================
# Helpers
# =====================================================================


def _banner(title: str) -> None:
    logger.info("=" * 60)
    logger.info(title)
    logger.info("=" * 60)


def unknown_outcome(
    creator: Creator,
    summary: str,
    evidence: list[EvidenceItem] | None = None,
) -> RiskOutcome:
    """Well-formed outcome for runs that produced no scorable evidence."""
    return RiskOutcome(
        creator_id=creator.key,
        creator_name=creator.name,
        creator_handle=creator.handle,
        risk_level=RiskLevel.UNKNOWN,
        final_score=None,
        confidence=EMPTY_EVIDENCE_CONFIDENCE,
        summary=summary,
        categories_detected={},
        evidence=list(evidence or []),
    )


def build_summary(evidence: list[EvidenceItem], override: str | None = None) -> str:
    """Join classifier summaries of the three highest-contributing items."""
    if not evidence:
        return "No notable results found in search scope."
    top = sorted(evidence, key=lambda e: e.risk_contribution, reverse=True)[:3]
    parts = []
    for item in top:
        summary = item.classification.summary if item.classification else ""
        parts.append(summary or item.snippet[:120])
    text = " ".join(p for p in parts if p)
    if override:
        text = f"[policy override: {override}] {text}"
    return text


def count_offender_categories(evidence: list[EvidenceItem]) -> dict[str, int]:
    counts = Counter(
        e.classification.category
        for e in evidence
        if e.classification is not None
        and e.classification.stance == Stance.OFFENDER.value
        and e.classification.category
    )
    return dict(counts)


# =====================================================================
# Main orchestration
# =====================================================================


async def run_pipeline(
    creator: Creator,
    entity_profile_override: CreatorEntityProfile | None = None,
    *,
    aliases: list[str] | None = None,
    keys: ApiKeys | None = None,
    store: KeyValueStore | None = None,
    search_provider: SearchProvider | None = None,
    openai_client: Any | None = None,
) -> RiskOutcome:
    """
    Execute one full brand-safety scan for a creator.

    Args:
        creator:                 Identity under evaluation (never mutated).
        entity_profile_override: Use this profile instead of deriving one.
        aliases:                 Extra identifiers for the derived profile.
        keys:                    Credentials; empty fields fall back to env.
        store:                   Key→value store for both caches.
        search_provider:         Injected search backend.
        openai_client:           Injected ``AsyncOpenAI``-compatible client.

    Returns:
        The RiskOutcome. Level "unknown" with a null score when no
        evidence survived to scoring.

    Raises:
        ConfigurationError:     A required credential is missing.
        SearchUnavailableError: Every search query failed.
        StageVerificationError: A stage broke its output contract.
    """
    resolved = (keys or ApiKeys()).merged_with_env()

    # ------------------------------------------------------------------
    # Preconditions — no network call happens before these pass
    # ------------------------------------------------------------------
    if search_provider is None:
        require_search_credentials(resolved)
    owns_client = openai_client is None
    if owns_client:
        openai_client = AsyncOpenAI(api_key=require_openai_credentials(resolved))

    store = store if store is not None else default_store()
    results = ResultCache(store)
    profile = entity_profile_override or build_entity_profile(creator, aliases)

    try:
        # ==============================================================
        # STAGE 1 — Search + Dedup
        # ==============================================================
        _banner(f"STAGE 1: Search — {creator.name}")

        search_results = await perform_smart_search(
            profile, keys=resolved, provider=search_provider,
        )
        if not search_results:
            logger.info("No search results — returning unknown outcome.")
            return unknown_outcome(creator, NO_RESULTS_SUMMARY)

        deduped = deduplicate_evidence(search_results)
        verify_unique_urls(deduped)

        logger.info(
            "Stage 1 complete: %d result(s), %d after dedup.",
            len(search_results), len(deduped),
        )

        # ==============================================================
        # STAGE 2 — Entity Disambiguation (before ANY classification)
        # ==============================================================
        _banner("STAGE 2: Entity Disambiguation")

        validated = await disambiguate_evidence(
            deduped, profile, openai_client, resolved.model,
        )
        verify_disambiguated(validated)

        if not validated:
            logger.info("No evidence survived disambiguation — returning unknown outcome.")
            return unknown_outcome(creator, NO_VALIDATED_SUMMARY)

        logger.info("Stage 2 complete: %d validated item(s).", len(validated))

        # ==============================================================
        # STAGE 3 — Classification
        # ==============================================================
        _banner("STAGE 3: Classification")

        classified = await classify_evidence_batch(
            validated, creator, openai_client, resolved.model,
            ClassificationCache(store),
        )
        verify_classified(classified)

        if not classified:
            logger.warning("Every classification failed — returning unknown outcome.")
            return unknown_outcome(creator, NO_CLASSIFIED_SUMMARY)

        logger.info("Stage 3 complete: %d classified item(s).", len(classified))

        # ==============================================================
        # STAGE 4 — Risk Scoring
        # ==============================================================
        _banner("STAGE 4: Risk Scoring")

        enriched = enrich_evidence_risk(classified)
        assessment = evaluate_risk_outcome(enriched)

        outcome = RiskOutcome(
            creator_id=creator.key,
            creator_name=creator.name,
            creator_handle=creator.handle,
            risk_level=assessment.risk_level,
            final_score=assessment.final_score,
            confidence=assessment.confidence,
            summary=build_summary(enriched, assessment.override),
            categories_detected=count_offender_categories(enriched),
            evidence=enriched,
        )
        verify_outcome(outcome)

        logger.info(
            "Stage 4 complete: level=%s score=%s confidence=%.2f.",
            outcome.risk_level.value, outcome.final_score, outcome.confidence,
        )

        # ==============================================================
        # Persist — one entry per creator, rescan overwrites
        # ==============================================================
        results.set(creator.key, outcome)
        return outcome
    finally:
        if owns_client:
            await openai_client.close()


async def scan_creator(
    creator: Creator,
    *,
    force: bool = False,
    freshness_days: int = FRESHNESS_DAYS,
    store: KeyValueStore | None = None,
    **kwargs: Any,
) -> RiskOutcome:
    """
    Return the cached outcome when it is fresh, otherwise run a new scan.

    Concurrent scans of the same creator are not serialized here.
    """
    store = store if store is not None else default_store()
    cache = ResultCache(store)
    if not force and cache.is_fresh(creator.key, days=freshness_days):
        cached = cache.get(creator.key)
        if cached is not None:
            logger.info(
                "Using cached result for %s (last scanned %s).",
                creator.key, cache.last_scanned(creator.key),
            )
            return cached
    return await run_pipeline(creator, store=store, **kwargs)


async def run_pipeline_with_deadline(
    creator: Creator,
    timeout: float = SCAN_TIMEOUT_SECONDS,
    **kwargs: Any,
) -> RiskOutcome:
    """
    Run ``scan_creator`` under an overall deadline.

    A timeout yields an "unknown" outcome instead of an exception.
    """
    try:
        return await asyncio.wait_for(scan_creator(creator, **kwargs), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error("Scan for %s exceeded %.0fs deadline.", creator.key, timeout)
        return unknown_outcome(creator, TIMEOUT_SUMMARY)
