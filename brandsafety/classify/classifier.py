"""
brandsafety/classify/classifier.py
===================================
Evidence Classifier — Brand Safety classification stage

Responsibility:
    - Ask the classification provider to label each validated evidence item
      with stance, category, severity (1–5), sentiment, mitigation flag and
      a short factual summary
    - Validate every response against that schema at the parse boundary
    - Retry each item with exponential back-off (retry_with_backoff)
    - Cache successful classifications by evidence URL; cache hits skip
      the network entirely
    - Batch items: concurrent within a batch, batches sequential

Failure semantics:
    - A malformed response is a ClassificationError for that item attempt
    - An item that exhausts its retries is omitted from the output
    - A failed item never cancels its siblings nor aborts the run

This module does NOT:
    - Perform entity disambiguation
    - Compute contributions or risk scores
"""

import asyncio
import json
import logging
from typing import Any

from brandsafety.config import (
    CLASSIFICATION_BATCH_SIZE,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
)
from brandsafety.models import (
    VALID_CATEGORIES,
    VALID_SENTIMENTS,
    VALID_STANCES,
    Classification,
    Creator,
    EvidenceItem,
)
from brandsafety.openai_retry import retry_with_backoff
from brandsafety.store import ClassificationCache

logger = logging.getLogger("brandsafety.classify.classifier")


class ClassificationError(ValueError):
    """A classification response did not match the expected schema."""


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT: str = (
    "You are an expert brand safety classifier returning structured JSON only."
)

_INSTRUCTIONS: str = (
    "You are a brand safety intelligence classifier for advertisers.\n"
    "Given text describing a creator, perform the following:\n\n"
    "1. Classify whether this text indicates:\n"
    "   - Offender (creator is doing harm)\n"
    "   - Victim (creator is being harmed)\n"
    "   - Unrelated (drama not involving creator, or false positive)\n\n"
    "2. Identify the risk category if Offender:\n"
    "   - harmToMinors\n"
    "   - sexualMisconduct\n"
    "   - violence\n"
    "   - hateOrDiscrimination\n"
    "   - fraudOrScam\n"
    "   - misinformation\n"
    "   - guidelineViolations\n"
    "   - personalDrama (low risk)\n"
    '   Use "" when no category applies.\n\n'
    "3. Rate severity as an integer from 1 to 5.\n\n"
    "4. Identify sentiment toward the creator: negative, neutral, or positive.\n\n"
    "5. Detect mitigation indicators such as: accusations denied, lacks "
    "evidence, false allegations, resolved issue, misreporting.\n\n"
    "6. Extract a short, factual summary (max 2 sentences).\n"
)

_RESPONSE_SHAPE: str = (
    "Respond in JSON with fields:\n"
    "{\n"
    '  "stance": "",\n'
    '  "category": "",\n'
    '  "severity": 1,\n'
    '  "sentiment": "",\n'
    '  "mitigation": false,\n'
    '  "summary": ""\n'
    "}"
)


def build_user_prompt(item: EvidenceItem, creator: Creator) -> str:
    """Build the per-item classification prompt."""
    handle = f" ({creator.handle})" if creator.handle else ""
    return (
        f"{_INSTRUCTIONS}\n"
        "Context:\n"
        f"Creator: {creator.name}{handle}\n"
        f"Title: {item.title or 'Untitled result'}\n"
        f"Snippet: {item.snippet or 'No snippet available'}\n\n"
        f"{_RESPONSE_SHAPE}"
    )


# ---------------------------------------------------------------------------
# Parse boundary
# ---------------------------------------------------------------------------


def _coerce_severity(value: Any) -> int:
    if isinstance(value, bool):
        raise ClassificationError(f"Severity must be a number, got {value!r}")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError as exc:
            raise ClassificationError(f"Severity must be a number, got {value!r}") from exc
    if not isinstance(value, (int, float)) or value != int(value):
        raise ClassificationError(f"Severity must be an integer, got {value!r}")

    severity = int(value)
    if severity < 0 or severity > 5:
        raise ClassificationError(f"Severity must be between 1 and 5, got {severity}")
    # Some models report 0 for Unrelated items.
    return max(1, severity)


def parse_classification_response(raw: str) -> Classification:
    """
    Validate a provider response into a Classification.

    Raises:
        ClassificationError: On invalid JSON, a non-object, or any field
            outside its allowed domain.
    """
    try:
        parsed = json.loads((raw or "").strip())
    except json.JSONDecodeError as exc:
        raise ClassificationError(f"Classification response is not valid JSON: {raw!r}") from exc

    if not isinstance(parsed, dict):
        raise ClassificationError(f"Expected JSON object, got {type(parsed).__name__}")

    stance = parsed.get("stance")
    if stance not in VALID_STANCES:
        raise ClassificationError(
            f"Invalid stance: {stance!r}. Must be one of {sorted(VALID_STANCES)}"
        )

    category = parsed.get("category") or ""
    if category and category not in VALID_CATEGORIES:
        raise ClassificationError(
            f"Invalid category: {category!r}. Must be one of {sorted(VALID_CATEGORIES)}"
        )

    sentiment = parsed.get("sentiment")
    if sentiment not in VALID_SENTIMENTS:
        raise ClassificationError(
            f"Invalid sentiment: {sentiment!r}. Must be one of {sorted(VALID_SENTIMENTS)}"
        )

    mitigation = parsed.get("mitigation", False)
    if not isinstance(mitigation, bool):
        raise ClassificationError(f"Mitigation must be a boolean, got {mitigation!r}")

    summary = parsed.get("summary") or ""
    if not isinstance(summary, str):
        raise ClassificationError(f"Summary must be a string, got {type(summary).__name__}")

    return Classification(
        stance=stance,
        category=category,
        severity=_coerce_severity(parsed.get("severity")),
        sentiment=sentiment,
        mitigation=mitigation,
        summary=summary.strip(),
    )


# ---------------------------------------------------------------------------
# Per-item classification
# ---------------------------------------------------------------------------


async def _classify_once(
    item: EvidenceItem,
    creator: Creator,
    client: Any,
    model: str,
) -> Classification:
    response = await client.chat.completions.create(
        model=model,
        temperature=0.2,
        response_format={"type": "json_object"},
        messages=[
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": build_user_prompt(item, creator)},
        ],
    )
    raw_content = response.choices[0].message.content or ""
    logger.debug("Raw classification response for %s: %s", item.url, raw_content)
    return parse_classification_response(raw_content)


async def classify_with_backoff(
    item: EvidenceItem,
    creator: Creator,
    client: Any,
    model: str,
    cache: ClassificationCache,
    max_attempts: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
) -> Classification:
    """
    Classify one item, consulting the URL cache first.

    Raises:
        The last error once ``max_attempts`` attempts have failed.
    """
    cached = cache.get(item.url)
    if cached is not None:
        logger.debug("Classification cache hit: %s", item.url)
        return cached

    classification = await retry_with_backoff(
        lambda: _classify_once(item, creator, client, model),
        max_attempts=max_attempts,
        base_delay=base_delay,
        label=f"Classification of {item.url}",
    )
    cache.set(item.url, classification)
    return classification


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def classify_evidence_batch(
    evidence: list[EvidenceItem],
    creator: Creator,
    client: Any,
    model: str,
    cache: ClassificationCache,
    batch_size: int = CLASSIFICATION_BATCH_SIZE,
    max_attempts: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
) -> list[EvidenceItem]:
    """
    Classify evidence in sequential batches of concurrent requests.

    Returns:
        The items whose classification succeeded, in input order, each with
        ``item.classification`` set. Failed items are omitted.
    """
    enriched: list[EvidenceItem] = []
    failed = 0
    size = max(1, batch_size)

    for start in range(0, len(evidence), size):
        batch = evidence[start:start + size]
        results = await asyncio.gather(
            *(
                classify_with_backoff(
                    item, creator, client, model, cache,
                    max_attempts=max_attempts, base_delay=base_delay,
                )
                for item in batch
            ),
            return_exceptions=True,
        )
        for item, result in zip(batch, results):
            if isinstance(result, Classification):
                item.classification = result
                enriched.append(item)
            elif isinstance(result, Exception):
                failed += 1
                logger.warning("Dropping %s: classification failed (%s).", item.url, result)
            else:
                raise result

    logger.info(
        "Classification complete: %d classified, %d dropped.", len(enriched), failed,
    )
    return enriched
