"""
brandsafety/search/client.py
=============================
Remote Search Client — Brand Safety search stage

Responsibility:
    - Issue the consolidated boolean queries to the search provider
      (Google Custom Search JSON API over aiohttp)
    - Run queries concurrently within a batch, batches sequentially
    - Convert provider items into EvidenceItem records
    - Deduplicate by URL and cap the result count
    - Raise a typed error naming the likely cause when EVERY query failed

Failure semantics:
    - Missing credentials → ConfigurationError, before any network call
    - Per-query failures are collected; they surface only if the aggregate
      result is empty (SearchUnavailableError)
    - Zero results with no failures is NOT an error

This module does NOT:
    - Decide whether a result is about the creator (entity stage)
    - Classify or score evidence
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

import aiohttp

from brandsafety.config import (
    GOOGLE_SEARCH_ENDPOINT,
    MAX_RESULTS,
    SEARCH_BATCH_SIZE,
    SEARCH_PAGE_SIZE,
    SEARCH_TIMEOUT_SECONDS,
    ApiKeys,
    require_search_credentials,
)
from brandsafety.models import CreatorEntityProfile, EvidenceItem
from brandsafety.search.dedup import deduplicate_by_url
from brandsafety.search.query_builder import build_query_list

logger = logging.getLogger("brandsafety.search.client")

# A provider takes (query, page_size) and returns raw items shaped like
# {"title": ..., "snippet": ..., "link": ..., "pagemap": {...}}.
SearchProvider = Callable[[str, int], Awaitable[list[dict[str, Any]]]]

_QUOTA_REASONS: tuple[str, ...] = ("rateLimit", "dailyLimit", "quotaExceeded")


# =====================================================================
# Errors
# =====================================================================


class SearchProviderError(Exception):
    """A single search request failed."""

    def __init__(self, message: str, status: int | None = None):
        self.message = message
        self.status = status
        super().__init__(message)


class SearchQuotaError(SearchProviderError):
    """The provider reported quota or rate-limit exhaustion."""


class SearchUnavailableError(SearchProviderError):
    """Every search batch failed; no evidence could be retrieved."""

    def __init__(self, message: str, likely_cause: str, errors: list[str]):
        self.likely_cause = likely_cause
        self.errors = errors
        status = 429 if likely_cause == "quota" else None
        super().__init__(message, status=status)


# =====================================================================
# Google Custom Search provider
# =====================================================================


def _is_quota_error(status: int, payload: dict[str, Any]) -> bool:
    error = payload.get("error") or {}
    message = str(error.get("message") or "").lower()
    reasons = [str(e.get("reason") or "") for e in error.get("errors") or []]
    if status == 429 or "exceeded" in message:
        return True
    return any(q in r for r in reasons for q in _QUOTA_REASONS)


class GoogleSearchProvider:
    """Callable search provider backed by the Google Custom Search API."""

    def __init__(
        self,
        api_key: str,
        cx: str,
        session: aiohttp.ClientSession | None = None,
        endpoint: str = GOOGLE_SEARCH_ENDPOINT,
        timeout: float = SEARCH_TIMEOUT_SECONDS,
    ):
        self._api_key = api_key
        self._cx = cx
        self._session = session
        self._endpoint = endpoint
        self._timeout = timeout

    async def __call__(self, query: str, page_size: int) -> list[dict[str, Any]]:
        params = {
            "key": self._api_key,
            "cx": self._cx,
            "q": query,
            "num": str(page_size),
        }
        if self._session is not None:
            return await self._fetch(self._session, params)
        async with aiohttp.ClientSession() as session:
            return await self._fetch(session, params)

    async def _fetch(
        self,
        session: aiohttp.ClientSession,
        params: dict[str, str],
    ) -> list[dict[str, Any]]:
        async with session.get(
            self._endpoint,
            params=params,
            timeout=aiohttp.ClientTimeout(total=self._timeout),
        ) as resp:
            try:
                payload = await resp.json(content_type=None)
            except (aiohttp.ContentTypeError, ValueError):
                payload = {}
            if not isinstance(payload, dict):
                payload = {}

            if resp.status >= 400:
                message = (payload.get("error") or {}).get("message") or (
                    f"Search request failed with status {resp.status}"
                )
                if _is_quota_error(resp.status, payload):
                    raise SearchQuotaError(
                        "Search quota exhausted for today", status=429,
                    )
                raise SearchProviderError(message, status=resp.status)

            items = payload.get("items") or []
            return [item for item in items if isinstance(item, dict)]


# =====================================================================
# Item conversion
# =====================================================================


def _metatag(item: dict[str, Any], *names: str) -> str | None:
    pagemap = item.get("pagemap") or {}
    metatags = pagemap.get("metatags") or []
    if not metatags or not isinstance(metatags[0], dict):
        return None
    for name in names:
        value = metatags[0].get(name)
        if value:
            return str(value)
    return None


def to_evidence_item(item: dict[str, Any], query: str | None = None) -> EvidenceItem | None:
    """Convert one raw provider item, or None when it has no usable content."""
    link = (item.get("link") or "").strip()
    title = (item.get("title") or "").strip()
    snippet = (item.get("snippet") or "").strip()
    if not link or not (title or snippet):
        return None

    rich = None
    pagemap = item.get("pagemap") or {}
    if pagemap.get("snippet"):
        rich = str(pagemap["snippet"])

    return EvidenceItem(
        title=title,
        snippet=snippet,
        url=link,
        meta_description=_metatag(item, "og:description", "description"),
        rich_snippet=rich,
        query=query,
    )


def _chunk(values: list[str], size: int) -> list[list[str]]:
    return [values[i:i + size] for i in range(0, len(values), size)]


# =====================================================================
# Public API
# =====================================================================


async def perform_smart_search(
    profile: CreatorEntityProfile,
    keys: ApiKeys | None = None,
    provider: SearchProvider | None = None,
    batch_size: int = SEARCH_BATCH_SIZE,
    page_size: int = SEARCH_PAGE_SIZE,
    max_results: int = MAX_RESULTS,
) -> list[EvidenceItem]:
    """
    Search for public evidence about a creator.

    Args:
        profile:     Entity profile supplying the identity tokens.
        keys:        Credentials; required when ``provider`` is None.
        provider:    Injected search provider (tests, alternate backends).
        batch_size:  Queries issued concurrently per batch.
        page_size:   Results requested per query.
        max_results: Cap on the returned list.

    Returns:
        URL-unique evidence items, at most ``max_results``.

    Raises:
        ConfigurationError:     Search credentials missing.
        SearchUnavailableError: Every query failed.
    """
    if provider is None:
        api_key, cx = require_search_credentials((keys or ApiKeys()).merged_with_env())
        provider = GoogleSearchProvider(api_key, cx)

    queries = build_query_list(profile)
    collected: list[EvidenceItem] = []
    errors: list[BaseException] = []

    for batch_no, batch in enumerate(_chunk(queries, max(1, batch_size)), start=1):
        results = await asyncio.gather(
            *(provider(query, page_size) for query in batch),
            return_exceptions=True,
        )
        for query, result in zip(batch, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("Search query failed: %s", result)
                errors.append(result)
                continue
            for raw in result:
                item = to_evidence_item(raw, query=query)
                if item is not None:
                    collected.append(item)
        logger.info(
            "Search batch %d: %d quer(ies), %d item(s) so far, %d failure(s).",
            batch_no, len(batch), len(collected), len(errors),
        )

    if not collected and errors:
        raise _unavailable(errors)

    unique = deduplicate_by_url(collected)
    logger.info(
        "Search complete: %d raw item(s), %d unique, returning %d.",
        len(collected), len(unique), min(len(unique), max_results),
    )
    return unique[:max_results]


def _unavailable(errors: list[BaseException]) -> SearchUnavailableError:
    messages: list[str] = []
    for err in errors:
        text = str(err) or type(err).__name__
        if text not in messages:
            messages.append(text)

    if any(isinstance(err, SearchQuotaError) for err in errors):
        return SearchUnavailableError(
            f"{messages[0]}. The search provider quota is exhausted; retry later.",
            likely_cause="quota",
            errors=messages,
        )
    return SearchUnavailableError(
        f"{messages[0]}. Check your search API key and CX configuration.",
        likely_cause="credentials",
        errors=messages,
    )
