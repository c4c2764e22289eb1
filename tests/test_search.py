"""
tests/test_search.py
=====================
Search Stage Tests

Test categories:
    1. Boolean query construction
    2. Deduplication (URL, title, near-identical snippet)
    3. Provider item conversion
    4. perform_smart_search with an injected provider
       (partial failure, total failure, quota cause, missing credentials)

All tests are offline — the provider is a local coroutine.
"""

import os
import sys
import unittest
from unittest.mock import AsyncMock, patch

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from brandsafety.config import ApiKeys, ConfigurationError
from brandsafety.models import CreatorEntityProfile, EvidenceItem
from brandsafety.search.client import (
    SearchProviderError,
    SearchQuotaError,
    SearchUnavailableError,
    _is_quota_error,
    perform_smart_search,
    to_evidence_item,
)
from brandsafety.search.dedup import (
    deduplicate_by_url,
    deduplicate_evidence,
    snippet_similarity,
)
from brandsafety.search.query_builder import build_identity_group, build_query_list

ALI_A = CreatorEntityProfile(
    primary_name="Ali-A",
    identifiers=("Ali-A", "MrAliA"),
)


def _raw(n: int, **overrides) -> dict:
    item = {
        "title": f"Result {n}",
        "snippet": f"Snippet number {n} about something distinct{n}",
        "link": f"https://site{n}.example.com/story",
    }
    item.update(overrides)
    return item


def _evidence(url: str, title: str = "", snippet: str = "") -> EvidenceItem:
    return EvidenceItem(title=title, snippet=snippet, url=url)


# ===================================================================
# 1. Query construction
# ===================================================================


class TestQueryBuilder(unittest.TestCase):

    def test_identity_group_quotes_identifiers(self):
        self.assertEqual(build_identity_group(ALI_A), '("Ali-A" OR "MrAliA")')

    def test_three_queries_with_exclusions(self):
        queries = build_query_list(ALI_A)
        self.assertEqual(len(queries), 3)
        for query in queries:
            self.assertTrue(query.startswith('("Ali-A" OR "MrAliA")'))
            self.assertIn("-alias", query)
            self.assertIn("-aliexpress", query)
        self.assertIn("scandal", queries[0])
        self.assertIn('"sexual misconduct"', queries[1])
        self.assertIn("biography", queries[2])

    def test_own_identifier_not_excluded(self):
        profile = CreatorEntityProfile(primary_name="Alias", identifiers=("Alias",))
        for query in build_query_list(profile):
            self.assertNotIn("-alias ", query + " ")
            self.assertIn("-aliexpress", query)

    def test_no_exclusions(self):
        queries = build_query_list(ALI_A, exclusions=())
        self.assertFalse(any(" -" in q for q in queries))


# ===================================================================
# 2. Deduplication
# ===================================================================


class TestDedup(unittest.TestCase):

    def test_url_dedup_case_insensitive(self):
        items = [
            _evidence("https://A.example.com/x", "one"),
            _evidence("https://a.example.com/x", "two"),
            _evidence("https://b.example.com/y", "three"),
        ]
        unique = deduplicate_by_url(items)
        self.assertEqual([i.title for i in unique], ["one", "three"])

    def test_repeated_title_dropped(self):
        items = [
            _evidence("https://a.example.com", "Same headline", "first body text here"),
            _evidence("https://b.example.com", "same headline", "completely other words"),
        ]
        self.assertEqual(len(deduplicate_evidence(items)), 1)

    def test_near_identical_snippet_dropped(self):
        snippet = "Ali-A accused of running a fake giveaway scam on YouTube"
        items = [
            _evidence("https://a.example.com", "Headline A", snippet),
            _evidence("https://b.example.com", "Headline B", snippet + "!"),
            _evidence("https://c.example.com", "Headline C", "Unrelated gaming news roundup today"),
        ]
        kept = deduplicate_evidence(items)
        self.assertEqual([i.url for i in kept], ["https://a.example.com", "https://c.example.com"])

    def test_urls_unique_after_dedup(self):
        items = [_evidence(f"https://x.example.com/{i % 3}", f"t{i}", f"s{i}") for i in range(9)]
        kept = deduplicate_evidence(items)
        urls = [i.url for i in kept]
        self.assertEqual(len(urls), len(set(urls)))

    def test_results_without_snippet_all_kept(self):
        raw = [
            {"title": "Lawsuit filed against Ali-A", "link": "https://a.example.com/1"},
            {"title": "Ali-A sponsorship dropped", "link": "https://a.example.com/2"},
            {"title": "Ali-A police statement", "link": "https://a.example.com/3"},
        ]
        items = [to_evidence_item(r) for r in raw]
        kept = deduplicate_evidence(items)
        self.assertEqual(len(kept), 3)

    def test_results_without_title_all_kept(self):
        raw = [
            {"snippet": "Ali-A was sued over a giveaway", "link": "https://a.example.com/1"},
            {"snippet": "Fans react to the new gameplay montage", "link": "https://a.example.com/2"},
        ]
        items = [to_evidence_item(r) for r in raw]
        kept = deduplicate_evidence(items)
        self.assertEqual(len(kept), 2)

    def test_similarity(self):
        self.assertEqual(snippet_similarity("", "anything"), 0.0)
        self.assertEqual(snippet_similarity("the big dog", "the big dog"), 1.0)
        self.assertAlmostEqual(snippet_similarity("red big dog", "big dog cat"), 0.5)


# ===================================================================
# 3. Provider item conversion
# ===================================================================


class TestItemConversion(unittest.TestCase):

    def test_requires_link(self):
        self.assertIsNone(to_evidence_item({"title": "t", "snippet": "s"}))

    def test_requires_title_or_snippet(self):
        self.assertIsNone(to_evidence_item({"link": "https://x.example.com"}))

    def test_missing_snippet_kept_empty(self):
        item = to_evidence_item({"title": "t", "link": "https://x.example.com"})
        self.assertEqual(item.snippet, "")

    def test_meta_description_from_pagemap(self):
        raw = _raw(1, pagemap={"metatags": [{"og:description": "OG text"}]})
        item = to_evidence_item(raw, query="q")
        self.assertEqual(item.meta_description, "OG text")
        self.assertEqual(item.query, "q")

    def test_quota_detection(self):
        self.assertTrue(_is_quota_error(429, {}))
        self.assertTrue(_is_quota_error(403, {"error": {"message": "Quota exceeded for quota metric"}}))
        self.assertTrue(_is_quota_error(403, {"error": {"errors": [{"reason": "dailyLimitExceeded"}]}}))
        self.assertFalse(_is_quota_error(400, {"error": {"message": "API key not valid"}}))


# ===================================================================
# 4. perform_smart_search
# ===================================================================


class TestPerformSmartSearch(unittest.IsolatedAsyncioTestCase):

    async def test_results_deduplicated_across_queries(self):
        provider = AsyncMock(return_value=[_raw(1), _raw(2), _raw(3)])
        results = await perform_smart_search(ALI_A, provider=provider)
        self.assertEqual(provider.await_count, 3)
        self.assertEqual(len(results), 3)
        self.assertEqual(len({r.url for r in results}), 3)

    async def test_max_results_cap(self):
        calls = {"n": 0}

        async def provider(query, page_size):
            calls["n"] += 1
            base = calls["n"] * 100
            return [_raw(base + i) for i in range(page_size)]

        results = await perform_smart_search(ALI_A, provider=provider, page_size=5, max_results=7)
        self.assertEqual(len(results), 7)

    async def test_partial_failure_returns_survivors(self):
        async def provider(query, page_size):
            if "biography" in query:
                raise SearchProviderError("boom", status=500)
            return [_raw(1)]

        results = await perform_smart_search(ALI_A, provider=provider, batch_size=1)
        self.assertEqual([r.url for r in results], ["https://site1.example.com/story"])

    async def test_total_failure_credentials_cause(self):
        provider = AsyncMock(side_effect=SearchProviderError("API key not valid", status=400))
        with self.assertRaises(SearchUnavailableError) as ctx:
            await perform_smart_search(ALI_A, provider=provider)
        self.assertEqual(ctx.exception.likely_cause, "credentials")
        self.assertIn("API key not valid", ctx.exception.message)
        self.assertEqual(ctx.exception.errors, ["API key not valid"])

    async def test_total_failure_quota_cause(self):
        provider = AsyncMock(side_effect=SearchQuotaError("Search quota exhausted for today", status=429))
        with self.assertRaises(SearchUnavailableError) as ctx:
            await perform_smart_search(ALI_A, provider=provider)
        self.assertEqual(ctx.exception.likely_cause, "quota")
        self.assertEqual(ctx.exception.status, 429)

    async def test_zero_results_is_not_an_error(self):
        provider = AsyncMock(return_value=[])
        self.assertEqual(await perform_smart_search(ALI_A, provider=provider), [])

    async def test_missing_credentials_fail_before_network(self):
        with patch.dict(os.environ, {}, clear=True), \
                patch("brandsafety.search.client.GoogleSearchProvider") as provider_cls:
            with self.assertRaises(ConfigurationError) as ctx:
                await perform_smart_search(ALI_A, keys=ApiKeys())
            provider_cls.assert_not_called()
        self.assertEqual(ctx.exception.collaborator, "search")
        self.assertIn("GOOGLE_CSE_API_KEY", ctx.exception.message)


if __name__ == "__main__":
    unittest.main()
