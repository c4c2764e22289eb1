"""
tests/test_classifier.py
=========================
Classification Stage Tests

Test categories:
    1. Retry utility (backoff schedule, exhaustion, non-retryable errors)
    2. Response parsing and validation
    3. Classification cache (hit skips the network)
    4. Batch classification (retry then success, partial failure, ordering)

All tests mock the OpenAI client — no network calls.
"""

import json
import os
import sys
import unittest
from unittest.mock import AsyncMock, MagicMock

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from brandsafety.classify.classifier import (
    ClassificationError,
    build_user_prompt,
    classify_evidence_batch,
    classify_with_backoff,
    parse_classification_response,
)
from brandsafety.models import Classification, Creator, EvidenceItem
from brandsafety.openai_retry import (
    backoff_delay,
    chat_completions_with_retry,
    is_transient_error,
    retry_with_backoff,
)
from brandsafety.store import ClassificationCache, InMemoryStore

CREATOR = Creator(name="Ali-A", handle="@MrAliA")

VALID = {
    "stance": "Offender",
    "category": "fraudOrScam",
    "severity": 3,
    "sentiment": "negative",
    "mitigation": False,
    "summary": "Accused of running a fake giveaway.",
}


def _mock_openai_response(content: str):
    mock_message = MagicMock()
    mock_message.content = content
    mock_choice = MagicMock()
    mock_choice.message = mock_message
    mock_response = MagicMock()
    mock_response.choices = [mock_choice]
    return mock_response


def _item(n: int, snippet: str = "Ali-A accused of a fake giveaway") -> EvidenceItem:
    return EvidenceItem(
        title=f"Ali-A story {n}", snippet=snippet, url=f"https://news.example.com/{n}",
    )


def _client(side_effect=None, content: str | None = None):
    client = MagicMock()
    if side_effect is not None:
        client.chat.completions.create = AsyncMock(side_effect=side_effect)
    else:
        client.chat.completions.create = AsyncMock(
            return_value=_mock_openai_response(content or json.dumps(VALID))
        )
    return client


class _StatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"status {status_code}")
        self.status_code = status_code


# ===================================================================
# 1. Retry utility
# ===================================================================


class TestRetryUtility(unittest.IsolatedAsyncioTestCase):

    def test_backoff_schedule(self):
        self.assertAlmostEqual(backoff_delay(1, 0.4), 0.8)
        self.assertAlmostEqual(backoff_delay(2, 0.4), 1.6)
        self.assertEqual(backoff_delay(20, 0.4, max_delay=5.0), 5.0)

    def test_transient_detection(self):
        self.assertTrue(is_transient_error(_StatusError(429)))
        self.assertTrue(is_transient_error(_StatusError(503)))
        self.assertFalse(is_transient_error(_StatusError(400)))
        self.assertFalse(is_transient_error(ValueError("bad")))

    async def test_succeeds_after_failures(self):
        operation = AsyncMock(side_effect=[RuntimeError("a"), RuntimeError("b"), "ok"])
        result = await retry_with_backoff(operation, max_attempts=3, base_delay=0)
        self.assertEqual(result, "ok")
        self.assertEqual(operation.await_count, 3)

    async def test_exhaustion_raises_last_error(self):
        operation = AsyncMock(side_effect=[RuntimeError("a"), RuntimeError("last")])
        with self.assertRaises(RuntimeError) as ctx:
            await retry_with_backoff(operation, max_attempts=2, base_delay=0)
        self.assertEqual(str(ctx.exception), "last")

    async def test_non_retryable_raises_immediately(self):
        operation = AsyncMock(side_effect=ValueError("nope"))
        with self.assertRaises(ValueError):
            await retry_with_backoff(
                operation, max_attempts=3, base_delay=0,
                should_retry=lambda exc: False,
            )
        self.assertEqual(operation.await_count, 1)

    async def test_rejects_zero_attempts(self):
        with self.assertRaises(ValueError):
            await retry_with_backoff(AsyncMock(), max_attempts=0)

    async def test_chat_completions_retries_transient(self):
        client = _client(side_effect=[_StatusError(503), _mock_openai_response("{}")])
        response = await chat_completions_with_retry(
            client, max_attempts=3, base_delay=0, model="m", messages=[],
        )
        self.assertEqual(response.choices[0].message.content, "{}")
        self.assertEqual(client.chat.completions.create.await_count, 2)


# ===================================================================
# 2. Parsing
# ===================================================================


class TestParseClassification(unittest.TestCase):

    def test_valid(self):
        result = parse_classification_response(json.dumps(VALID))
        self.assertEqual(result, Classification(**VALID))

    def test_invalid_json(self):
        with self.assertRaises(ClassificationError):
            parse_classification_response("not json")

    def test_non_object(self):
        with self.assertRaises(ClassificationError):
            parse_classification_response("[1, 2]")

    def test_invalid_stance(self):
        with self.assertRaises(ClassificationError):
            parse_classification_response(json.dumps({**VALID, "stance": "Bystander"}))

    def test_invalid_category(self):
        with self.assertRaises(ClassificationError):
            parse_classification_response(json.dumps({**VALID, "category": "tax"}))

    def test_empty_or_null_category_allowed(self):
        self.assertEqual(
            parse_classification_response(json.dumps({**VALID, "category": ""})).category, "",
        )
        self.assertEqual(
            parse_classification_response(json.dumps({**VALID, "category": None})).category, "",
        )

    def test_invalid_sentiment(self):
        with self.assertRaises(ClassificationError):
            parse_classification_response(json.dumps({**VALID, "sentiment": "angry"}))

    def test_severity_out_of_range(self):
        with self.assertRaises(ClassificationError):
            parse_classification_response(json.dumps({**VALID, "severity": 7}))

    def test_severity_non_integral(self):
        with self.assertRaises(ClassificationError):
            parse_classification_response(json.dumps({**VALID, "severity": 2.5}))

    def test_severity_numeric_string(self):
        result = parse_classification_response(json.dumps({**VALID, "severity": "4"}))
        self.assertEqual(result.severity, 4)

    def test_severity_zero_raised_to_one(self):
        result = parse_classification_response(
            json.dumps({**VALID, "stance": "Unrelated", "severity": 0})
        )
        self.assertEqual(result.severity, 1)

    def test_mitigation_must_be_boolean(self):
        with self.assertRaises(ClassificationError):
            parse_classification_response(json.dumps({**VALID, "mitigation": "yes"}))

    def test_prompt_mentions_creator_and_item(self):
        prompt = build_user_prompt(_item(1), CREATOR)
        self.assertIn("Creator: Ali-A (@MrAliA)", prompt)
        self.assertIn("Title: Ali-A story 1", prompt)
        self.assertIn("harmToMinors", prompt)

    def test_prompt_fills_missing_title_and_snippet(self):
        item = EvidenceItem(title="", snippet="", url="https://x.example.com")
        prompt = build_user_prompt(item, CREATOR)
        self.assertIn("Title: Untitled result", prompt)
        self.assertIn("Snippet: No snippet available", prompt)


# ===================================================================
# 3. Cache
# ===================================================================


class TestClassificationCache(unittest.IsolatedAsyncioTestCase):

    async def test_second_call_served_from_cache(self):
        cache = ClassificationCache(InMemoryStore())
        first_client = _client()
        first = await classify_with_backoff(
            _item(1), CREATOR, first_client, "gpt-4o-mini", cache, base_delay=0,
        )

        second_client = _client()
        second = await classify_with_backoff(
            _item(1), CREATOR, second_client, "gpt-4o-mini", cache, base_delay=0,
        )

        self.assertEqual(first, second)
        first_client.chat.completions.create.assert_awaited_once()
        second_client.chat.completions.create.assert_not_awaited()

    async def test_failure_not_cached(self):
        cache = ClassificationCache(InMemoryStore())
        client = _client(content="garbage")
        with self.assertRaises(ClassificationError):
            await classify_with_backoff(
                _item(1), CREATOR, client, "gpt-4o-mini", cache,
                max_attempts=2, base_delay=0,
            )
        self.assertIsNone(cache.get("https://news.example.com/1"))

    def test_malformed_cache_entry_ignored(self):
        store = InMemoryStore({"classification:https://x": {"stance": "Offender"}})
        self.assertIsNone(ClassificationCache(store).get("https://x"))


# ===================================================================
# 4. Batch classification
# ===================================================================


class TestClassifyEvidenceBatch(unittest.IsolatedAsyncioTestCase):

    async def test_retry_then_success(self):
        client = _client(side_effect=[
            RuntimeError("timeout"),
            _mock_openai_response("not json"),
            _mock_openai_response(json.dumps(VALID)),
        ])
        cache = ClassificationCache(InMemoryStore())
        result = await classify_evidence_batch(
            [_item(1)], CREATOR, client, "gpt-4o-mini", cache, base_delay=0,
        )
        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].classification.category, "fraudOrScam")
        self.assertEqual(client.chat.completions.create.await_count, 3)

    async def test_failed_item_dropped_siblings_kept(self):
        def respond(**kwargs):
            prompt = kwargs["messages"][1]["content"]
            if "BROKEN" in prompt:
                return _mock_openai_response("not json")
            return _mock_openai_response(json.dumps(VALID))

        client = _client(side_effect=respond)
        evidence = [
            _item(1),
            _item(2, snippet="BROKEN snippet"),
            _item(3),
            _item(4),
        ]
        cache = ClassificationCache(InMemoryStore())
        result = await classify_evidence_batch(
            evidence, CREATOR, client, "gpt-4o-mini", cache,
            batch_size=3, max_attempts=3, base_delay=0,
        )

        self.assertEqual(
            [e.url for e in result],
            ["https://news.example.com/1", "https://news.example.com/3", "https://news.example.com/4"],
        )
        self.assertIsNone(evidence[1].classification)
        # 3 successes + 3 attempts for the broken item
        self.assertEqual(client.chat.completions.create.await_count, 6)

    async def test_cached_items_skip_network(self):
        cache = ClassificationCache(InMemoryStore())
        cache.set("https://news.example.com/1", Classification(**VALID))
        client = _client()
        result = await classify_evidence_batch(
            [_item(1)], CREATOR, client, "gpt-4o-mini", cache, base_delay=0,
        )
        self.assertEqual(result[0].classification, Classification(**VALID))
        client.chat.completions.create.assert_not_awaited()

    async def test_empty_input(self):
        client = _client()
        cache = ClassificationCache(InMemoryStore())
        self.assertEqual(
            await classify_evidence_batch([], CREATOR, client, "m", cache), [],
        )


if __name__ == "__main__":
    unittest.main()
