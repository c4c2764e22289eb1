"""
brandsafety/openai_retry.py
============================
Shared retry utility — Brand Safety

Provides ``retry_with_backoff``, a single awaitable retry loop parameterized
by attempt count and base delay, and ``chat_completions_with_retry``, a thin
wrapper around ``client.chat.completions.create`` built on it.

Usage in any stage module::

    from brandsafety.openai_retry import retry_with_backoff

    result = await retry_with_backoff(
        lambda: classify_once(item),
        max_attempts=3,
        base_delay=0.4,
    )

Delay before attempt ``n + 1`` is ``base_delay * 2**n`` (``n`` starting at
1), capped at ``max_delay``.

This module does NOT:
    - Create or manage OpenAI client instances
    - Parse or validate model responses
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from brandsafety.config import MAX_RETRIES, RETRY_BASE_DELAY

logger = logging.getLogger("brandsafety.openai_retry")

T = TypeVar("T")

MAX_DELAY: float = 30.0
BACKOFF_FACTOR: float = 2.0

# HTTP status codes worth retrying on
_RETRYABLE_STATUS_CODES: set[int] = {429, 500, 502, 503, 504}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_transient_error(exc: BaseException) -> bool:
    """Return True if the exception looks like a transient provider error."""
    exc_type = type(exc).__name__
    if exc_type in ("RateLimitError", "APITimeoutError", "APIConnectionError"):
        return True

    if isinstance(exc, asyncio.TimeoutError):
        return True

    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if isinstance(status, int):
        return status in _RETRYABLE_STATUS_CODES

    return False


def backoff_delay(attempt: int, base_delay: float, max_delay: float = MAX_DELAY) -> float:
    """Delay in seconds after the ``attempt``-th failure (1-based)."""
    return min(base_delay * (BACKOFF_FACTOR ** attempt), max_delay)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = MAX_DELAY,
    should_retry: Callable[[BaseException], bool] | None = None,
    label: str = "operation",
) -> T:
    """
    Await ``operation()`` until it succeeds or ``max_attempts`` is reached.

    Args:
        operation:    Zero-argument callable returning a fresh awaitable.
        max_attempts: Total attempts, including the first.
        base_delay:   Base back-off in seconds.
        max_delay:    Cap on a single back-off sleep.
        should_retry: Predicate deciding whether an exception is retryable.
                      ``None`` retries every ``Exception``.
        label:        Name used in log lines.

    Returns:
        The first successful result.

    Raises:
        The last exception once attempts are exhausted, or immediately for
        an exception ``should_retry`` rejects.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    last_exc: Exception | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            last_exc = exc

            if should_retry is not None and not should_retry(exc):
                logger.warning("%s failed with non-retryable error: %s", label, exc)
                raise

            if attempt < max_attempts:
                delay = backoff_delay(attempt, base_delay, max_delay)
                logger.warning(
                    "%s failed (attempt %d/%d): %s — retrying in %.1fs",
                    label, attempt, max_attempts, exc, delay,
                )
                await asyncio.sleep(delay)
            else:
                logger.error(
                    "%s failed after %d attempts: %s", label, max_attempts, exc,
                )

    raise last_exc  # type: ignore[misc]


async def chat_completions_with_retry(
    client: Any,
    max_attempts: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    **kwargs: Any,
) -> Any:
    """
    Call ``await client.chat.completions.create(**kwargs)`` with retry on
    transient errors (429, 5xx, timeouts). Other errors are raised at once.

    Args:
        client:  An instantiated ``openai.AsyncOpenAI`` client.
        **kwargs: Passed directly to ``client.chat.completions.create()``.
    """
    return await retry_with_backoff(
        lambda: client.chat.completions.create(**kwargs),
        max_attempts=max_attempts,
        base_delay=base_delay,
        should_retry=is_transient_error,
        label="OpenAI call",
    )
