"""
amdcore/llm_retry.py
=====================
Async OpenAI retry utility — AMD Strategy Core

Provides a thin wrapper around ``await client.chat.completions.create``
that retries transient failures (429 rate-limit, 5xx server errors,
connection errors) with exponential back-off.

Usage::

    from amdcore.llm_retry import chat_completions_with_retry

    response = await chat_completions_with_retry(
        client,
        model="gpt-4o-audio-preview",
        messages=[...],
    )

Back-off is kept short: the caller bounds the whole exchange with its own
detection time box, so retries only ever happen inside that window.

This module does NOT:
    - Create or manage OpenAI client instances
    - Interpret model output
"""

import asyncio
import logging
from typing import Any

logger = logging.getLogger("amdcore.llm_retry")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MAX_RETRIES: int = 2          # total attempts = MAX_RETRIES + 1 (initial)
BASE_DELAY: float = 0.5       # seconds — first back-off delay
MAX_DELAY: float = 4.0        # cap
BACKOFF_FACTOR: float = 2.0   # exponential multiplier

# HTTP status codes worth retrying on
_RETRYABLE_STATUS_CODES: set[int] = {429, 500, 502, 503, 504}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_retryable(exc: Exception) -> bool:
    """Return True if the exception is a transient OpenAI error."""
    exc_type = type(exc).__name__
    if exc_type in ("RateLimitError", "APITimeoutError", "APIConnectionError"):
        return True

    status_code = getattr(exc, "status_code", None)
    if status_code is not None:
        return status_code in _RETRYABLE_STATUS_CODES

    return False


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def chat_completions_with_retry(
    client: Any,
    **kwargs: Any,
) -> Any:
    """
    Await ``client.chat.completions.create(**kwargs)`` with automatic retry.

    Args:
        client:   An instantiated ``openai.AsyncOpenAI`` client.
        **kwargs: Passed directly to ``client.chat.completions.create()``.

    Returns:
        The ChatCompletion response object.

    Raises:
        The first non-retryable exception, or the last one once all
        retries are exhausted.
    """
    delay = BASE_DELAY

    for attempt in range(MAX_RETRIES + 1):
        try:
            return await client.chat.completions.create(**kwargs)
        except Exception as exc:
            if not _is_retryable(exc):
                logger.warning("OpenAI call failed with non-retryable error: %s", exc)
                raise

            if attempt >= MAX_RETRIES:
                logger.error(
                    "OpenAI call failed after %d attempts: %s", MAX_RETRIES + 1, exc,
                )
                raise

            logger.warning(
                "OpenAI call failed (attempt %d/%d): %s — retrying in %.1fs",
                attempt + 1,
                MAX_RETRIES + 1,
                exc,
                delay,
            )
            await asyncio.sleep(delay)
            delay = min(delay * BACKOFF_FACTOR, MAX_DELAY)
