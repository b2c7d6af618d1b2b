"""Shared retry decorators for provider API calls.

Embedding batches are retried on transient OpenAI errors. Oracle calls are
deliberately not decorated: a failed merge or hierarchy call aborts the run.

Note: Voyage AI's client has built-in retry (``max_retries`` parameter) and
should NOT use these decorators to avoid double-retry cascades.
"""

from __future__ import annotations

import logging

import openai
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

# tenacity's before_sleep_log requires a stdlib logger, NOT structlog.
# See: https://tenacity.readthedocs.io/en/latest/#before-and-after-retry
_tenacity_logger = logging.getLogger("taxonomy_cleanup.retry")

RETRYABLE_OPENAI_ERRORS = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
)


def is_transient_error(exc: BaseException) -> bool:
    """Check if an exception is a transient provider error.

    Covers OpenAI rate limits, timeouts and connection failures, plus 5xx
    responses which the embeddings endpoint returns under load.

    Args:
        exc: The exception to inspect.

    Returns:
        True if the call is worth retrying.
    """
    if isinstance(exc, RETRYABLE_OPENAI_ERRORS):
        return True
    return isinstance(exc, openai.InternalServerError)


embedding_retry = retry(
    retry=retry_if_exception(is_transient_error),
    stop=stop_after_attempt(3),
    wait=wait_random_exponential(multiplier=2, min=1, max=60),
    before_sleep=before_sleep_log(_tenacity_logger, logging.WARNING),
)
"""Retry decorator for batched ``AsyncOpenAI`` embedding calls.

3 attempts, random exponential backoff capped at 60s. Raises
``tenacity.RetryError`` once attempts are exhausted.
"""
