"""Tests for retry decorators and retry behavior across call sites.

Verifies that:
- embedding_retry retries on RateLimitError, APITimeoutError, APIConnectionError
  and 5xx responses
- Non-transient errors are raised immediately
- Voyage AI uses built-in max_retries (no external decorator)
- RetryError is converted to EmbeddingError at the call site
- The oracle is never retried
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import openai
import pytest
import tenacity

from taxonomy_cleanup.exceptions import EmbeddingError
from taxonomy_cleanup.utils.retry import embedding_retry, is_transient_error


def _rate_limit_error() -> openai.RateLimitError:
    return openai.RateLimitError(
        message="rate limited",
        response=MagicMock(status_code=429),
        body=None,
    )


class TestRetryPredicates:
    """Tests for retry predicate functions."""

    def test_rate_limit(self) -> None:
        assert is_transient_error(_rate_limit_error()) is True

    def test_timeout(self) -> None:
        exc = openai.APITimeoutError(request=MagicMock())
        assert is_transient_error(exc) is True

    def test_connection(self) -> None:
        exc = openai.APIConnectionError(request=MagicMock())
        assert is_transient_error(exc) is True

    def test_server_error(self) -> None:
        exc = openai.InternalServerError(
            message="overloaded",
            response=MagicMock(status_code=503),
            body=None,
        )
        assert is_transient_error(exc) is True

    def test_bad_request_not_retryable(self) -> None:
        exc = openai.BadRequestError(
            message="bad input",
            response=MagicMock(status_code=400),
            body=None,
        )
        assert is_transient_error(exc) is False

    def test_non_openai_not_retryable(self) -> None:
        assert is_transient_error(ValueError("not retryable")) is False


class TestEmbeddingRetryDecorator:
    """Tests for the embedding_retry decorator."""

    @pytest.mark.asyncio
    async def test_retries_on_rate_limit(self) -> None:
        call_count = 0

        @embedding_retry
        async def flaky_call() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise _rate_limit_error()
            return "success"

        fast = flaky_call.retry_with(wait=tenacity.wait_none())
        result = await fast()
        assert result == "success"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_raises_retry_error_after_max_attempts(self) -> None:
        call_count = 0

        @embedding_retry
        async def always_fails() -> str:
            nonlocal call_count
            call_count += 1
            raise _rate_limit_error()

        fast = always_fails.retry_with(wait=tenacity.wait_none())
        with pytest.raises(tenacity.RetryError):
            await fast()
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_does_not_retry_non_retryable(self) -> None:
        call_count = 0

        @embedding_retry
        async def bad_call() -> str:
            nonlocal call_count
            call_count += 1
            raise ValueError("not retryable")

        with pytest.raises(ValueError, match="not retryable"):
            await bad_call()
        assert call_count == 1


class TestOpenAIEmbeddingsRetry:
    """Tests that OpenAIEmbeddings uses retry correctly."""

    def _make_embedder(self):
        from taxonomy_cleanup.embeddings import OpenAIEmbeddings

        return OpenAIEmbeddings(api_key="sk-test")

    def test_client_reuse(self) -> None:
        embedder = self._make_embedder()
        assert hasattr(embedder, "_client")

    def test_call_openai_has_retry(self) -> None:
        embedder = self._make_embedder()
        assert hasattr(embedder._call_openai, "retry")

    @pytest.mark.asyncio
    async def test_retry_error_becomes_embedding_error(self) -> None:
        embedder = self._make_embedder()
        embedder._call_openai = AsyncMock(side_effect=tenacity.RetryError(None))

        with pytest.raises(EmbeddingError, match="retries exhausted"):
            await embedder.embed_batch(["Travel"])


class TestVoyageRetry:
    """Tests that VoyageAIEmbeddings uses built-in Voyage AI retry."""

    def test_max_retries_passed(self) -> None:
        """Verify AsyncClient is created with max_retries=3."""
        from taxonomy_cleanup.embeddings import VoyageAIEmbeddings

        with patch("voyageai.AsyncClient") as mock_cls:
            VoyageAIEmbeddings()
            mock_cls.assert_called_once_with(max_retries=3)

    def test_no_tenacity_decorator(self) -> None:
        from taxonomy_cleanup.embeddings import VoyageAIEmbeddings

        with patch("voyageai.AsyncClient"):
            embedder = VoyageAIEmbeddings()
        assert not hasattr(embedder.embed_batch, "retry")


class TestOracleNotRetried:
    """The oracle is single-shot."""

    def test_no_retry_decorator(self) -> None:
        from taxonomy_cleanup.oracle import CategoryOracle

        oracle = CategoryOracle(openai_api_key="sk-test")
        assert not hasattr(oracle._complete_json, "retry")
        assert not hasattr(oracle.merge_similar_clusters, "retry")
