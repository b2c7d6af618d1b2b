"""Embedding providers for category names.

This package provides:
- OpenAIEmbeddings: OpenAI embeddings with batch-level retry
- VoyageAIEmbeddings: Voyage AI embeddings with client-side retry
- create_embedder: Factory selecting the provider from settings
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from taxonomy_cleanup.embeddings.base import Embedder
from taxonomy_cleanup.embeddings.openai_embedder import OpenAIEmbeddings
from taxonomy_cleanup.embeddings.voyage import VoyageAIEmbeddings
from taxonomy_cleanup.exceptions import ConfigurationError

if TYPE_CHECKING:
    from taxonomy_cleanup.config import CleanupSettings


def create_embedder(settings: CleanupSettings) -> Embedder:
    """Create the embedder configured in settings.

    Args:
        settings: Cleanup settings.

    Returns:
        Embedder for the configured provider.

    Raises:
        ConfigurationError: If the provider is unknown or its API key is missing.
    """
    if settings.embedding_provider == "voyage":
        if not settings.voyage_api_key:
            msg = "VOYAGE_API_KEY is required for the voyage embedding provider"
            raise ConfigurationError(msg)
        return VoyageAIEmbeddings(
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
            api_key=settings.voyage_api_key,
        )

    if settings.embedding_provider == "openai":
        if not settings.openai_api_key:
            msg = "OPENAI_API_KEY is required for the openai embedding provider"
            raise ConfigurationError(msg)
        return OpenAIEmbeddings(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
        )

    msg = f"Unknown embedding provider: {settings.embedding_provider}"
    raise ConfigurationError(msg)


__all__ = [
    "Embedder",
    "OpenAIEmbeddings",
    "VoyageAIEmbeddings",
    "create_embedder",
]
