"""Configuration for the taxonomy cleanup pipeline.

Holds the per-run configuration, connection settings read from the
environment, and the fixed tuning constants of the consolidation steps.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Any

from .exceptions import ConfigurationError, Neo4jConfigError

# Cosine similarity a category needs with a cluster seed to join its cluster
SIMILARITY_THRESHOLD = 0.78

# Batch sizes bound concurrent store load and provider round-trips
HASHTAG_BATCH_SIZE = 50
DELETE_BATCH_SIZE = 50
EMBEDDING_BATCH_SIZE = 100

# Placeholder name for labels that sanitize to nothing
DEFAULT_CATEGORY_NAME = "General"

EMBEDDING_PROVIDERS = ("openai", "voyage")


@dataclass
class CleanupConfig:
    """Configuration for a single cleanup run.

    Attributes:
        min_post_threshold: Categories with fewer posts are converted to hashtags
            and soft-deleted.
        reassign_orphans: Whether posts left without categories are reassigned
            to their nearest surviving category.
        dry_run: Stop after the analysis step without mutating the store.
    """

    min_post_threshold: int
    reassign_orphans: bool = True
    dry_run: bool = False

    def __post_init__(self) -> None:
        """Validate the threshold.

        Raises:
            ConfigurationError: If the threshold is not a non-negative integer.
        """
        if isinstance(self.min_post_threshold, bool) or not isinstance(
            self.min_post_threshold, int
        ):
            msg = f"min_post_threshold must be an integer, got {self.min_post_threshold!r}"
            raise ConfigurationError(msg)
        if self.min_post_threshold < 0:
            msg = f"min_post_threshold must be >= 0, got {self.min_post_threshold}"
            raise ConfigurationError(msg)


@dataclass
class CleanupSettings:
    """Connection and provider settings for the cleanup pipeline.

    Attributes:
        neo4j_uri: Neo4j connection URI.
        neo4j_username: Neo4j username.
        neo4j_password: Neo4j password.
        neo4j_database: Neo4j database name.
        openai_api_key: OpenAI API key for the oracle and OpenAI embeddings.
        embedding_provider: "openai" or "voyage". Must match the provider that
            produced the post embeddings already stored in the graph.
        embedding_model: Embedding model name.
        embedding_dimensions: Embedding output dimensions.
        voyage_api_key: Voyage AI API key (only for the voyage provider).
        oracle_model: Chat model used for merge and hierarchy reasoning.
    """

    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_username: str = "neo4j"
    neo4j_password: str = ""
    neo4j_database: str = "neo4j"

    openai_api_key: str = ""
    embedding_provider: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    voyage_api_key: str = ""

    oracle_model: str = "gpt-4o"

    @classmethod
    def from_env(cls) -> CleanupSettings:
        """Create settings from environment variables.

        Reads from standard environment variables:
        - NEO4J_URI, NEO4J_USERNAME, NEO4J_PASSWORD, NEO4J_DATABASE
        - OPENAI_API_KEY, VOYAGE_API_KEY
        - EMBEDDING_PROVIDER, EMBEDDING_MODEL, EMBEDDING_DIMENSIONS, ORACLE_MODEL

        Returns:
            Settings populated from environment.

        Raises:
            Neo4jConfigError: If NEO4J_PASSWORD is missing.
            ConfigurationError: If a provider setting is invalid.
        """
        from dotenv import load_dotenv

        load_dotenv()

        neo4j_password = os.getenv("NEO4J_PASSWORD", "")
        if not neo4j_password:
            raise Neo4jConfigError

        provider = os.getenv("EMBEDDING_PROVIDER", "openai").lower()
        if provider not in EMBEDDING_PROVIDERS:
            msg = f"EMBEDDING_PROVIDER must be one of {EMBEDDING_PROVIDERS}, got {provider!r}"
            raise ConfigurationError(msg)

        dimensions_raw = os.getenv("EMBEDDING_DIMENSIONS", "1536")
        try:
            dimensions = int(dimensions_raw)
        except ValueError:
            msg = f"EMBEDDING_DIMENSIONS must be an integer, got {dimensions_raw!r}"
            raise ConfigurationError(msg) from None

        default_model = "voyage-4" if provider == "voyage" else "text-embedding-3-small"

        return cls(
            neo4j_uri=os.getenv("NEO4J_URI", "bolt://localhost:7687"),
            neo4j_username=os.getenv("NEO4J_USERNAME", "neo4j"),
            neo4j_password=neo4j_password,
            neo4j_database=os.getenv("NEO4J_DATABASE", "neo4j"),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            embedding_provider=provider,
            embedding_model=os.getenv("EMBEDDING_MODEL", default_model),
            embedding_dimensions=dimensions,
            voyage_api_key=os.getenv("VOYAGE_API_KEY", ""),
            oracle_model=os.getenv("ORACLE_MODEL", "gpt-4o"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (excluding sensitive values).

        Returns:
            Dictionary representation with secrets masked.
        """
        return {
            "neo4j_uri": self.neo4j_uri,
            "neo4j_username": self.neo4j_username,
            "neo4j_database": self.neo4j_database,
            "embedding_provider": self.embedding_provider,
            "embedding_model": self.embedding_model,
            "embedding_dimensions": self.embedding_dimensions,
            "oracle_model": self.oracle_model,
            "openai_api_key": "***" if self.openai_api_key else "",
            "voyage_api_key": "***" if self.voyage_api_key else "",
        }


def create_async_neo4j_driver(settings: CleanupSettings) -> Any:
    """Create an async Neo4j driver from settings.

    Args:
        settings: Cleanup settings.

    Returns:
        Async Neo4j driver instance for use with async context managers.
    """
    from neo4j import AsyncGraphDatabase

    return AsyncGraphDatabase.driver(
        settings.neo4j_uri,
        auth=(settings.neo4j_username, settings.neo4j_password),
    )
