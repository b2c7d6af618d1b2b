"""Tests for run configuration and environment settings."""

from __future__ import annotations

import pytest

from taxonomy_cleanup.config import CleanupConfig, CleanupSettings
from taxonomy_cleanup.exceptions import ConfigurationError, Neo4jConfigError


class TestCleanupConfig:
    """Tests for CleanupConfig validation."""

    def test_defaults(self) -> None:
        config = CleanupConfig(min_post_threshold=5)
        assert config.reassign_orphans is True
        assert config.dry_run is False

    def test_zero_threshold_allowed(self) -> None:
        assert CleanupConfig(min_post_threshold=0).min_post_threshold == 0

    def test_negative_threshold_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match=">= 0"):
            CleanupConfig(min_post_threshold=-1)

    @pytest.mark.parametrize("value", [True, 2.5, "5", None])
    def test_non_integer_rejected(self, value) -> None:
        with pytest.raises(ConfigurationError, match="must be an integer"):
            CleanupConfig(min_post_threshold=value)


class TestCleanupSettings:
    """Tests for CleanupSettings.from_env."""

    def test_from_env(self, mock_env_vars: dict[str, str]) -> None:
        settings = CleanupSettings.from_env()

        assert settings.neo4j_uri == mock_env_vars["NEO4J_URI"]
        assert settings.neo4j_password == "testpassword"
        assert settings.embedding_provider == "openai"
        assert settings.embedding_model == "text-embedding-3-small"
        assert settings.embedding_dimensions == 1536
        assert settings.oracle_model == "gpt-4o"

    def test_missing_password(
        self, mock_env_vars: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("NEO4J_PASSWORD", "")

        with pytest.raises(Neo4jConfigError):
            CleanupSettings.from_env()

    def test_invalid_provider(
        self, mock_env_vars: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("EMBEDDING_PROVIDER", "cohere")

        with pytest.raises(ConfigurationError, match="EMBEDDING_PROVIDER"):
            CleanupSettings.from_env()

    def test_invalid_dimensions(
        self, mock_env_vars: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("EMBEDDING_DIMENSIONS", "large")

        with pytest.raises(ConfigurationError, match="EMBEDDING_DIMENSIONS"):
            CleanupSettings.from_env()

    def test_voyage_default_model(
        self, mock_env_vars: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("EMBEDDING_PROVIDER", "VOYAGE")
        monkeypatch.setenv("VOYAGE_API_KEY", "vk")

        settings = CleanupSettings.from_env()

        assert settings.embedding_provider == "voyage"
        assert settings.embedding_model == "voyage-4"
        assert settings.voyage_api_key == "vk"

    def test_to_dict_masks_secrets(self) -> None:
        settings = CleanupSettings(neo4j_password="secret", openai_api_key="sk-real")

        data = settings.to_dict()

        assert data["openai_api_key"] == "***"
        assert data["voyage_api_key"] == ""
        assert "neo4j_password" not in data
        assert "secret" not in str(data)
