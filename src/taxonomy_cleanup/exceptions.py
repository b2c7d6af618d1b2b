"""Custom exceptions for the taxonomy cleanup pipeline.

Provides a hierarchy of exceptions for different error conditions:
- CleanupError: Base exception for all cleanup errors
- ConfigurationError: Invalid run configuration, raised before any mutation
- Neo4jConfigError: Neo4j environment variables not set
- EmbeddingError: Embedding provider failed after retries
- OracleError: Reasoning oracle unavailable or returned an unusable payload
- CleanupInProgressError: A cleanup run is already active
- BackupNotFoundError: Requested backup checkpoint does not exist
"""


class CleanupError(Exception):
    """Base exception for cleanup errors."""


class ConfigurationError(CleanupError):
    """Invalid run configuration.

    Raised while validating a CleanupConfig, before the store is touched.
    """


class Neo4jConfigError(CleanupError):
    """Neo4j configuration environment variables not set.

    Raised when NEO4J_PASSWORD is missing from the environment.
    """

    def __init__(self) -> None:
        """Initialize Neo4jConfigError."""
        super().__init__(
            "Neo4j configuration missing. "
            "Set NEO4J_URI, NEO4J_USERNAME, and NEO4J_PASSWORD environment variables."
        )


class EmbeddingError(CleanupError):
    """Embedding generation failed.

    Attributes:
        provider: Name of the embedding provider that failed.
    """

    def __init__(self, provider: str, message: str) -> None:
        """Initialize EmbeddingError.

        Args:
            provider: Embedding provider name (e.g., "openai").
            message: Description of what went wrong.
        """
        self.provider = provider
        super().__init__(f"{provider} embedding failed: {message}")


class OracleError(CleanupError):
    """The reasoning oracle failed or returned a malformed response.

    Attributes:
        operation: Oracle operation that failed.
    """

    def __init__(self, operation: str, message: str) -> None:
        """Initialize OracleError.

        Args:
            operation: Oracle operation name (e.g., "merge_similar_clusters").
            message: Description of what went wrong.
        """
        self.operation = operation
        super().__init__(f"Oracle call {operation} failed: {message}")


class CleanupInProgressError(CleanupError):
    """A cleanup run is already in progress.

    Callers should poll the run status instead of starting a second run.
    """

    def __init__(self) -> None:
        """Initialize CleanupInProgressError."""
        super().__init__("A cleanup run is already in progress; poll its status instead")


class BackupNotFoundError(CleanupError):
    """Backup checkpoint not found.

    Attributes:
        backup_id: The backup ID that was requested.
    """

    def __init__(self, backup_id: str) -> None:
        """Initialize BackupNotFoundError.

        Args:
            backup_id: The backup ID that was requested.
        """
        self.backup_id = backup_id
        super().__init__(f"Backup not found: {backup_id}")
