"""Category taxonomy cleanup.

Consolidates the free-text categories attached to posts in a Neo4j graph
into a two-level taxonomy: low-count categories become hashtags, casing and
plural duplicates are merged, semantic duplicates are merged with the help
of an LLM oracle, and the survivors are grouped under parent categories.

Usage:
    from taxonomy_cleanup import run_cleanup
    import asyncio

    # Preview what a threshold would delete
    result = asyncio.run(run_cleanup(min_post_threshold=5, dry_run=True))

    # Full run
    result = asyncio.run(run_cleanup(min_post_threshold=5))

    # Or with more control
    pipeline = CleanupPipeline(store, backups, embedder, oracle)
    runner = CleanupRunner(pipeline)
    runner.start(CleanupConfig(min_post_threshold=5))
"""

# =============================================================================
# CONFIGURATION
# =============================================================================
from .config import (
    SIMILARITY_THRESHOLD,
    CleanupConfig,
    CleanupSettings,
    create_async_neo4j_driver,
)

# Consolidation
from .consolidation import (
    category_to_hashtag,
    cluster_by_embedding,
    cosine_similarity,
    format_category_name,
    normalize_for_comparison,
    pre_cluster_by_stem,
    stem_word,
)

# Embeddings
from .embeddings import Embedder, OpenAIEmbeddings, VoyageAIEmbeddings, create_embedder

# =============================================================================
# EXCEPTIONS
# =============================================================================
from .exceptions import (
    BackupNotFoundError,
    CleanupError,
    CleanupInProgressError,
    ConfigurationError,
    EmbeddingError,
    Neo4jConfigError,
    OracleError,
)

# Graph storage
from .graph import BackupManager, BackupSummary, CategoryStore, ConstraintManager

# =============================================================================
# MODELS
# =============================================================================
from .models import (
    AnalysisResult,
    Category,
    CleanupResult,
    Cluster,
    ClusterMergeResponse,
    HierarchyProposal,
    MergeAction,
    NameUpdate,
    Post,
)

# Oracle
from .oracle import CategoryOracle

# =============================================================================
# PIPELINE
# =============================================================================
from .pipeline import (
    CleanupPipeline,
    CleanupRunner,
    CleanupStep,
    RunState,
    RunStatus,
    create_pipeline,
    run_cleanup,
)

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "SIMILARITY_THRESHOLD",
    "CleanupConfig",
    "CleanupSettings",
    "create_async_neo4j_driver",
    # Exceptions
    "BackupNotFoundError",
    "CleanupError",
    "CleanupInProgressError",
    "ConfigurationError",
    "EmbeddingError",
    "Neo4jConfigError",
    "OracleError",
    # Models
    "AnalysisResult",
    "Category",
    "CleanupResult",
    "Cluster",
    "ClusterMergeResponse",
    "HierarchyProposal",
    "MergeAction",
    "NameUpdate",
    "Post",
    # Consolidation
    "category_to_hashtag",
    "cluster_by_embedding",
    "cosine_similarity",
    "format_category_name",
    "normalize_for_comparison",
    "pre_cluster_by_stem",
    "stem_word",
    # Embeddings
    "Embedder",
    "OpenAIEmbeddings",
    "VoyageAIEmbeddings",
    "create_embedder",
    # Graph storage
    "BackupManager",
    "BackupSummary",
    "CategoryStore",
    "ConstraintManager",
    # Oracle
    "CategoryOracle",
    # Pipeline
    "CleanupPipeline",
    "CleanupRunner",
    "CleanupStep",
    "RunState",
    "RunStatus",
    "create_pipeline",
    "run_cleanup",
    "__version__",
]
