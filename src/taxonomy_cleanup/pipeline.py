"""Cleanup pipeline orchestration.

``CleanupPipeline.run`` executes the consolidation steps strictly in order
against one ``RunContext``. ``CleanupRunner`` owns at most one background
run and exposes its state through ``status()`` for polling.

Steps:
    Analyze -> (dry run stops here) -> Backup -> Convert to hashtags ->
    Delete low-count -> Normalize casing -> Pre-cluster by stem ->
    Execute pre-cluster merges -> Generate embeddings -> Repair orphans ->
    Cluster by embedding -> Oracle merge -> Execute semantic merges ->
    Oracle hierarchy -> Apply hierarchy -> Handle parent-only posts -> Done

An exception aborts the run and leaves the store as it is at that point.
Recovery is a manual restore of the backup taken in the Backup step.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, Field
import structlog

from taxonomy_cleanup.config import CleanupConfig, CleanupSettings, create_async_neo4j_driver
from taxonomy_cleanup.consolidation.clustering import (
    cluster_by_embedding,
    generate_category_embeddings,
)
from taxonomy_cleanup.consolidation.hierarchy import HierarchyApplier, OrphanParentPostHandler
from taxonomy_cleanup.consolidation.merge import (
    MergeExecutor,
    build_semantic_merge_actions,
    persist_name_updates,
)
from taxonomy_cleanup.consolidation.orphans import OrphanRepairer
from taxonomy_cleanup.consolidation.pre_cluster import plan_title_case_updates, pre_cluster_by_stem
from taxonomy_cleanup.consolidation.threshold import (
    HashtagConverter,
    delete_categories,
    partition_by_post_count,
)
from taxonomy_cleanup.exceptions import CleanupInProgressError
from taxonomy_cleanup.models import (
    AnalysisResult,
    Category,
    CleanupResult,
    Cluster,
    ClusterMergeResponse,
    HierarchyProposal,
)

if TYPE_CHECKING:
    from neo4j import AsyncDriver

    from taxonomy_cleanup.consolidation.hierarchy import HierarchyOutcome
    from taxonomy_cleanup.embeddings.base import Embedder
    from taxonomy_cleanup.graph.backup import BackupManager
    from taxonomy_cleanup.graph.store import CategoryStore

logger = structlog.get_logger(__name__)

ProgressSink = Callable[[str, str, int], None]


class CleanupStep(str, Enum):
    """Pipeline steps in execution order."""

    ANALYZE = "analyze"
    BACKUP = "backup"
    CONVERT_TO_HASHTAGS = "convert_to_hashtags"
    DELETE_LOW_COUNT = "delete_low_count"
    NORMALIZE_CASING = "normalize_casing"
    PRE_CLUSTER_BY_STEM = "pre_cluster_by_stem"
    EXECUTE_PRE_CLUSTER_MERGES = "execute_pre_cluster_merges"
    GENERATE_EMBEDDINGS = "generate_embeddings"
    REPAIR_ORPHANS = "repair_orphans"
    CLUSTER_BY_EMBEDDING = "cluster_by_embedding"
    ORACLE_MERGE_CLUSTERS = "oracle_merge_clusters"
    EXECUTE_SEMANTIC_MERGES = "execute_semantic_merges"
    ORACLE_BUILD_HIERARCHY = "oracle_build_hierarchy"
    APPLY_HIERARCHY = "apply_hierarchy"
    HANDLE_ORPHAN_PARENT_POSTS = "handle_orphan_parent_posts"
    DONE = "done"


STEP_ORDER: list[CleanupStep] = list(CleanupStep)


def step_percent(step: CleanupStep) -> int:
    """Progress percentage reported when ``step`` starts."""
    index = STEP_ORDER.index(step) + 1
    return round(index / len(STEP_ORDER) * 100)


class CategoryOracleProtocol(Protocol):
    """Reasoning oracle consumed by the pipeline."""

    async def merge_similar_clusters(self, clusters: list[Cluster]) -> ClusterMergeResponse: ...

    async def create_category_hierarchy(self, category_names: list[str]) -> HierarchyProposal: ...


@dataclass
class RunContext:
    """State of one cleanup run, passed through every step.

    Attributes:
        config: Run configuration.
        progress: Optional progress sink.
        step: Step currently executing.
        analysis: Keep/delete partition from the Analyze step.
        to_keep: Keep working set, updated by every mutating step.
        clusters: Embedding clusters sent to the oracle.
        hierarchy: Applied hierarchy.
        result: Counts accumulated so far.
        logs: Progress messages in order.
    """

    config: CleanupConfig
    progress: ProgressSink | None = None
    step: CleanupStep | None = None
    analysis: AnalysisResult | None = None
    to_keep: list[Category] = field(default_factory=list)
    clusters: list[Cluster] = field(default_factory=list)
    hierarchy: HierarchyOutcome | None = None
    result: CleanupResult = field(default_factory=CleanupResult)
    logs: list[str] = field(default_factory=list)

    def report(self, step: CleanupStep, message: str) -> None:
        """Record the start of a step and notify the progress sink.

        Sink failures are logged and otherwise ignored.
        """
        self.step = step
        percent = step_percent(step)
        self.logs.append(message)
        logger.info("Cleanup step", step=step.value, percent=percent, message=message)

        if self.progress is None:
            return
        try:
            self.progress(step.value, message, percent)
        except Exception:
            logger.warning("Progress sink failed", step=step.value, exc_info=True)


class CleanupPipeline:
    """Sequence the consolidation steps against one store.

    Example:
        >>> pipeline = CleanupPipeline(store, backups, embedder, oracle)
        >>> result = await pipeline.run(CleanupConfig(min_post_threshold=5))
    """

    def __init__(
        self,
        store: CategoryStore,
        backups: BackupManager,
        embedder: Embedder,
        oracle: CategoryOracleProtocol,
    ) -> None:
        """Initialize the pipeline.

        Args:
            store: Category store.
            backups: Backup checkpoint manager.
            embedder: Category name embedder.
            oracle: Merge/hierarchy oracle.
        """
        self.store = store
        self.backups = backups
        self.embedder = embedder
        self.oracle = oracle
        self.merger = MergeExecutor(store)

    async def analyze(self, min_post_threshold: int) -> AnalysisResult:
        """Partition the live categories by post count without mutating anything.

        Args:
            min_post_threshold: Minimum post count to keep a category.

        Returns:
            Keep/delete partition.
        """
        categories = await self.store.get_categories()
        analysis = partition_by_post_count(categories, min_post_threshold)
        logger.info(
            "Analyzed categories",
            total=len(categories),
            to_keep=len(analysis.to_keep),
            to_delete=len(analysis.to_delete),
            orphaned_posts=analysis.orphaned_posts,
        )
        return analysis

    async def run(
        self,
        config: CleanupConfig,
        progress: ProgressSink | None = None,
        context: RunContext | None = None,
    ) -> CleanupResult:
        """Run the full cleanup.

        Args:
            config: Run configuration.
            progress: Optional ``(step_key, message, percent)`` callback.
            context: Context to run in; a fresh one is created when omitted.

        Returns:
            Aggregate counts. On a dry run only the analysis counts are set.

        Raises:
            EmbeddingError: If the embedding provider fails.
            OracleError: If an oracle call fails or returns an unusable payload.
        """
        ctx = context or RunContext(config=config, progress=progress)
        result = ctx.result
        result.dry_run = config.dry_run

        try:
            await self._run_steps(ctx)
        except Exception as e:
            logger.error(
                "Cleanup run aborted",
                step=ctx.step.value if ctx.step else None,
                error=str(e),
                error_type=type(e).__name__,
                backup_id=result.backup_id,
            )
            raise

        return result

    async def _run_steps(self, ctx: RunContext) -> None:
        config = ctx.config
        result = ctx.result

        ctx.report(
            CleanupStep.ANALYZE,
            f"Analyzing categories with threshold {config.min_post_threshold}...",
        )
        analysis = await self.analyze(config.min_post_threshold)
        ctx.analysis = analysis
        ctx.to_keep = list(analysis.to_keep)

        if config.dry_run:
            result.deleted_count = len(analysis.to_delete)
            result.hashtags_added = len(analysis.to_delete)
            result.remaining_count = len(analysis.to_keep)
            return

        ctx.report(CleanupStep.BACKUP, "Creating cleanup backup...")
        result.backup_id = await self.backups.create_backup()

        ctx.report(
            CleanupStep.CONVERT_TO_HASHTAGS,
            f"Preserving {len(analysis.to_delete)} category names as hashtags on their posts...",
        )
        hashtag_stats = await HashtagConverter(self.store).convert(analysis.to_delete)
        result.hashtags_added = hashtag_stats["categories_converted"]
        result.failed_items += hashtag_stats["errors"]

        ctx.report(
            CleanupStep.DELETE_LOW_COUNT,
            f"Deleting {len(analysis.to_delete)} low-count categories...",
        )
        delete_stats = await delete_categories(self.store, analysis.to_delete)
        result.deleted_count = delete_stats["deleted"]
        result.failed_items += delete_stats["errors"]

        ctx.report(
            CleanupStep.NORMALIZE_CASING,
            f"Normalizing capitalization of {len(ctx.to_keep)} categories...",
        )
        updates = plan_title_case_updates(ctx.to_keep)
        outcome = await persist_name_updates(self.store, ctx.to_keep, updates)
        ctx.to_keep = outcome.categories
        result.merged_count += outcome.merged_count
        result.failed_items += outcome.failed_items

        ctx.report(CleanupStep.PRE_CLUSTER_BY_STEM, "Pre-clustering obvious duplicates...")
        actions = pre_cluster_by_stem(ctx.to_keep)

        ctx.report(
            CleanupStep.EXECUTE_PRE_CLUSTER_MERGES,
            f"Merging {sum(len(a.merge) for a in actions)} duplicate categories...",
        )
        if actions:
            outcome = await self.merger.execute(ctx.to_keep, actions)
            ctx.to_keep = outcome.categories
            result.merged_count += outcome.merged_count
            result.failed_items += outcome.failed_items

        ctx.report(
            CleanupStep.GENERATE_EMBEDDINGS,
            f"Generating embeddings for {len(ctx.to_keep)} categories...",
        )
        embed_stats = await generate_category_embeddings(self.store, self.embedder, ctx.to_keep)
        result.failed_items += embed_stats["errors"]

        if config.reassign_orphans:
            ctx.report(CleanupStep.REPAIR_ORPHANS, "Reassigning posts left without categories...")
            repair_stats = await OrphanRepairer(self.store).repair(ctx.to_keep)
            result.orphans_reassigned = repair_stats["reassigned"]
            result.failed_items += repair_stats["errors"]
        else:
            ctx.report(CleanupStep.REPAIR_ORPHANS, "Skipping orphan reassignment (disabled)")

        ctx.report(
            CleanupStep.CLUSTER_BY_EMBEDDING,
            f"Clustering {len(ctx.to_keep)} categories by embedding similarity...",
        )
        ctx.clusters = cluster_by_embedding(ctx.to_keep)

        ctx.report(
            CleanupStep.ORACLE_MERGE_CLUSTERS,
            f"Identifying semantic merges across {len(ctx.clusters)} clusters...",
        )
        merge_response = await self.oracle.merge_similar_clusters(ctx.clusters)

        ctx.report(
            CleanupStep.EXECUTE_SEMANTIC_MERGES,
            f"Applying {len(merge_response.merges)} semantic merges...",
        )
        semantic_actions = build_semantic_merge_actions(merge_response, ctx.clusters, ctx.to_keep)
        if semantic_actions:
            outcome = await self.merger.execute(ctx.to_keep, semantic_actions)
            ctx.to_keep = outcome.categories
            result.merged_count += outcome.merged_count
            result.failed_items += outcome.failed_items

        ctx.report(
            CleanupStep.ORACLE_BUILD_HIERARCHY,
            f"Generating taxonomy from {len(ctx.to_keep)} categories...",
        )
        proposal = await self.oracle.create_category_hierarchy([c.name for c in ctx.to_keep])

        ctx.report(CleanupStep.APPLY_HIERARCHY, "Applying parent/child relationships...")
        hierarchy = await HierarchyApplier(self.store).apply(ctx.to_keep, proposal)
        ctx.hierarchy = hierarchy
        result.failed_items += hierarchy.failed_items

        ctx.report(
            CleanupStep.HANDLE_ORPHAN_PARENT_POSTS, "Handling posts with parent-only categories..."
        )
        parent_post_stats = await OrphanParentPostHandler(self.store).handle(hierarchy.parents)
        result.other_categories_created = parent_post_stats["other_categories_created"]
        result.failed_items += parent_post_stats["errors"]

        result.remaining_count = len(ctx.to_keep)
        result.parent_count = hierarchy.parent_count
        result.child_count = hierarchy.child_count + result.other_categories_created

        ctx.report(CleanupStep.DONE, "Cleanup complete!")


# =============================================================================
# BACKGROUND RUNNER
# =============================================================================


class RunState(str, Enum):
    """Lifecycle of the runner's current run."""

    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


class RunStatus(BaseModel):
    """Snapshot of the runner state for polling."""

    status: RunState = RunState.IDLE
    step: str | None = None
    progress: int = 0
    logs: list[str] = Field(default_factory=list)
    result: CleanupResult | None = None
    error: str | None = None


class CleanupRunner:
    """Own at most one background cleanup run.

    Example:
        >>> runner = CleanupRunner(pipeline)
        >>> runner.start(CleanupConfig(min_post_threshold=5))
        >>> runner.status().status
        <RunState.RUNNING: 'running'>
    """

    def __init__(self, pipeline: CleanupPipeline) -> None:
        self.pipeline = pipeline
        self._task: asyncio.Task | None = None
        self._status = RunStatus()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def status(self) -> RunStatus:
        """Return a copy of the current run state."""
        return self._status.model_copy(deep=True)

    def _on_progress(self, step: str, message: str, percent: int) -> None:
        self._status.step = step
        self._status.progress = percent
        self._status.logs.append(message)

    def start(self, config: CleanupConfig) -> asyncio.Task:
        """Start a cleanup run in the background.

        Must be called from a running event loop.

        Args:
            config: Run configuration.

        Returns:
            The task running the cleanup.

        Raises:
            CleanupInProgressError: If a run is already in progress.
        """
        if self.is_running:
            raise CleanupInProgressError

        self._status = RunStatus(status=RunState.RUNNING)
        self._task = asyncio.get_running_loop().create_task(self._run(config))
        return self._task

    async def wait(self) -> RunStatus:
        """Wait for the current run, if any, and return its final state."""
        if self._task is not None:
            await self._task
        return self.status()

    async def _run(self, config: CleanupConfig) -> CleanupResult | None:
        try:
            result = await self.pipeline.run(config, progress=self._on_progress)
        except asyncio.CancelledError:
            self._status.status = RunState.ERROR
            self._status.error = "Cleanup run cancelled"
            raise
        except Exception as e:
            self._status.status = RunState.ERROR
            self._status.error = str(e)
            return None

        self._status.status = RunState.DONE
        self._status.result = result
        if config.dry_run:
            self._status.progress = 100
        return result


# =============================================================================
# CONVENIENCE ENTRY POINTS
# =============================================================================


def create_pipeline(settings: CleanupSettings, driver: AsyncDriver) -> CleanupPipeline:
    """Wire a pipeline from settings and an open driver.

    Args:
        settings: Cleanup settings.
        driver: Neo4j async driver.

    Returns:
        Pipeline using the Neo4j store, the configured embedder and the
        OpenAI oracle.

    Raises:
        ConfigurationError: If the embedding provider is misconfigured.
    """
    from taxonomy_cleanup.embeddings import create_embedder
    from taxonomy_cleanup.graph.backup import BackupManager
    from taxonomy_cleanup.graph.store import CategoryStore
    from taxonomy_cleanup.oracle.client import CategoryOracle

    return CleanupPipeline(
        store=CategoryStore(driver, settings.neo4j_database),
        backups=BackupManager(driver, settings.neo4j_database),
        embedder=create_embedder(settings),
        oracle=CategoryOracle(openai_api_key=settings.openai_api_key, model=settings.oracle_model),
    )


async def run_cleanup(
    min_post_threshold: int,
    reassign_orphans: bool = True,
    dry_run: bool = False,
    settings: CleanupSettings | None = None,
    progress: ProgressSink | None = None,
) -> CleanupResult:
    """Run one cleanup against the database configured in the environment.

    Args:
        min_post_threshold: Minimum post count to keep a category.
        reassign_orphans: Whether orphaned posts are reassigned.
        dry_run: Stop after analysis without mutating anything.
        settings: Settings to use; read from the environment when omitted.
        progress: Optional progress sink.

    Returns:
        Aggregate counts of the run.
    """
    config = CleanupConfig(
        min_post_threshold=min_post_threshold,
        reassign_orphans=reassign_orphans,
        dry_run=dry_run,
    )
    settings = settings or CleanupSettings.from_env()

    driver = create_async_neo4j_driver(settings)
    try:
        pipeline = create_pipeline(settings, driver)
        return await pipeline.run(config, progress=progress)
    finally:
        await driver.close()
