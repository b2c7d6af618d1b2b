"""Data models for the taxonomy cleanup pipeline.

This module defines Pydantic models for:
- Store records: Category and Post as read from the graph
- Transient values: NameUpdate, MergeAction, Cluster
- Results: AnalysisResult, CleanupResult
- Oracle responses: cluster merge decisions and hierarchy proposals,
  decoded strictly so malformed entries never reach mutation logic
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field, field_validator
import structlog

logger = structlog.get_logger(__name__)


# =============================================================================
# STORE RECORDS
# =============================================================================


class Category(BaseModel):
    """A named label grouping posts.

    Attributes:
        id: Unique category identifier.
        name: Canonical display name (title-cased after normalization).
        post_count: Denormalized count of linked posts.
        embedding: Name embedding, if generated.
        is_parent: Whether this category has been promoted to a parent.
        parent_id: ID of the parent category, if this is a child.
        description: Optional free-text description.
    """

    id: str = Field(description="Unique category identifier")
    name: str = Field(description="Display name")
    post_count: int = Field(default=0, ge=0, description="Linked post count")
    embedding: list[float] | None = Field(default=None, description="Name embedding")
    is_parent: bool = Field(default=False, description="Parent category flag")
    parent_id: str | None = Field(default=None, description="Parent category ID")
    description: str | None = Field(default=None, description="Category description")

    @property
    def has_embedding(self) -> bool:
        """Whether this category carries a non-empty embedding."""
        return bool(self.embedding)


class Post(BaseModel):
    """A content item linked to categories.

    Attributes:
        id: Unique post identifier.
        embedding: Post content embedding, if generated.
        hashtags: Hashtags attached to the post.
    """

    id: str = Field(description="Unique post identifier")
    embedding: list[float] | None = Field(default=None, description="Post embedding")
    hashtags: list[str] = Field(default_factory=list, description="Post hashtags")


# =============================================================================
# TRANSIENT VALUES
# =============================================================================


class NameUpdate(BaseModel):
    """A planned casing change for one category.

    When ``duplicate_of`` is set, the formatted name already belongs to
    another category and this category is merged into it instead of renamed.
    """

    category_id: str
    old_name: str
    new_name: str
    duplicate_of: str | None = None

    @property
    def is_duplicate(self) -> bool:
        """Whether this update collides with an existing name."""
        return self.duplicate_of is not None


class MergeAction(BaseModel):
    """Keep one category and fold the others into it.

    Attributes:
        keep: Surviving category.
        merge: Categories whose posts move onto ``keep`` before soft deletion.
        rename_to: New name for ``keep``, applied before merging.
        reason: Why the merge was proposed (logging only).
    """

    keep: Category
    merge: list[Category] = Field(default_factory=list)
    rename_to: str | None = None
    reason: str = ""


class Cluster(BaseModel):
    """A group of categories judged similar by embedding distance.

    Attributes:
        id: Seed category name, also used as the cluster ID in oracle prompts.
        categories: Member categories, seed first.
    """

    id: str
    categories: list[Category]

    @computed_field
    @property
    def total_post_count(self) -> int:
        """Summed post count of all members."""
        return sum(c.post_count for c in self.categories)

    def to_oracle_payload(self) -> dict[str, Any]:
        """Serialize for the merge prompt (names only, no embeddings)."""
        return {
            "id": self.id,
            "categories": [c.name for c in self.categories],
            "postCount": self.total_post_count,
        }


# =============================================================================
# RESULTS
# =============================================================================


class AnalysisResult(BaseModel):
    """Keep/delete partition of the current categories.

    Attributes:
        to_keep: Categories at or above the threshold.
        to_delete: Categories below the threshold.
        orphaned_posts: Summed post count of the categories to delete.
    """

    to_keep: list[Category]
    to_delete: list[Category]

    @computed_field
    @property
    def orphaned_posts(self) -> int:
        """Post links that would be lost by deleting ``to_delete``."""
        return sum(c.post_count for c in self.to_delete)


class CleanupResult(BaseModel):
    """Aggregate counts reported at the end of a run."""

    deleted_count: int = 0
    hashtags_added: int = 0
    remaining_count: int = 0
    parent_count: int = 0
    child_count: int = 0
    merged_count: int = 0
    orphans_reassigned: int = 0
    other_categories_created: int = 0
    failed_items: int = 0
    backup_id: str | None = None
    dry_run: bool = False


# =============================================================================
# ORACLE RESPONSES
# =============================================================================


class ClusterMerge(BaseModel):
    """One merge decision returned by the oracle."""

    model_config = ConfigDict(populate_by_name=True)

    cluster_ids: list[str] = Field(alias="clusterIds", min_length=1)
    canonical_name: str = Field(alias="canonicalName", min_length=1)
    reason: str = ""

    @field_validator("canonical_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "canonicalName must not be blank"
            raise ValueError(msg)
        return value


class ClusterMergeResponse(BaseModel):
    """Validated response of the cluster merge oracle call."""

    merges: list[ClusterMerge] = Field(default_factory=list)


class HierarchyParent(BaseModel):
    """One proposed parent category with the names of its children."""

    name: str = Field(min_length=1)
    children: list[str] = Field(default_factory=list)
    reason: str = ""

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "parent name must not be blank"
            raise ValueError(msg)
        return value


class HierarchyProposal(BaseModel):
    """Validated response of the hierarchy oracle call."""

    parents: list[HierarchyParent] = Field(default_factory=list)


def _decode_entries(
    payload: Any,
    key: str,
    model: type[BaseModel],
    operation: str,
) -> list[Any]:
    """Decode a list of entries under ``key``, dropping malformed ones.

    Args:
        payload: Parsed JSON payload.
        key: Top-level key holding the entry list.
        model: Model to validate each entry against.
        operation: Oracle operation name for log context.

    Returns:
        Validated entries.

    Raises:
        ValueError: If the payload itself has the wrong shape.
    """
    if not isinstance(payload, dict):
        msg = f"expected a JSON object, got {type(payload).__name__}"
        raise ValueError(msg)

    raw_entries = payload.get(key, [])
    if raw_entries is None:
        raw_entries = []
    if not isinstance(raw_entries, list):
        msg = f"expected '{key}' to be a list, got {type(raw_entries).__name__}"
        raise ValueError(msg)

    entries = []
    for index, raw in enumerate(raw_entries):
        try:
            entries.append(model.model_validate(raw))
        except ValidationError as e:
            logger.warning(
                "Dropping malformed oracle entry",
                operation=operation,
                index=index,
                errors=e.error_count(),
            )
    return entries


def decode_cluster_merge_response(payload: Any) -> ClusterMergeResponse:
    """Decode the raw merge payload into a validated response.

    Args:
        payload: Parsed JSON from the oracle.

    Returns:
        Response containing only well-formed merge entries.

    Raises:
        ValueError: If the payload is not an object with a ``merges`` list.
    """
    merges = _decode_entries(payload, "merges", ClusterMerge, "merge_similar_clusters")
    return ClusterMergeResponse(merges=merges)


def decode_hierarchy_proposal(payload: Any) -> HierarchyProposal:
    """Decode the raw hierarchy payload into a validated proposal.

    Args:
        payload: Parsed JSON from the oracle.

    Returns:
        Proposal containing only well-formed parent entries.

    Raises:
        ValueError: If the payload is not an object with a ``parents`` list.
    """
    parents = _decode_entries(payload, "parents", HierarchyParent, "create_category_hierarchy")
    return HierarchyProposal(parents=parents)
