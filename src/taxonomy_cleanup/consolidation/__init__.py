"""Category consolidation steps.

This package provides:
- normalizer: comparison keys, stemming, title-case display names, hashtags
- threshold: keep/delete partition, hashtag conversion, low-count deletion
- pre_cluster: casing normalization plan, stem-based pre-clustering
- clustering: category embeddings, cosine similarity, seed clustering
- merge: merge execution, casing persistence, oracle merge derivation
- orphans: nearest-category repair for orphaned posts
- hierarchy: parent/child application, "Other <Parent>" handling
"""

from taxonomy_cleanup.consolidation.clustering import (
    cluster_by_embedding,
    cosine_similarity,
    find_most_similar_category,
    generate_category_embeddings,
)
from taxonomy_cleanup.consolidation.hierarchy import (
    AppliedParent,
    HierarchyApplier,
    HierarchyOutcome,
    OrphanParentPostHandler,
)
from taxonomy_cleanup.consolidation.merge import (
    MergeExecutor,
    MergeOutcome,
    build_semantic_merge_actions,
    persist_name_updates,
)
from taxonomy_cleanup.consolidation.normalizer import (
    category_to_hashtag,
    ends_with_plural_s,
    format_category_name,
    normalize_for_comparison,
    sanitize_category_name,
    stem_word,
    to_title_case,
)
from taxonomy_cleanup.consolidation.orphans import OrphanRepairer
from taxonomy_cleanup.consolidation.pre_cluster import plan_title_case_updates, pre_cluster_by_stem
from taxonomy_cleanup.consolidation.threshold import (
    HashtagConverter,
    delete_categories,
    partition_by_post_count,
)

__all__ = [
    "AppliedParent",
    "HashtagConverter",
    "HierarchyApplier",
    "HierarchyOutcome",
    "MergeExecutor",
    "MergeOutcome",
    "OrphanParentPostHandler",
    "OrphanRepairer",
    "build_semantic_merge_actions",
    "category_to_hashtag",
    "cluster_by_embedding",
    "cosine_similarity",
    "delete_categories",
    "ends_with_plural_s",
    "find_most_similar_category",
    "format_category_name",
    "generate_category_embeddings",
    "normalize_for_comparison",
    "partition_by_post_count",
    "persist_name_updates",
    "plan_title_case_updates",
    "pre_cluster_by_stem",
    "sanitize_category_name",
    "stem_word",
    "to_title_case",
]
