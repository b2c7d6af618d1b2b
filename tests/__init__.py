"""Test suite for taxonomy-cleanup.

This package contains tests for all modules:
- test_normalizer: Comparison keys, stemming and title-case display names
- test_pre_cluster / test_merge: Lexical consolidation and merge execution
- test_clustering / test_orphans / test_hierarchy: Embedding-driven steps
- test_store / test_backup / test_constraints: Neo4j queries against mocks
- test_pipeline: Step sequencing and the background runner
"""
