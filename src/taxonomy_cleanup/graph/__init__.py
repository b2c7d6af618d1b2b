"""Graph storage for categories, memberships and backup checkpoints.

This package provides:
- CategoryStore: category and membership queries/mutations
- BackupManager: pre-run checkpoints and manual restore
- ConstraintManager: schema constraints and indexes
"""

from taxonomy_cleanup.graph.backup import BackupManager, BackupSummary
from taxonomy_cleanup.graph.constraints import ConstraintManager, create_all_constraints
from taxonomy_cleanup.graph.store import CategoryStore

__all__ = [
    "BackupManager",
    "BackupSummary",
    "CategoryStore",
    "ConstraintManager",
    "create_all_constraints",
]
