#!/usr/bin/env python3
"""Quick-run script for the category taxonomy cleanup.

This runs the complete cleanup:
1. Back up categories, memberships and hashtags
2. Convert low-count categories to hashtags and delete them
3. Normalize casing and merge plural/casing duplicates
4. Embed category names, reassign orphaned posts, merge semantic duplicates
5. Build the parent/child hierarchy

Usage:
    python run.py

    # Or with UV:
    uv run python run.py

    # Preview only (no changes):
    DRY_RUN=1 python run.py

    # Different threshold:
    MIN_POSTS=10 python run.py
"""

import asyncio
import os
from pathlib import Path

# Add src to path for development
import sys

sys.path.insert(0, str(Path(__file__).parent / "src"))

from taxonomy_cleanup import run_cleanup


def print_progress(step: str, message: str, percent: int) -> None:
    """Print one progress line per step."""
    print(f"[{percent:3d}%] {step}: {message}")


async def main():
    """Run the cleanup with settings from the environment."""
    dry_run = os.getenv("DRY_RUN", "").lower() in ("1", "true", "yes")
    min_posts = int(os.getenv("MIN_POSTS", "5"))

    result = await run_cleanup(
        min_post_threshold=min_posts,
        dry_run=dry_run,
        progress=print_progress,
    )

    print(f"\n{'=' * 60}")
    print("CLEANUP SUMMARY")
    print(f"{'=' * 60}")
    print(f"Threshold: {min_posts}")
    print(f"Categories deleted: {result.deleted_count}")
    print(f"Hashtags added: {result.hashtags_added}")
    print(f"Categories remaining: {result.remaining_count}")
    if dry_run:
        print("\nDry run: no changes were made")
    else:
        print(f"Categories merged: {result.merged_count}")
        print(f"Orphans reassigned: {result.orphans_reassigned}")
        print(f"Parents: {result.parent_count}")
        print(f"Children: {result.child_count}")
        print(f"Failed items: {result.failed_items}")
        print(f"\nBackup ID: {result.backup_id}")


if __name__ == "__main__":
    asyncio.run(main())
