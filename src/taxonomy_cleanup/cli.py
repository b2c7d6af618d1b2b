"""Command-line interface for the taxonomy cleanup pipeline.

Commands:

1. `taxonomy-cleanup analyze`: Dry run, show which categories would be
   converted to hashtags and deleted at a threshold
2. `taxonomy-cleanup run`: Run the full cleanup with live progress
3. `taxonomy-cleanup backups`: List backup checkpoints
4. `taxonomy-cleanup restore`: Restore a backup checkpoint
5. `taxonomy-cleanup init-schema`: Create constraints and indexes
"""

from __future__ import annotations

import argparse
import asyncio

from dotenv import load_dotenv
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from .config import CleanupConfig, CleanupSettings, create_async_neo4j_driver
from .exceptions import CleanupError, Neo4jConfigError
from .models import CleanupResult

console = Console()

POLL_INTERVAL_SECONDS = 0.5


def _add_threshold_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-m",
        "--min-posts",
        type=int,
        required=True,
        help="Minimum post count for a category to survive",
    )


def _create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taxonomy-cleanup",
        description="Consolidate post categories into a two-level taxonomy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  taxonomy-cleanup analyze --min-posts 5      # Preview deletions
  taxonomy-cleanup run --min-posts 5          # Run the cleanup
  taxonomy-cleanup backups                    # List checkpoints
  taxonomy-cleanup restore <backup-id>        # Undo a run

Required environment variables:
  NEO4J_URI          - Database URI (e.g., bolt://localhost:7687)
  NEO4J_USERNAME     - Database username (default: neo4j)
  NEO4J_PASSWORD     - Database password
  OPENAI_API_KEY     - For the oracle and OpenAI embeddings
  VOYAGE_API_KEY     - Only with EMBEDDING_PROVIDER=voyage
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Show what a cleanup would delete, without changing anything",
    )
    _add_threshold_argument(analyze_parser)
    analyze_parser.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum categories to list (default: 50)",
    )

    run_parser = subparsers.add_parser(
        "run",
        help="Run the full cleanup",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
Run the cleanup:

  1. Back up categories, memberships and hashtags
  2. Convert low-count categories to hashtags and delete them
  3. Normalize casing and merge obvious duplicates
  4. Embed category names and reassign orphaned posts
  5. Merge semantic duplicates and build a parent/child hierarchy
        """,
    )
    _add_threshold_argument(run_parser)
    run_parser.add_argument(
        "--no-reassign-orphans",
        action="store_true",
        help="Leave posts without categories instead of reassigning them",
    )

    subparsers.add_parser("backups", help="List backup checkpoints, newest first")

    restore_parser = subparsers.add_parser("restore", help="Restore a backup checkpoint")
    restore_parser.add_argument("backup_id", help="Checkpoint ID from 'backups'")

    subparsers.add_parser("init-schema", help="Create constraints and indexes")

    return parser


def _print_result(result: CleanupResult) -> None:
    table = Table(title="Cleanup Summary", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Categories deleted", str(result.deleted_count))
    table.add_row("Hashtags added", str(result.hashtags_added))
    table.add_row("Categories remaining", str(result.remaining_count))
    table.add_row("Parents", str(result.parent_count))
    table.add_row("Children", str(result.child_count))
    if not result.dry_run:
        table.add_row("Categories merged", str(result.merged_count))
        table.add_row("Orphans reassigned", str(result.orphans_reassigned))
        table.add_row("'Other' categories created", str(result.other_categories_created))
        table.add_row("Failed items", str(result.failed_items))
        table.add_row("Backup ID", result.backup_id or "-")
    console.print(table)


async def _run_analyze_command(args: argparse.Namespace, settings: CleanupSettings) -> None:
    from .consolidation.normalizer import category_to_hashtag
    from .consolidation.threshold import partition_by_post_count
    from .graph import CategoryStore

    config = CleanupConfig(min_post_threshold=args.min_posts, dry_run=True)
    driver = create_async_neo4j_driver(settings)
    try:
        store = CategoryStore(driver, settings.neo4j_database)
        analysis = partition_by_post_count(
            await store.get_categories(), config.min_post_threshold
        )
    finally:
        await driver.close()

    console.print(f"[bold cyan]Analysis at threshold {config.min_post_threshold}[/]")
    console.print(f"Keep: [green]{len(analysis.to_keep)}[/]")
    console.print(f"Delete: [red]{len(analysis.to_delete)}[/]")
    console.print(f"Post links converted to hashtags: {analysis.orphaned_posts}")
    console.print()

    if analysis.to_delete:
        table = Table(title="Categories to delete")
        table.add_column("Name")
        table.add_column("Posts", justify="right")
        table.add_column("Hashtag", style="magenta")

        for category in analysis.to_delete[: args.limit]:
            hashtag = category_to_hashtag(category.name)
            table.add_row(
                category.name,
                str(category.post_count),
                f"#{hashtag}" if hashtag else "-",
            )
        console.print(table)
        if len(analysis.to_delete) > args.limit:
            console.print(f"... and {len(analysis.to_delete) - args.limit} more")


async def _run_cleanup_command(args: argparse.Namespace, settings: CleanupSettings) -> None:
    from .pipeline import CleanupRunner, RunState, create_pipeline

    config = CleanupConfig(
        min_post_threshold=args.min_posts,
        reassign_orphans=not args.no_reassign_orphans,
    )

    console.print("[bold cyan]Category Cleanup[/]")
    console.print(f"Database: {settings.neo4j_uri}")
    console.print(f"Embeddings: {settings.embedding_provider} ({settings.embedding_model})")
    console.print()

    driver = create_async_neo4j_driver(settings)
    try:
        runner = CleanupRunner(create_pipeline(settings, driver))

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Starting...", total=100)
            runner.start(config)
            shown_logs = 0

            while runner.is_running:
                await asyncio.sleep(POLL_INTERVAL_SECONDS)
                status = runner.status()
                for message in status.logs[shown_logs:]:
                    progress.console.print(f"  {message}")
                shown_logs = len(status.logs)
                progress.update(task, completed=status.progress, description=status.step or "")

            status = await runner.wait()
            for message in status.logs[shown_logs:]:
                progress.console.print(f"  {message}")
            progress.update(task, completed=status.progress)
    finally:
        await driver.close()

    console.print()
    if status.status == RunState.ERROR:
        console.print(f"[red]Cleanup failed at step {status.step}: {status.error}[/]")
        console.print("Restore the pre-run backup with: [cyan]taxonomy-cleanup restore <id>[/]")
        raise SystemExit(1)

    console.print("[green]Cleanup complete![/]")
    _print_result(status.result)


async def _run_backups_command(settings: CleanupSettings) -> None:
    from .graph import BackupManager

    driver = create_async_neo4j_driver(settings)
    try:
        backups = await BackupManager(driver, settings.neo4j_database).list_backups()
    finally:
        await driver.close()

    if not backups:
        console.print("[yellow]No backups found[/]")
        return

    table = Table(title="Cleanup Backups")
    table.add_column("ID", style="cyan")
    table.add_column("Created")
    table.add_column("Categories", justify="right")
    table.add_column("Memberships", justify="right")
    for backup in backups:
        table.add_row(
            backup.id,
            backup.created_at,
            str(backup.category_count),
            str(backup.membership_count),
        )
    console.print(table)


async def _run_restore_command(args: argparse.Namespace, settings: CleanupSettings) -> None:
    from .graph import BackupManager

    driver = create_async_neo4j_driver(settings)
    try:
        stats = await BackupManager(driver, settings.neo4j_database).restore_backup(args.backup_id)
    finally:
        await driver.close()

    console.print(f"[green]Restored backup {args.backup_id}[/]")
    for key, value in stats.items():
        console.print(f"  - {key.replace('_', ' ').capitalize()}: {value}")


async def _run_init_schema_command(settings: CleanupSettings) -> None:
    from .graph import create_all_constraints

    driver = create_async_neo4j_driver(settings)
    try:
        stats = await create_all_constraints(driver, settings.neo4j_database)
    finally:
        await driver.close()

    console.print(
        f"[green]Created {stats['uniqueness_constraints']} constraints "
        f"and {stats['indexes']} indexes[/]"
    )
    for error in stats["errors"]:
        console.print(f"[red]  {error}[/]")


def main() -> None:
    """Run the taxonomy cleanup CLI."""
    # Load .env file for API keys
    load_dotenv()

    parser = _create_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        raise SystemExit(1)

    try:
        settings = CleanupSettings.from_env()

        if args.command == "analyze":
            asyncio.run(_run_analyze_command(args, settings))
        elif args.command == "run":
            asyncio.run(_run_cleanup_command(args, settings))
        elif args.command == "backups":
            asyncio.run(_run_backups_command(settings))
        elif args.command == "restore":
            asyncio.run(_run_restore_command(args, settings))
        elif args.command == "init-schema":
            asyncio.run(_run_init_schema_command(settings))
    except Neo4jConfigError:
        console.print("\n[red]Error: Neo4j configuration missing[/]")
        console.print("Set: [cyan]NEO4J_URI, NEO4J_USERNAME, NEO4J_PASSWORD[/]")
        raise SystemExit(1) from None
    except CleanupError as e:
        console.print(f"\n[red]Error: {e}[/]")
        raise SystemExit(1) from None
    except KeyboardInterrupt:
        console.print("\n[yellow]Cleanup interrupted by user[/]")
        raise SystemExit(1) from None
    except Exception as e:
        console.print(f"\n[red]Error: {e}[/]")
        raise SystemExit(1) from None


if __name__ == "__main__":
    main()
