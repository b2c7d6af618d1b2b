"""Tests for the command-line interface."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from taxonomy_cleanup import cli
from tests.conftest import MockDriver, MockSession


def _category_row(name: str, post_count: int) -> dict:
    return {
        "id": f"cat-{name.lower()}",
        "name": name,
        "embedding": None,
        "is_parent": False,
        "parent_id": None,
        "description": None,
        "post_count": post_count,
    }


class TestParser:
    """Tests for argument parsing."""

    def test_run_arguments(self) -> None:
        parser = cli._create_parser()
        args = parser.parse_args(["run", "--min-posts", "5", "--no-reassign-orphans"])

        assert args.command == "run"
        assert args.min_posts == 5
        assert args.no_reassign_orphans is True

    def test_analyze_defaults(self) -> None:
        args = cli._create_parser().parse_args(["analyze", "-m", "3"])

        assert args.min_posts == 3
        assert args.limit == 50

    def test_threshold_required(self) -> None:
        with pytest.raises(SystemExit):
            cli._create_parser().parse_args(["run"])

    def test_restore_takes_backup_id(self) -> None:
        args = cli._create_parser().parse_args(["restore", "b-123"])
        assert args.backup_id == "b-123"


class TestMain:
    """Tests for main()."""

    def test_no_command_exits(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.argv", ["taxonomy-cleanup"])

        with pytest.raises(SystemExit) as exc_info:
            cli.main()

        assert exc_info.value.code == 1

    def test_missing_password_exits(
        self,
        mock_env_vars: dict[str, str],
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setenv("NEO4J_PASSWORD", "")
        monkeypatch.setattr("sys.argv", ["taxonomy-cleanup", "backups"])

        with pytest.raises(SystemExit) as exc_info:
            cli.main()

        assert exc_info.value.code == 1
        assert "Neo4j configuration missing" in capsys.readouterr().out

    def test_analyze(
        self,
        mock_env_vars: dict[str, str],
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        session = MockSession()
        session.set_default_result(
            [_category_row("Travel", 10), _category_row("Outfits", 2), _category_row("outfit", 1)]
        )
        monkeypatch.setattr("sys.argv", ["taxonomy-cleanup", "analyze", "--min-posts", "4"])

        with patch(
            "taxonomy_cleanup.cli.create_async_neo4j_driver",
            return_value=MockDriver(session),
        ):
            cli.main()

        out = capsys.readouterr().out
        assert "Keep: 1" in out
        assert "Delete: 2" in out
        assert "#Outfits" in out
        assert all("CREATE" not in query for query, _ in session.queries)
