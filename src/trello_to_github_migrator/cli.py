"""
Command-line interface for the Trello to GitHub migration tool.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from typing import TYPE_CHECKING

from . import github_utils as ghu
from .config import load_config
from .exceptions import MigrationError
from .ledger import ProgressLedger
from .orchestrator import STAGE_NAMES, Migrator
from .queries import MemberIndex
from .sanity import check_board
from .snapshot import load_board, statistics
from .utils import setup_logging

if TYPE_CHECKING:
    from .orchestrator import MigrationStats

logger: logging.Logger = logging.getLogger(__name__)


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Migrate a Trello board to GitHub issues and a classic project, resumably"
    )

    # Positional arguments
    _ = parser.add_argument("snapshot", help="Trello board JSON export")

    # Optional arguments with short forms
    _ = parser.add_argument("--config", "-c", required=True, help="Migration config file (JSON)")

    _ = parser.add_argument(
        "--comments", help="JSON array of commentCard actions, used instead of the actions in the export"
    )

    _ = parser.add_argument(
        "--only",
        action="append",
        choices=STAGE_NAMES,
        help="Run only this stage. Can be specified multiple times; stages still run in their usual order.",
    )

    _ = parser.add_argument(
        "--github-pass-token", help="Path for GitHub token in pass utility (default: github/cli/token)"
    )

    _ = parser.add_argument(
        "--verbose", "-v", action="count", default=0, help="Show info logging (-v) or debug logging (-vv)"
    )

    return parser.parse_args(argv)


def print_statistics(title: str, values: dict[str, int]) -> None:
    print(f"{title}:")
    for key, value in values.items():
        print(f"  {key}: {value}")


def print_report(stats: MigrationStats) -> None:
    print("Migration summary:")
    for name, stage_stats in stats.stages.items():
        print(f"  {name}: {stage_stats.created} created, {stage_stats.skipped} already done")
    if stats.orphaned_comments:
        print(f"  orphaned comments skipped: {stats.orphaned_comments}")


def run(args: argparse.Namespace) -> MigrationStats:
    config = load_config(args.config)
    board, tree = load_board(args.snapshot, args.comments)

    members = MemberIndex(board.members, config.members)
    _ = check_board(tree, members.member_ids)

    token = ghu.get_token(args.github_pass_token)
    client = ghu.get_client(token)
    _ = ghu.validate_access(client, config.repo_path)

    print_statistics(f"Board {board.name or board.id}", statistics(board))

    ledger = ProgressLedger(config.progress, flush_on_mark=config.paranoid)
    migrator = Migrator(board, ghu.GitHubApi(client), ledger, config)
    return migrator.migrate(only=args.only)


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)

    # Setup logging
    setup_logging(verbosity=args.verbose)

    try:
        stats = run(args)
    except MigrationError as e:
        logger.error(f"Migration failed: {e}")  # noqa: TRY400
        sys.exit(1)
    except Exception:
        logger.exception("Migration failed")
        sys.exit(1)

    print_report(stats)
    sys.exit(0)
