"""
Offline preview of the migration.

Renders every issue and comment the way it would be sent to GitHub and
writes the result to markdown files for review. Nothing is sent anywhere;
the progress ledger is only read, to resolve card links that already have
an issue number.

Usage:
    preview-migration board.json -c config.json [--comments comments.json] [--output-dir DIR]
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Sequence
from operator import attrgetter
from pathlib import Path
from typing import TYPE_CHECKING

from .config import load_config
from .exceptions import MigrationError
from .issue_builder import RenderContext, build_comment_body, build_issue_body
from .ledger import ProgressLedger
from .queries import CardIndex, ChecklistIndex, CommentIndex, MemberIndex, UploadIndex
from .references import remap_links_to_github
from .snapshot import load_board
from .utils import setup_logging

if TYPE_CHECKING:
    from .config import MigrationConfig
    from .models import Board

logger: logging.Logger = logging.getLogger(__name__)

ISSUES_FILE = "preview.md"
COMMENTS_FILE = "preview-comments.md"
SEPARATOR = "\n\n---\n\n"


def render_context(board: Board, config: MigrationConfig) -> RenderContext:
    return RenderContext(
        cards=CardIndex(board.cards),
        members=MemberIndex(board.members, config.members),
        checklists=ChecklistIndex(board.checklists),
        uploads=UploadIndex(board.cards, owner=config.owner, repo=config.repo, ref=config.ref),
    )


def render_issues(board: Board, context: RenderContext) -> str:
    """Title and first-pass body of every card, in issue creation order."""
    sections = [
        f"# {card.name}\n\n{build_issue_body(card, context)}"
        for card in sorted(board.cards, key=attrgetter("id_short"))
    ]
    return SEPARATOR.join(sections) + "\n"


def render_comments(board: Board, context: RenderContext, remap_links: Callable[[str], str]) -> str:
    comments = CommentIndex(board.comments)
    sections: list[str] = []
    for card in sorted(board.cards, key=attrgetter("id_short")):
        for comment in comments.for_card(card.id):
            sections.append(f"# {card.name} ({comment.id})\n\n{build_comment_body(comment, context, remap_links)}")
    return SEPARATOR.join(sections) + "\n"


def write_preview(board: Board, config: MigrationConfig, output_dir: Path) -> tuple[Path, Path]:
    """Write both preview files to ``output_dir`` and return their paths."""
    context = render_context(board, config)
    ledger = ProgressLedger(config.progress, create_missing=False)
    remap_links = remap_links_to_github(context.cards, ledger)

    output_dir.mkdir(parents=True, exist_ok=True)
    issues_path = output_dir / ISSUES_FILE
    comments_path = output_dir / COMMENTS_FILE
    _ = issues_path.write_text(render_issues(board, context), encoding="utf-8")
    _ = comments_path.write_text(render_comments(board, context, remap_links), encoding="utf-8")
    logger.info(f"Wrote preview to {issues_path} and {comments_path}")
    return issues_path, comments_path


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Render the issues and comments a migration would create")
    _ = parser.add_argument("snapshot", help="Trello board JSON export")
    _ = parser.add_argument("--config", "-c", required=True, help="Migration config file (JSON)")
    _ = parser.add_argument("--comments", help="JSON array of commentCard actions")
    _ = parser.add_argument("--output-dir", default=".", help="Directory for the preview files (default: .)")
    _ = parser.add_argument("--verbose", "-v", action="count", default=0)
    args = parser.parse_args(argv)

    setup_logging(verbosity=args.verbose, log_file=None)

    try:
        config = load_config(args.config)
        board, _tree = load_board(args.snapshot, args.comments)
        issues_path, comments_path = write_preview(board, config, Path(args.output_dir))
    except MigrationError as e:
        logger.error(f"Preview failed: {e}")  # noqa: TRY400
        sys.exit(1)

    print(f"Wrote {issues_path} and {comments_path}")


if __name__ == "__main__":
    main()
