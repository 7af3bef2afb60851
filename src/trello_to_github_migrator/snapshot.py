"""Loading of the Trello board export."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .exceptions import MalformedSnapshotError
from .models import Board
from .utils import is_regular_file, load_json

logger: logging.Logger = logging.getLogger(__name__)


def read_json_file(path: str | Path, what: str) -> Any:  # noqa: ANN401
    if not is_regular_file(path):
        msg = f"{what} file [{path}] does not exist or is not readable"
        raise MalformedSnapshotError(msg)
    try:
        return load_json(path)
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        msg = f"Could not parse {what} file {path}: {e}"
        raise MalformedSnapshotError(msg) from e


def load_board(path: str | Path, comments_path: str | Path | None = None) -> tuple[Board, dict[str, Any]]:
    """Load the board export at ``path``.

    Args:
        path: Trello board JSON export
        comments_path: Optional JSON array of ``commentCard`` actions; replaces the export's own actions

    Returns:
        Tuple of (typed board, raw export tree). The raw tree is kept for sanity checks.

    Raises:
        MalformedSnapshotError: If a file is missing, not JSON, or does not conform
    """
    tree = read_json_file(path, "Board export")
    comments = None
    if comments_path is not None:
        comments = read_json_file(comments_path, "Comments")
        if not isinstance(comments, list):
            msg = f"Comments file {comments_path} must contain a JSON array"
            raise MalformedSnapshotError(msg)

    board = Board.from_dict(tree, comments)
    logger.info(
        f"Loaded board {board.name or board.id}: {len(board.lists)} lists, {len(board.cards)} cards, "
        f"{len(board.comments)} comments"
    )
    return board, tree


def statistics(board: Board) -> dict[str, int]:
    return {
        "lists": len(board.lists),
        "labels": len(board.labels),
        "cards": len(board.cards),
        "checklists": len(board.checklists),
        "members": len(board.members),
        "comments": len(board.comments),
    }
