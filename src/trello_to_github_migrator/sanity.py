"""Best-effort consistency checks on the raw Trello export.

Nothing here raises. Findings are logged so the operator can decide whether
the export is fit for migration.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass
from typing import Any

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Finding:
    path: str
    message: str


def _walk(node: Any, path: str, visit: Callable[[Mapping[str, Any], str, str], None]) -> None:  # noqa: ANN401
    """Depth-first walk calling ``visit(obj, key, path)`` for every key of every object."""
    if isinstance(node, list):
        for i, child in enumerate(node):
            _walk(child, f"{path}[{i}]", visit)
    elif isinstance(node, Mapping):
        for key, child in node.items():
            visit(node, key, path)
            _walk(child, f"{path}.{key}", visit)


def check_board(tree: Mapping[str, Any], active_member_ids: Collection[str]) -> list[Finding]:
    """Report foreign objects and data created by members that will not be mapped.

    Args:
        tree: Raw board export
        active_member_ids: Ids of members that have a GitHub login
    """
    board_id = tree.get("id")
    usernames = {m.get("id"): m.get("username") for m in tree.get("members", []) if isinstance(m, Mapping)}
    findings: list[Finding] = []

    def visit(obj: Mapping[str, Any], key: str, path: str) -> None:
        value = obj[key]
        if key == "idBoard" and value != board_id:
            findings.append(Finding(path, f"does not belong to this board ({value})"))
        # membership lists are fine; only single creator/owner references count
        elif key == "idMember" and isinstance(value, str) and value not in active_member_ids:
            username = usernames.get(value, value)
            findings.append(Finding(path, f"refers to a user that is not considered active on this board ({username})"))

    _walk(tree, "board", visit)

    for finding in findings:
        logger.warning(f"el at path {finding.path} {finding.message}")
    return findings
