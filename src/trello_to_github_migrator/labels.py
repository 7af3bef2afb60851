"""
Label translation for Trello to GitHub.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import Label

logger: logging.Logger = logging.getLogger(__name__)

# Trello color name -> GitHub hex color (without '#')
LABEL_COLORS: dict[str, str] = {
    "black": "708090",
    "blue": "4169E1",
    "green": "32CD32",
    "lime": "00FA9A",
    "orange": "FF8C00",
    "pink": "FF69B4",
    "purple": "EE82EE",
    "red": "DC143C",
    "sky": "AFEEEE",
    "yellow": "FFD700",
}
DEFAULT_LABEL_COLOR = "ededed"


def github_color(trello_color: str | None) -> str:
    """Translate a Trello color name. Unknown colors get a neutral gray."""
    if trello_color is None:
        return DEFAULT_LABEL_COLOR
    # Trello also has "_dark" and "_light" variants of each color
    base = trello_color.split("_", 1)[0].lower()
    return LABEL_COLORS.get(base, DEFAULT_LABEL_COLOR)


def label_payload(label: Label) -> dict[str, str]:
    return {"name": label.display_name, "color": github_color(label.color)}


def unique_labels(labels: Iterable[Label]) -> list[Label]:
    """Drop labels whose name (case-insensitive, as GitHub labels are) was already taken."""
    seen: dict[str, Label] = {}
    result: list[Label] = []
    for label in labels:
        key = label.display_name.lower()
        if key in seen:
            logger.info(
                f"Label {label.id} ({label.display_name}) has the same name as label {seen[key].id}; creating it once"
            )
            continue
        seen[key] = label
        result.append(label)
    return result


def is_already_exists_error(body: Any) -> bool:  # noqa: ANN401
    """Check if an error body is a 422 'already_exists' validation error."""
    if not isinstance(body, dict):
        return False
    errors: object = body.get("errors")
    if not isinstance(errors, list):
        return False
    return any(isinstance(e, dict) and e.get("code") == "already_exists" for e in errors)
