"""Rewriting of cross-references between Trello and GitHub content.

Three kinds of references are handled:

- ``@username`` mentions, remapped to GitHub logins
- ``#123`` numeric tags, pinned to the absolute URL of Trello card 123
- Trello card URLs, replaced by ``#<issue number>`` once that issue exists

Card URLs can only be resolved after the referenced card was migrated, so
content is rendered twice: the first pass leaves them alone, the second pass
(after every issue exists) rewrites them.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from .queries import TRELLO_LINK_RE

if TYPE_CHECKING:
    from collections.abc import Callable

    from .ledger import ProgressLedger
    from .queries import CardIndex, MemberIndex

logger: logging.Logger = logging.getLogger(__name__)

AT_MENTION_RE = re.compile(r"(^|\W)@([\w-]+)", re.MULTILINE | re.ASCII)

# A number tag counts only outside URLs. Matching URLs first lets them win
# over the tag alternative, so "https://x.io/a#42" is kept intact.
URL_OR_CARD_TAG_RE = re.compile(r"(https?://[\w/?&%.#+=\-]+)|#(\d+)\b", re.ASCII)

GITHUB_OBJECT_RE = re.compile(r"\bhttps://github\.com/[\w.-]+/[\w.-]+/(?:pull|issues)/\d+", re.IGNORECASE)

ISSUE_NUMBER_CATEGORY = "cards.number"


def is_github_object(url: str) -> bool:
    """True for links to a GitHub issue or pull request."""
    return GITHUB_OBJECT_RE.search(url) is not None


def is_trello_card(url: str) -> bool:
    return TRELLO_LINK_RE.search(url) is not None


def replace_mentions(text: str, members: MemberIndex) -> str:
    """Replace ``@trello_user`` with ``@github-login`` for every mapped member."""

    def _remap(match: re.Match[str]) -> str:
        prefix, username = match.group(1), match.group(2)
        login = members.login_for_username(username)
        if login is None:
            logger.info(f"Mention @{username} does not map to a GitHub user; leaving it as is")
            return match.group(0)
        return f"{prefix}@{login}"

    return AT_MENTION_RE.sub(_remap, text)


def expand_card_numbers(text: str, cards: CardIndex) -> str:
    """Replace ``#123`` tags with the URL of Trello card number 123.

    Left alone, such tags would silently point at unrelated GitHub issues.
    Pinning them to Trello URLs lets the link remapping turn them into the
    right issue numbers later.

    Raises:
        ReferenceResolutionError: If no card has that number
    """

    def _pin(match: re.Match[str]) -> str:
        if match.group(1) is not None:
            return match.group(1)
        return cards.url_by_number(match.group(2))

    return URL_OR_CARD_TAG_RE.sub(_pin, text)


def remap_links_to_github(cards: CardIndex, ledger: ProgressLedger) -> Callable[[str], str]:
    """Build a mapper that replaces Trello card URLs with ``#<issue number>``.

    URLs of cards not migrated yet are left unchanged and logged.
    """

    def _resolve(short_link: str) -> str | None:
        card = cards.by_short_link(short_link)
        if card is None:
            return None
        issue_number = ledger.github_id(ISSUE_NUMBER_CATEGORY, card.id)
        if issue_number is None:
            logger.warning(f"Link: {short_link} (id: {card.id}) was not resolved to a Github Issue")
            return None
        return f"#{issue_number}"

    def _remap(text: str) -> str:
        return TRELLO_LINK_RE.sub(lambda m: _resolve(m.group(2)) or m.group(1), text)

    return _remap


def escape_from_link_remapping(url: str) -> str:
    """Encode the slashes of ``url`` so the link remapping does not recognize it."""
    return url.replace("/", "&#x002f;")
