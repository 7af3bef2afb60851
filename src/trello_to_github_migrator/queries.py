"""In-memory lookup indexes over the board snapshot.

Every index is built once from the snapshot and not mutated afterwards.
They are passed explicitly to the renderers and resolvers.
"""

from __future__ import annotations

import hashlib
import logging
import posixpath
import re
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from urllib.parse import urlsplit

from .exceptions import ReferenceResolutionError
from .models import Card, Checklist, Comment, Member, sorted_by_pos

logger: logging.Logger = logging.getLogger(__name__)

UPLOADS_DIR = ".github/trello-attachments"
RAW_CONTENT_BASE = "https://raw.githubusercontent.com"

TRELLO_LINK_RE = re.compile(r"\b(https://trello\.com/c/([a-z0-9]{8})(?:/[\w/?&%.\-=]*)?)", re.IGNORECASE)


class CardIndex:
    """Cards by id, by short link and by short number."""

    def __init__(self, cards: Iterable[Card]) -> None:
        by_id: dict[str, Card] = {}
        by_short_link: dict[str, Card] = {}
        by_number: dict[int, Card] = {}
        with_attachments: set[str] = set()
        linking_cards: set[str] = set()

        for card in cards:
            by_id[card.id] = card
            by_short_link[card.short_link] = card
            by_number[card.id_short] = card
            if card.attachments:
                with_attachments.add(card.id)
                if any(TRELLO_LINK_RE.search(a.url) for a in card.attachments if not a.is_upload):
                    linking_cards.add(card.id)

        self._by_id = MappingProxyType(by_id)
        self._by_short_link = MappingProxyType(by_short_link)
        self._by_number = MappingProxyType(by_number)
        self._with_attachments = frozenset(with_attachments)
        self._linking_cards = frozenset(linking_cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def by_id(self, card_id: str) -> Card | None:
        return self._by_id.get(card_id)

    def by_short_link(self, short_link: str) -> Card | None:
        return self._by_short_link.get(short_link)

    def by_number(self, number: int | str) -> Card | None:
        try:
            return self._by_number.get(int(number))
        except ValueError:
            return None

    def has_attachments(self, card: Card) -> bool:
        return card.id in self._with_attachments

    def links_other_cards(self, card: Card) -> bool:
        """True if one of the card's link attachments points at a Trello card."""
        return card.id in self._linking_cards

    def url_by_number(self, number: int | str) -> str:
        card = self.by_number(number)
        if card is None:
            msg = f"Cannot find trello card number #{number}"
            raise ReferenceResolutionError(msg)
        return card.short_url


class MemberIndex:
    """Trello members that map to a GitHub login.

    Members without a mapping are left out on purpose: they are neither
    assigned nor remapped in mentions.
    """

    def __init__(self, members: Iterable[Member], user_map: Mapping[str, str]) -> None:
        by_id: dict[str, str] = {}
        by_username: dict[str, str] = {}
        for member in members:
            login = user_map.get(member.username)
            if login:
                by_id[member.id] = login
                by_username[member.username] = login
            else:
                logger.debug(f"Trello member {member.username} has no GitHub login mapping")
        self._by_id = MappingProxyType(by_id)
        self._by_username = MappingProxyType(by_username)

    def __len__(self) -> int:
        return len(self._by_id)

    @property
    def member_ids(self) -> frozenset[str]:
        return frozenset(self._by_id)

    def login_for(self, member_id: str) -> str | None:
        return self._by_id.get(member_id)

    def login_for_username(self, username: str) -> str | None:
        return self._by_username.get(username)


class ChecklistIndex:
    def __init__(self, checklists: Iterable[Checklist]) -> None:
        self._by_id = MappingProxyType({c.id: c for c in checklists})

    def ordered(self, checklist_ids: Sequence[str]) -> list[Checklist]:
        """Checklists for ``checklist_ids`` sorted by position. Unknown ids are skipped."""
        found: list[Checklist] = []
        for checklist_id in checklist_ids:
            checklist = self._by_id.get(checklist_id)
            if checklist is None:
                logger.warning(f"Checklist {checklist_id} is referenced by a card but missing from the export")
                continue
            found.append(checklist)
        return sorted_by_pos(found)


class CommentIndex:
    """Comments grouped per card, oldest first."""

    def __init__(self, comments: Iterable[Comment]) -> None:
        grouped: dict[str, list[Comment]] = {}
        count = 0
        for comment in comments:
            grouped.setdefault(comment.card_id, []).append(comment)
            count += 1
        self._by_card = MappingProxyType(
            {card_id: tuple(sorted(group, key=lambda c: c.timestamp)) for card_id, group in grouped.items()}
        )
        self._count = count

    def __len__(self) -> int:
        return self._count

    def for_card(self, card_id: str) -> tuple[Comment, ...]:
        return self._by_card.get(card_id, ())


@dataclass(frozen=True)
class Upload:
    """An uploaded attachment and where it is stored in the repository."""

    name: str
    url: str
    key: str


def upload_key(url: str) -> str:
    """Content-addressed repository path for the file behind ``url``."""
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()
    basename = posixpath.basename(urlsplit(url).path) or "attachment"
    return f"{UPLOADS_DIR}/{digest}/{basename}"


class UploadIndex:
    """Uploaded attachments of all cards, keyed by their Trello URL."""

    def __init__(self, cards: Iterable[Card], *, owner: str, repo: str, ref: str) -> None:
        by_url: dict[str, Upload] = {}
        for card in cards:
            for attachment in card.attachments:
                if attachment.is_upload and attachment.url not in by_url:
                    by_url[attachment.url] = Upload(name=attachment.name, url=attachment.url, key=upload_key(attachment.url))
        self._by_url = MappingProxyType(by_url)
        self._base_url = f"{RAW_CONTENT_BASE}/{owner}/{repo}/{ref}"

    def __iter__(self) -> Iterator[Upload]:
        return iter(self._by_url.values())

    def __len__(self) -> int:
        return len(self._by_url)

    def remap(self, url: str) -> str:
        """GitHub location of the upload behind ``url``, or ``url`` itself if it is not an upload."""
        upload = self._by_url.get(url)
        if upload is None:
            logger.warning(f"Could not map attachment url: {url}")
            return url
        return f"{self._base_url}/{upload.key}"
