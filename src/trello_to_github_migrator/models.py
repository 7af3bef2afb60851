"""Data models for a Trello board export.

Each entity kind of the export gets an explicit frozen record. The
``from_dict`` constructors check required fields and their JSON types so
that a non-conforming export is rejected when it is loaded, not later while
rendering content.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from operator import attrgetter
from typing import Any, Protocol, TypeVar

from .exceptions import MalformedSnapshotError

_MISSING = object()


class Orderable(Protocol):
    @property
    def pos(self) -> float: ...


OrderableT = TypeVar("OrderableT", bound=Orderable)


def sorted_by_pos(items: Iterable[OrderableT]) -> list[OrderableT]:
    """Sort by ``pos`` ascending. Equal positions keep their original order."""
    return sorted(items, key=attrgetter("pos"))


def _field(data: Mapping[str, Any], key: str, kind: type | tuple[type, ...], where: str, default: Any = _MISSING) -> Any:  # noqa: ANN401
    value = data.get(key, _MISSING)
    if value is _MISSING or value is None:
        if default is not _MISSING:
            return default
        msg = f"{where}: missing required field '{key}'"
        raise MalformedSnapshotError(msg)
    # bool is an int subclass, but never a valid number here
    if isinstance(value, bool) and bool not in (kind if isinstance(kind, tuple) else (kind,)):
        msg = f"{where}: field '{key}' has unexpected type bool"
        raise MalformedSnapshotError(msg)
    if not isinstance(value, kind):
        msg = f"{where}: field '{key}' has unexpected type {type(value).__name__}"
        raise MalformedSnapshotError(msg)
    return value


def _str_list(data: Mapping[str, Any], key: str, where: str) -> tuple[str, ...]:
    values = _field(data, key, list, where, default=[])
    if not all(isinstance(v, str) for v in values):
        msg = f"{where}: field '{key}' must be a list of strings"
        raise MalformedSnapshotError(msg)
    return tuple(values)


def _objects(data: Mapping[str, Any], key: str, where: str, *, required: bool = False) -> list[Mapping[str, Any]]:
    values = _field(data, key, list, where) if required else _field(data, key, list, where, default=[])
    for i, value in enumerate(values):
        if not isinstance(value, Mapping):
            msg = f"{where}.{key}[{i}]: expected an object, got {type(value).__name__}"
            raise MalformedSnapshotError(msg)
    return values


def parse_timestamp(value: str, where: str) -> dt.datetime:
    """Parse an ISO 8601 timestamp as found in Trello actions."""
    try:
        parsed = dt.datetime.fromisoformat(value)
    except ValueError as e:
        msg = f"{where}: unparseable timestamp {value!r}"
        raise MalformedSnapshotError(msg) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed


@dataclass(frozen=True)
class TrelloList:
    """A board list. Migrated to a project column."""

    id: str
    name: str
    pos: float
    closed: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], where: str = "list") -> TrelloList:
        return cls(
            id=_field(data, "id", str, where),
            name=_field(data, "name", str, where),
            pos=float(_field(data, "pos", (int, float), where)),
            closed=_field(data, "closed", bool, where, default=False),
        )


@dataclass(frozen=True)
class Label:
    """A board label. Trello allows labels without a name."""

    id: str
    name: str = ""
    color: str | None = None

    @property
    def display_name(self) -> str:
        """Name used on GitHub, falling back to the color for unnamed labels."""
        if self.name.strip():
            return self.name.strip()
        if self.color:
            return self.color
        return f"unnamed-{self.id}"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], where: str = "label") -> Label:
        return cls(
            id=_field(data, "id", str, where),
            name=_field(data, "name", str, where, default=""),
            color=_field(data, "color", str, where, default=None),
        )


@dataclass(frozen=True)
class CheckItem:
    id: str
    name: str
    state: str
    pos: float

    @property
    def complete(self) -> bool:
        return self.state == "complete"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], where: str = "checkItem") -> CheckItem:
        return cls(
            id=_field(data, "id", str, where),
            name=_field(data, "name", str, where),
            state=_field(data, "state", str, where),
            pos=float(_field(data, "pos", (int, float), where)),
        )


@dataclass(frozen=True)
class Checklist:
    id: str
    name: str
    pos: float
    check_items: tuple[CheckItem, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], where: str = "checklist") -> Checklist:
        items = _objects(data, "checkItems", where, required=True)
        return cls(
            id=_field(data, "id", str, where),
            name=_field(data, "name", str, where),
            pos=float(_field(data, "pos", (int, float), where)),
            check_items=tuple(CheckItem.from_dict(item, f"{where}.checkItems[{i}]") for i, item in enumerate(items)),
        )


@dataclass(frozen=True)
class Attachment:
    """A card attachment: either an uploaded file or a link."""

    id: str
    name: str
    url: str
    is_upload: bool = False
    pos: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], where: str = "attachment") -> Attachment:
        return cls(
            id=_field(data, "id", str, where),
            name=_field(data, "name", str, where),
            url=_field(data, "url", str, where),
            is_upload=_field(data, "isUpload", bool, where, default=False),
            pos=float(_field(data, "pos", (int, float), where, default=0.0)),
        )


@dataclass(frozen=True)
class Card:
    """A Trello card. Migrated to an issue and a project card."""

    id: str
    id_short: int
    short_link: str
    short_url: str
    name: str
    id_list: str
    pos: float
    desc: str = ""
    label_ids: tuple[str, ...] = ()
    member_ids: tuple[str, ...] = ()
    checklist_ids: tuple[str, ...] = ()
    attachments: tuple[Attachment, ...] = ()
    closed: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], where: str = "card") -> Card:
        attachments = _objects(data, "attachments", where)
        return cls(
            id=_field(data, "id", str, where),
            id_short=_field(data, "idShort", int, where),
            short_link=_field(data, "shortLink", str, where),
            short_url=_field(data, "shortUrl", str, where),
            name=_field(data, "name", str, where),
            id_list=_field(data, "idList", str, where),
            pos=float(_field(data, "pos", (int, float), where)),
            desc=_field(data, "desc", str, where, default=""),
            label_ids=_str_list(data, "idLabels", where),
            member_ids=_str_list(data, "idMembers", where),
            checklist_ids=_str_list(data, "idChecklists", where),
            attachments=tuple(
                Attachment.from_dict(a, f"{where}.attachments[{i}]") for i, a in enumerate(attachments)
            ),
            closed=_field(data, "closed", bool, where, default=False),
        )


@dataclass(frozen=True)
class Member:
    id: str
    username: str
    full_name: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], where: str = "member") -> Member:
        return cls(
            id=_field(data, "id", str, where),
            username=_field(data, "username", str, where),
            full_name=_field(data, "fullName", str, where, default=""),
        )


@dataclass(frozen=True)
class Comment:
    """A ``commentCard`` action."""

    id: str
    card_id: str
    member_creator_id: str
    text: str
    date: str
    timestamp: dt.datetime = field(compare=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], where: str = "comment") -> Comment:
        payload = _field(data, "data", Mapping, where)
        card = _field(payload, "card", Mapping, f"{where}.data")
        date = _field(data, "date", str, where)
        return cls(
            id=_field(data, "id", str, where),
            card_id=_field(card, "id", str, f"{where}.data.card"),
            member_creator_id=_field(data, "idMemberCreator", str, where),
            text=_field(payload, "text", str, f"{where}.data", default=""),
            date=date,
            timestamp=parse_timestamp(date, where),
        )


COMMENT_ACTION_TYPE = "commentCard"


@dataclass(frozen=True)
class Board:
    """The full, typed board snapshot."""

    id: str
    name: str
    lists: tuple[TrelloList, ...]
    cards: tuple[Card, ...]
    labels: tuple[Label, ...] = ()
    checklists: tuple[Checklist, ...] = ()
    members: tuple[Member, ...] = ()
    comments: tuple[Comment, ...] = ()

    @classmethod
    def from_dict(cls, tree: Mapping[str, Any], comments: Sequence[Mapping[str, Any]] | None = None) -> Board:
        """Build a board from the export tree.

        Args:
            tree: Parsed Trello board export
            comments: Optional ``commentCard`` actions that replace the ones in ``tree["actions"]``
        """
        if not isinstance(tree, Mapping):
            msg = f"board: expected an object, got {type(tree).__name__}"
            raise MalformedSnapshotError(msg)

        if comments is None:
            actions = _objects(tree, "actions", "board")
            comment_dicts = [(f"board.actions[{i}]", a) for i, a in enumerate(actions) if a.get("type") == COMMENT_ACTION_TYPE]
        else:
            comment_dicts = []
            for i, a in enumerate(comments):
                if not isinstance(a, Mapping):
                    msg = f"comments[{i}]: expected an object, got {type(a).__name__}"
                    raise MalformedSnapshotError(msg)
                comment_dicts.append((f"comments[{i}]", a))

        return cls(
            id=_field(tree, "id", str, "board"),
            name=_field(tree, "name", str, "board", default=""),
            lists=tuple(
                TrelloList.from_dict(d, f"board.lists[{i}]")
                for i, d in enumerate(_objects(tree, "lists", "board", required=True))
            ),
            cards=tuple(
                Card.from_dict(d, f"board.cards[{i}]")
                for i, d in enumerate(_objects(tree, "cards", "board", required=True))
            ),
            labels=tuple(Label.from_dict(d, f"board.labels[{i}]") for i, d in enumerate(_objects(tree, "labels", "board"))),
            checklists=tuple(
                Checklist.from_dict(d, f"board.checklists[{i}]")
                for i, d in enumerate(_objects(tree, "checklists", "board"))
            ),
            members=tuple(
                Member.from_dict(d, f"board.members[{i}]") for i, d in enumerate(_objects(tree, "members", "board"))
            ),
            comments=tuple(Comment.from_dict(d, where) for where, d in comment_dicts),
        )


@dataclass(frozen=True)
class ApiResponse:
    """Response of a call against the target API."""

    status: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status <= 299
