"""Build GitHub issue and comment bodies from Trello cards and comments."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from .exceptions import ReferenceResolutionError
from .models import sorted_by_pos
from .references import (
    escape_from_link_remapping,
    expand_card_numbers,
    is_github_object,
    is_trello_card,
    replace_mentions,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from .models import Attachment, Card, Checklist, Comment, Label
    from .queries import CardIndex, ChecklistIndex, MemberIndex, UploadIndex

IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".gif"})


@dataclass(frozen=True)
class RenderContext:
    """The snapshot indexes the renderers read from."""

    cards: CardIndex
    members: MemberIndex
    checklists: ChecklistIndex
    uploads: UploadIndex


def format_timestamp(timestamp: dt.datetime) -> str:
    """Format a timestamp in UTC (e.g., "2024-01-15 10:30:45Z")."""
    return timestamp.astimezone(dt.UTC).isoformat(sep=" ", timespec="seconds").replace("+00:00", "Z")


def _join_sections(*sections: str) -> str:
    return "\n\n".join(s for s in (section.strip() for section in sections) if s)


def card_header(card: Card) -> str:
    """Citation of the originating card. The URL is escaped so it stays a Trello link."""
    return f"> Migrated from [Trello Card {card.id_short}]({escape_from_link_remapping(card.short_url)})"


def checklist_markdown(checklist: Checklist) -> str:
    items = "\n".join(f"- [{'x' if item.complete else ' '}] {item.name}" for item in sorted_by_pos(checklist.check_items))
    return f"### {checklist.name}\n\n{items}".rstrip()


def apply_checklists(desc: str, checklists: Iterable[Checklist]) -> str:
    rendered = [checklist_markdown(c) for c in checklists]
    if not rendered:
        return desc
    return _join_sections(desc, "## Checklists\n\n" + "\n\n".join(rendered))


def is_image(filename: str) -> bool:
    return PurePosixPath(filename).suffix.lower() in IMAGE_EXTENSIONS


def _related_line(attachment: Attachment) -> str:
    # A markdown link around something the link remapping turns into "#123"
    # would render as [#123](#123), which does not link to the issue.
    if is_github_object(attachment.url) or is_trello_card(attachment.url) or attachment.name == attachment.url:
        return f"* {attachment.url}"
    return f"* [{attachment.name}]({attachment.url})"


def apply_attachments(desc: str, attachments: Iterable[Attachment], uploads: UploadIndex) -> str:
    related: list[str] = []
    uploaded: list[str] = []

    for attachment in sorted_by_pos(attachments):
        if attachment.is_upload:
            embed = "!" if is_image(attachment.name) else ""
            uploaded.append(f"* {embed}[{attachment.name}]({uploads.remap(attachment.url)})")
        else:
            related.append(_related_line(attachment))

    return _join_sections(
        desc,
        "## Related\n\n" + "\n".join(related) if related else "",
        "## Attachments\n\n" + "\n".join(uploaded) if uploaded else "",
    )


def build_issue_body(card: Card, context: RenderContext) -> str:
    """Build the first-pass issue body for ``card``.

    Trello card links in the result still point at Trello; pass the body
    through the link remapping once every issue exists.

    Raises:
        ReferenceResolutionError: If the content has a ``#123`` tag that matches no card
    """
    text = apply_checklists(card.desc, context.checklists.ordered(card.checklist_ids))
    text = replace_mentions(text, context.members)
    text = apply_attachments(text, card.attachments, context.uploads)
    text = expand_card_numbers(text, context.cards)
    return _join_sections(card_header(card), text)


def build_issue_payload(card: Card, context: RenderContext, labels: Mapping[str, Label], body: str) -> dict[str, Any]:
    """Issue creation payload. Members without a GitHub login are not assigned."""
    assignees = [login for login in (context.members.login_for(m) for m in card.member_ids) if login]
    return {
        "title": card.name,
        "body": body,
        "labels": [labels[label_id].display_name for label_id in card.label_ids if label_id in labels],
        "assignees": assignees,
    }


def comment_author_header(comment: Comment, context: RenderContext) -> str:
    """Attribution lines for a migrated comment.

    Raises:
        ReferenceResolutionError: If the author has no GitHub login
    """
    login = context.members.login_for(comment.member_creator_id)
    if login is None:
        msg = f"Failed to resolve member {comment.member_creator_id} (author of comment {comment.id})"
        raise ReferenceResolutionError(msg)
    return (
        f"> Migrated comment original author: @{login}\n"
        f"> Original date: {format_timestamp(comment.timestamp)}"
    )


def build_comment_body(comment: Comment, context: RenderContext, remap_links: Callable[[str], str]) -> str:
    """Build a comment body with its author attribution and resolved references."""
    text = expand_card_numbers(comment.text, context.cards)
    text = replace_mentions(text, context.members)
    text = remap_links(text)
    return _join_sections(comment_author_header(comment, context), text)
