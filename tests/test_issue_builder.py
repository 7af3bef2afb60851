"""
Tests for issue and comment body rendering.
"""

from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest

from trello_to_github_migrator.exceptions import ReferenceResolutionError
from trello_to_github_migrator.issue_builder import (
    RenderContext,
    build_comment_body,
    build_issue_body,
    build_issue_payload,
    card_header,
    checklist_markdown,
    format_timestamp,
    is_image,
)
from trello_to_github_migrator.ledger import ProgressLedger
from trello_to_github_migrator.models import Attachment, Board, Card, CheckItem, Checklist, Comment, Label, Member
from trello_to_github_migrator.queries import CardIndex, ChecklistIndex, MemberIndex, UploadIndex, upload_key
from trello_to_github_migrator.references import remap_links_to_github

UPLOAD_URL = "https://trello-attachments.s3.amazonaws.com/5ca5/abcd/shot.png"


def make_context(cards: list[Card], checklists: tuple[Checklist, ...] = ()) -> RenderContext:
    return RenderContext(
        cards=CardIndex(cards),
        members=MemberIndex([Member("m1", "alice"), Member("m2", "bob")], {"alice": "alice-gh"}),
        checklists=ChecklistIndex(checklists),
        uploads=UploadIndex(cards, owner="acme", repo="roadmap", ref="master"),
    )


def make_card(**kwargs: object) -> Card:
    fields: dict[str, object] = {
        "id": "card-5",
        "id_short": 5,
        "short_link": "abcd1234",
        "short_url": "https://trello.com/c/abcd1234",
        "name": "Support dark mode",
        "id_list": "list-1",
        "pos": 1.0,
    }
    fields.update(kwargs)
    return Card(**fields)  # type: ignore[arg-type]


@pytest.mark.unit
class TestFormatting:
    def test_format_timestamp_in_utc(self) -> None:
        timestamp = dt.datetime(2024, 1, 15, 12, 30, 45, 999, tzinfo=dt.timezone(dt.timedelta(hours=2)))

        assert format_timestamp(timestamp) == "2024-01-15 10:30:45Z"

    def test_card_header_is_escaped(self) -> None:
        header = card_header(make_card())

        assert header == "> Migrated from [Trello Card 5](https:&#x002f;&#x002f;trello.com&#x002f;c&#x002f;abcd1234)"

    def test_checklist_items_in_position_order(self) -> None:
        checklist = Checklist(
            "cl",
            "Release",
            1.0,
            (CheckItem("b", "Announce", "incomplete", 2.0), CheckItem("a", "Tag", "complete", 1.0)),
        )

        assert checklist_markdown(checklist) == "### Release\n\n- [x] Tag\n- [ ] Announce"

    @pytest.mark.parametrize(
        ("name", "expected"),
        [("shot.png", True), ("PHOTO.JPG", True), ("a.jpeg", True), ("anim.gif", True), ("doc.pdf", False), ("png", False)],
    )
    def test_is_image(self, name: str, expected: bool) -> None:
        assert is_image(name) is expected


@pytest.mark.unit
class TestBuildIssueBody:
    def test_description_only(self) -> None:
        card = make_card(desc="  Make it easy on the eyes.\n")

        body = build_issue_body(card, make_context([card]))

        assert body == f"{card_header(card)}\n\nMake it easy on the eyes."

    def test_empty_description(self) -> None:
        card = make_card()

        assert build_issue_body(card, make_context([card])) == card_header(card)

    def test_full_body_sections_in_order(self) -> None:
        checklists = (
            Checklist("cl-2", "Later", 2.0, (CheckItem("i2", "Polish", "incomplete", 1.0),)),
            Checklist("cl-1", "Now", 1.0, (CheckItem("i1", "Pick colors", "complete", 1.0),)),
        )
        card = make_card(
            desc="Ask @alice, see #5",
            checklist_ids=("cl-2", "cl-1"),
            attachments=(
                Attachment("a3", "notes.pdf", "https://trello-attachments.s3.amazonaws.com/x/notes.pdf", True, 3.0),
                Attachment("a1", "shot.png", UPLOAD_URL, True, 1.0),
                Attachment("a2", "Design doc", "https://docs.example/design", False, 2.0),
                Attachment("a4", "https://github.com/acme/roadmap/issues/1", "https://github.com/acme/roadmap/issues/1"),
            ),
        )

        body = build_issue_body(card, make_context([card], checklists))

        base = "https://raw.githubusercontent.com/acme/roadmap/master"
        pdf_url = "https://trello-attachments.s3.amazonaws.com/x/notes.pdf"
        assert body == (
            f"{card_header(card)}\n\n"
            "Ask @alice-gh, see https://trello.com/c/abcd1234\n\n"
            "## Checklists\n\n"
            "### Now\n\n- [x] Pick colors\n\n"
            "### Later\n\n- [ ] Polish\n\n"
            "## Related\n\n"
            "* https://github.com/acme/roadmap/issues/1\n"
            "* [Design doc](https://docs.example/design)\n\n"
            "## Attachments\n\n"
            f"* ![shot.png]({base}/{upload_key(UPLOAD_URL)})\n"
            f"* [notes.pdf]({base}/{upload_key(pdf_url)})"
        )

    def test_trello_card_attachment_is_a_bare_url(self) -> None:
        card = make_card(attachments=(Attachment("a1", "Other card", "https://trello.com/c/wxyz5678/9-other"),))

        body = build_issue_body(card, make_context([card]))

        assert body.endswith("## Related\n\n* https://trello.com/c/wxyz5678/9-other")

    def test_dangling_number_tag_raises(self) -> None:
        card = make_card(desc="duplicate of #99")

        with pytest.raises(ReferenceResolutionError, match="#99"):
            build_issue_body(card, make_context([card]))


@pytest.mark.unit
class TestBuildIssuePayload:
    def test_payload(self) -> None:
        card = make_card(label_ids=("l1", "l2", "gone"), member_ids=("m1", "m2"))
        labels = {"l1": Label("l1", "bug", "red"), "l2": Label("l2", "", "green")}

        payload = build_issue_payload(card, make_context([card]), labels, "body")

        assert payload == {
            "title": "Support dark mode",
            "body": "body",
            "labels": ["bug", "green"],
            "assignees": ["alice-gh"],
        }


@pytest.mark.unit
class TestBuildCommentBody:
    def _comment(self, text: str, author: str = "m1") -> Comment:
        timestamp = dt.datetime(2019, 5, 29, 15, 38, 35, tzinfo=dt.UTC)
        return Comment("c1", "card-5", author, text, "2019-05-29T15:38:35Z", timestamp)

    def test_comment_with_resolved_references(self, tmp_path: Path) -> None:
        card = make_card()
        ledger = ProgressLedger(tmp_path / "p.json")
        ledger.mark_done("cards.number", card.id, 31)
        context = make_context([card])

        body = build_comment_body(self._comment("@alice dup of #5"), context, remap_links_to_github(context.cards, ledger))

        assert body == (
            "> Migrated comment original author: @alice-gh\n"
            "> Original date: 2019-05-29 15:38:35Z\n\n"
            "@alice-gh dup of #31"
        )

    def test_unmapped_author_raises(self) -> None:
        card = make_card()

        with pytest.raises(ReferenceResolutionError, match="Failed to resolve member m2"):
            build_comment_body(self._comment("hi", author="m2"), make_context([card]), lambda text: text)


@pytest.mark.unit
def test_board_fixture_body(board: Board) -> None:
    context = RenderContext(
        cards=CardIndex(board.cards),
        members=MemberIndex(board.members, {"alice": "alice-gh"}),
        checklists=ChecklistIndex(board.checklists),
        uploads=UploadIndex(board.cards, owner="acme", repo="roadmap", ref="master"),
    )

    body = build_issue_body(board.cards[0], context)

    assert "- [x] Pick colors" in body
    assert "![shot.png](https://raw.githubusercontent.com/acme/roadmap/master/.github/trello-attachments/" in body
