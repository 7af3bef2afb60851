"""
Tests for the board export models and the snapshot loader.
"""

from __future__ import annotations

import datetime as dt
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from trello_to_github_migrator.exceptions import MalformedSnapshotError
from trello_to_github_migrator.models import ApiResponse, Board, Card, Label, TrelloList, sorted_by_pos
from trello_to_github_migrator.snapshot import load_board, statistics


@pytest.mark.unit
class TestSortedByPos:
    def test_orders_by_position(self) -> None:
        lists = [TrelloList("X", "x", 3.0), TrelloList("Y", "y", 1.0), TrelloList("Z", "z", 2.0)]

        assert [lst.id for lst in sorted_by_pos(lists)] == ["Y", "Z", "X"]

    def test_equal_positions_keep_input_order(self) -> None:
        lists = [TrelloList("A", "a", 1.0), TrelloList("B", "b", 0.5), TrelloList("C", "c", 1.0)]

        assert [lst.id for lst in sorted_by_pos(lists)] == ["B", "A", "C"]


@pytest.mark.unit
class TestLabel:
    def test_display_name_prefers_name(self) -> None:
        assert Label("l1", "  urgent ", "red").display_name == "urgent"

    def test_display_name_falls_back_to_color(self) -> None:
        assert Label("l1", "", "green").display_name == "green"

    def test_display_name_without_name_and_color(self) -> None:
        assert Label("l1").display_name == "unnamed-l1"


@pytest.mark.unit
class TestBoardFromDict:
    def test_parses_all_entities(self, board_tree: dict[str, Any]) -> None:
        board = Board.from_dict(board_tree)

        assert board.id == board_tree["id"]
        assert [lst.name for lst in board.lists] == ["Done", "Todo"]
        card = board.cards[0]
        assert card.id_short == 1
        assert card.short_link == "abcd1234"
        assert card.label_ids == ("label-bug",)
        assert card.attachments[0].is_upload
        assert board.checklists[0].check_items[0].complete
        assert {m.username for m in board.members} == {"alice", "bob"}

    def test_comments_from_actions(
        self, board_tree: dict[str, Any], comment_action: Callable[..., dict[str, Any]]
    ) -> None:
        board_tree["actions"] = [
            comment_action("a1", "card-1", "hello", "2019-05-29T15:38:35.123Z"),
            {"id": "a2", "type": "updateCard", "data": {}},
        ]

        board = Board.from_dict(board_tree)

        assert len(board.comments) == 1
        comment = board.comments[0]
        assert comment.text == "hello"
        assert comment.card_id == "card-1"
        assert comment.timestamp == dt.datetime(2019, 5, 29, 15, 38, 35, 123000, tzinfo=dt.UTC)

    def test_separate_comments_replace_actions(
        self, board_tree: dict[str, Any], comment_action: Callable[..., dict[str, Any]]
    ) -> None:
        board_tree["actions"] = [comment_action("a1", "card-1", "from export", "2019-05-29T15:38:35Z")]
        extra = [comment_action("a9", "card-1", "from file", "2019-06-01T00:00:00Z")]

        board = Board.from_dict(board_tree, extra)

        assert [c.id for c in board.comments] == ["a9"]

    def test_missing_required_field(self, board_tree: dict[str, Any]) -> None:
        del board_tree["cards"][0]["idShort"]

        with pytest.raises(MalformedSnapshotError, match=r"board\.cards\[0\]: missing required field 'idShort'"):
            Board.from_dict(board_tree)

    def test_wrong_type(self, board_tree: dict[str, Any]) -> None:
        board_tree["lists"][0]["pos"] = "top"

        with pytest.raises(MalformedSnapshotError, match="unexpected type str"):
            Board.from_dict(board_tree)

    def test_bool_is_not_a_number(self, board_tree: dict[str, Any]) -> None:
        board_tree["cards"][0]["idShort"] = True

        with pytest.raises(MalformedSnapshotError, match="unexpected type bool"):
            Board.from_dict(board_tree)

    def test_bad_timestamp(
        self, board_tree: dict[str, Any], comment_action: Callable[..., dict[str, Any]]
    ) -> None:
        board_tree["actions"] = [comment_action("a1", "card-1", "hi", "yesterday")]

        with pytest.raises(MalformedSnapshotError, match="unparseable timestamp"):
            Board.from_dict(board_tree)

    def test_not_an_object(self) -> None:
        with pytest.raises(MalformedSnapshotError, match="expected an object"):
            Board.from_dict([])  # type: ignore[arg-type]

    def test_card_defaults(self) -> None:
        card = Card.from_dict(
            {
                "id": "c",
                "idShort": 3,
                "shortLink": "zzzz9999",
                "shortUrl": "https://trello.com/c/zzzz9999",
                "name": "n",
                "idList": "l",
                "pos": 1,
                "desc": None,
            }
        )

        assert card.desc == ""
        assert card.attachments == ()
        assert not card.closed


@pytest.mark.unit
class TestApiResponse:
    @pytest.mark.parametrize(("status", "ok"), [(200, True), (201, True), (299, True), (304, False), (422, False)])
    def test_ok(self, status: int, ok: bool) -> None:
        assert ApiResponse(status=status).ok is ok


@pytest.mark.unit
class TestLoadBoard:
    def test_loads_board_and_raw_tree(self, tmp_path: Path, board_tree: dict[str, Any]) -> None:
        path = tmp_path / "board.json"
        path.write_text(json.dumps(board_tree))

        board, tree = load_board(path)

        assert tree == board_tree
        assert statistics(board) == {
            "lists": 2,
            "labels": 1,
            "cards": 1,
            "checklists": 1,
            "members": 2,
            "comments": 0,
        }

    def test_loads_comments_file(
        self, tmp_path: Path, board_tree: dict[str, Any], comment_action: Callable[..., dict[str, Any]]
    ) -> None:
        path = tmp_path / "board.json"
        path.write_text(json.dumps(board_tree))
        comments = tmp_path / "comments.json"
        comments.write_text(json.dumps([comment_action("a1", "card-1", "hi", "2020-01-01T00:00:00Z")]))

        board, _tree = load_board(path, comments)

        assert len(board.comments) == 1

    def test_comments_file_must_be_array(self, tmp_path: Path, board_tree: dict[str, Any]) -> None:
        path = tmp_path / "board.json"
        path.write_text(json.dumps(board_tree))
        comments = tmp_path / "comments.json"
        comments.write_text("{}")

        with pytest.raises(MalformedSnapshotError, match="JSON array"):
            load_board(path, comments)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(MalformedSnapshotError, match="does not exist"):
            load_board(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "board.json"
        path.write_text("{")

        with pytest.raises(MalformedSnapshotError, match="Could not parse"):
            load_board(path)
