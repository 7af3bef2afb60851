"""
Pytest configuration and fixtures.

This module configures pytest behavior for different test types:
- Integration tests: Fail on any warnings from the code under test
- Unit tests: Allow warnings

It also provides an offline stand-in for the GitHub API and a small board export.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from typing_extensions import override

import pytest

from trello_to_github_migrator.config import MigrationConfig
from trello_to_github_migrator.models import ApiResponse, Board

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

# Store warning records during test execution
_integration_test_warnings: dict[str, list[logging.LogRecord]] = {}


class IntegrationTestWarningHandler(logging.Handler):
    """Custom logging handler to capture warnings during integration tests."""

    test_nodeid: str

    def __init__(self, test_nodeid: str) -> None:
        super().__init__()
        self.test_nodeid = test_nodeid
        self.setLevel(logging.WARNING)

    @override
    def emit(self, record: logging.LogRecord) -> None:
        """Capture WARNING and above level logs."""
        if self.test_nodeid not in _integration_test_warnings:
            _integration_test_warnings[self.test_nodeid] = []
        _integration_test_warnings[self.test_nodeid].append(record)


@pytest.fixture(autouse=True)
def fail_on_log_warnings_for_integration_tests(
    request: pytest.FixtureRequest,
) -> Generator[None]:
    """
    Automatically fail integration tests if any WARNING level logs are emitted from the code under test.

    This fixture captures logging output and fails the test if any WARNING or ERROR
    level logs are detected during integration tests. These would come from logger.warning()
    or logger.error() calls in the source code.

    Warnings from the test code itself (via warnings.warn()) are allowed, as they are
    just informational output. This fixture specifically targets logger warnings which
    indicate issues in the code under test.

    Warnings are acceptable when running the tool as a user, but in the test context
    we don't expect any warnings from the migration code and treat them as test failures.
    """
    # Check if this is an integration test
    is_integration_test = request.node.get_closest_marker("integration") is not None

    if not is_integration_test:
        # For unit tests and other tests, don't check for warnings
        yield
        return

    # For integration tests, set up warning capture
    test_nodeid = request.node.nodeid
    _integration_test_warnings[test_nodeid] = []

    # Add handler to root logger to capture all warnings
    handler = IntegrationTestWarningHandler(test_nodeid)
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)

    try:
        yield
    finally:
        # Clean up - remove the handler
        root_logger.removeHandler(handler)


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(
    item: pytest.Item, call: pytest.CallInfo[None]
) -> Generator[None]:  # type: ignore[misc]
    """
    Hook to check for warnings after test execution and mark test as failed if warnings were detected.

    This runs after the test completes but before pytest generates the final report.
    """
    # Execute the test and get the report
    outcome = yield
    report = outcome.get_result()

    # Only check during the test call phase (not setup or teardown)
    if call.when == "call" and report.outcome == "passed":
        # Check if this test has any captured warnings
        test_nodeid = item.nodeid
        warning_records = _integration_test_warnings.get(test_nodeid, [])

        if warning_records:
            # Format warning messages for better readability
            warning_messages = [
                f"{record.levelname}: {record.getMessage()} (in {record.name}:{record.lineno})"
                for record in warning_records
            ]

            # Mark the test as failed
            report.outcome = "failed"
            report.longrepr = f"Integration test failed: {len(warning_records)} warning(s) detected:\n" + "\n".join(
                f"  - {msg}" for msg in warning_messages
            )

        # Clean up the warnings for this test
        _integration_test_warnings.pop(test_nodeid, None)


class FakeTargetApi:
    """In-memory ``TargetApi`` that records every call and hands out incrementing ids.

    Issues created through ``.../issues`` also get an incrementing ``number``.
    Canned responses can be queued per ``(method, resource)`` in ``responses``.
    """

    calls: list[tuple[str, str, Any]]
    responses: dict[tuple[str, str], ApiResponse]

    def __init__(self) -> None:
        self.calls = []
        self.responses = {}
        self._next_id = 1000
        self._next_number = 0

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def _record(self, method: str, resource: str, payload: Mapping[str, Any] | None = None) -> ApiResponse | None:
        self.calls.append((method, resource, dict(payload) if payload is not None else None))
        return self.responses.pop((method, resource), None)

    def calls_to(self, method: str) -> list[tuple[str, str, Any]]:
        return [call for call in self.calls if call[0] == method]

    def create(self, resource: str, payload: Mapping[str, Any]) -> ApiResponse:
        canned = self._record("POST", resource, payload)
        if canned is not None:
            return canned
        body: dict[str, Any] = {**payload, "id": self._new_id()}
        if resource.endswith("/issues"):
            self._next_number += 1
            body["number"] = self._next_number
        return ApiResponse(status=201, body=body)

    def update(self, resource: str, payload: Mapping[str, Any]) -> ApiResponse:
        canned = self._record("PATCH", resource, payload)
        if canned is not None:
            return canned
        return ApiResponse(status=200, body={**payload, "id": self._new_id()})

    def list(self, resource: str) -> ApiResponse:
        canned = self._record("GET", resource)
        if canned is not None:
            return canned
        return ApiResponse(status=200, body=[])

    def delete(self, resource: str) -> ApiResponse:
        canned = self._record("DELETE", resource)
        if canned is not None:
            return canned
        return ApiResponse(status=204)


BOARD_ID = "5ca52fef9d5b1e2c9cbd2f10"

_BOARD_TREE: dict[str, Any] = {
    "id": BOARD_ID,
    "name": "Roadmap",
    "lists": [
        {"id": "list-done", "name": "Done", "pos": 2048, "closed": False, "idBoard": BOARD_ID},
        {"id": "list-todo", "name": "Todo", "pos": 1024, "closed": False, "idBoard": BOARD_ID},
    ],
    "labels": [{"id": "label-bug", "name": "bug", "color": "red", "idBoard": BOARD_ID}],
    "cards": [
        {
            "id": "card-1",
            "idShort": 1,
            "shortLink": "abcd1234",
            "shortUrl": "https://trello.com/c/abcd1234",
            "name": "Support dark mode",
            "idList": "list-todo",
            "idBoard": BOARD_ID,
            "pos": 16384,
            "desc": "Make it easy on the eyes.",
            "idLabels": ["label-bug"],
            "idMembers": ["member-alice"],
            "idChecklists": ["checklist-1"],
            "attachments": [
                {
                    "id": "attachment-1",
                    "name": "shot.png",
                    "url": "https://trello-attachments.s3.amazonaws.com/5ca52fef/abcd/shot.png",
                    "isUpload": True,
                    "pos": 1,
                    "idMember": "member-alice",
                }
            ],
            "closed": False,
        }
    ],
    "checklists": [
        {
            "id": "checklist-1",
            "name": "Tasks",
            "pos": 1,
            "idBoard": BOARD_ID,
            "idCard": "card-1",
            "checkItems": [{"id": "item-1", "name": "Pick colors", "state": "complete", "pos": 1}],
        }
    ],
    "members": [
        {"id": "member-alice", "username": "alice", "fullName": "Alice"},
        {"id": "member-bob", "username": "bob", "fullName": "Bob"},
    ],
    "actions": [],
}


def _comment_action(
    action_id: str, card_id: str, text: str, date: str, author: str = "member-alice"
) -> dict[str, Any]:
    return {
        "id": action_id,
        "type": "commentCard",
        "idMemberCreator": author,
        "date": date,
        "data": {"card": {"id": card_id}, "text": text},
    }


@pytest.fixture
def comment_action() -> Callable[..., dict[str, Any]]:
    """Factory for ``commentCard`` actions."""
    return _comment_action


@pytest.fixture
def board_tree() -> dict[str, Any]:
    """A fresh copy of a small board export: 2 lists, 1 label, 1 card with a checklist and an upload."""
    return copy.deepcopy(_BOARD_TREE)


@pytest.fixture
def board(board_tree: dict[str, Any]) -> Board:
    return Board.from_dict(board_tree)


@pytest.fixture
def fake_api() -> FakeTargetApi:
    return FakeTargetApi()


@pytest.fixture
def migration_config(tmp_path: Path) -> MigrationConfig:
    return MigrationConfig(
        owner="acme",
        repo="roadmap",
        project_id=77,
        progress=tmp_path / "progress.json",
        members={"alice": "alice-gh"},
    )
