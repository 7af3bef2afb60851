"""
Custom exception classes for the Trello to GitHub migration tool.
"""

from __future__ import annotations

import json
from typing import Any


class MigrationError(Exception):
    """Base exception for migration errors."""


class ConfigurationError(MigrationError):
    """Raised when required settings are missing or invalid."""


class MalformedSnapshotError(MigrationError):
    """Raised when the Trello board export does not have the expected shape."""


class MalformedLedgerError(MigrationError):
    """Raised when the progress ledger on disk fails structural validation."""


class DuplicateMarkError(MigrationError):
    """Raised when a ledger entry that is already done is marked again."""


class ReferenceResolutionError(MigrationError):
    """Raised when a reference that must resolve cannot be resolved."""


class RemoteCallError(MigrationError):
    """Base class for failures of a tracked call against the target API."""

    category: str
    source_id: str
    status: int
    body: Any

    def __init__(self, message: str, *, category: str, source_id: str, status: int, body: Any) -> None:  # noqa: ANN401
        self.category = category
        self.source_id = source_id
        self.status = status
        self.body = body
        super().__init__(f"{category}.{source_id}: {message} (status: {status}, body: {_truncate(body)})")


class RemoteCreateError(RemoteCallError):
    """Raised when the target API answers with a non-2xx status."""


class MalformedResponseError(RemoteCallError):
    """Raised when a 2xx response lacks the expected identity fields."""


def _truncate(body: Any, limit: int = 500) -> str:  # noqa: ANN401
    try:
        text = json.dumps(body)
    except (TypeError, ValueError):
        text = repr(body)
    return text if len(text) <= limit else text[:limit] + "..."
