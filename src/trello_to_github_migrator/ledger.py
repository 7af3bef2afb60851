"""Persistent progress ledger.

The ledger maps ``(category, source id)`` to the numeric id GitHub assigned
when the corresponding entity was created. It is the gate that makes the
migration idempotent: an operation whose entry exists is never repeated, and
an operation that failed leaves no entry, so re-running retries it.

On disk the ledger is a JSON document::

    {
      "lists": {"5ca52ff089ca8d6fe7bafc13": 5341023},
      "cards.number": {"5ceedf1bc6515254e2db2b28": 17}
    }
"""

from __future__ import annotations

import copy
import enum
import json
import logging
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .exceptions import (
    DuplicateMarkError,
    MalformedLedgerError,
    MalformedResponseError,
    ReferenceResolutionError,
    RemoteCreateError,
)
from .utils import is_regular_file, load_json, write_json

if TYPE_CHECKING:
    from .models import ApiResponse

logger: logging.Logger = logging.getLogger(__name__)


class TrackOutcome(enum.Enum):
    CREATED = "created"
    SKIPPED = "skipped"


def is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_ledger(data: object) -> dict[str, dict[str, int]]:
    """Check that ``data`` is a mapping of category -> source id -> positive integer.

    Raises:
        MalformedLedgerError: If any level has the wrong shape
    """
    if not isinstance(data, Mapping):
        msg = f"Expected the ledger to be an object, got {type(data).__name__}"
        raise MalformedLedgerError(msg)

    validated: dict[str, dict[str, int]] = {}
    for category, subtree in data.items():
        if not isinstance(subtree, Mapping):
            msg = f"Expected ledger category '{category}' to be an object, got {type(subtree).__name__}"
            raise MalformedLedgerError(msg)
        for source_id, remote_id in subtree.items():
            if not is_positive_int(remote_id):
                msg = f"Expected ledger entry {category}.{source_id} to be a positive integer, got {remote_id!r}"
                raise MalformedLedgerError(msg)
        validated[category] = dict(subtree)
    return validated


class ProgressLedger:
    """Records how far the migration got, so it can resume after an interruption."""

    _path: Path
    _flush_on_mark: bool
    _contents: dict[str, dict[str, int]]

    def __init__(self, path: str | Path, *, flush_on_mark: bool = False, create_missing: bool = True) -> None:
        """Load the ledger at ``path``, creating an empty one if it does not exist.

        Args:
            path: Location of the JSON ledger file
            flush_on_mark: Write the file after every ``mark_done`` instead of only on ``flush``
            create_missing: Write an empty ledger file when ``path`` does not exist

        Raises:
            MalformedLedgerError: If the existing file is not a valid ledger
        """
        self._path = Path(path)
        self._flush_on_mark = flush_on_mark

        if is_regular_file(self._path):
            try:
                data = load_json(self._path)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                msg = f"Ledger file {self._path} is not valid JSON: {e}"
                raise MalformedLedgerError(msg) from e
            self._contents = validate_ledger(data)
            logger.info(f"Loaded progress ledger {self._path} ({len(self)} entries)")
        else:
            self._contents = {}
            if create_missing:
                self.flush()

    @property
    def path(self) -> Path:
        return self._path

    def __len__(self) -> int:
        return sum(len(subtree) for subtree in self._contents.values())

    def is_done(self, category: str, source_id: str) -> bool:
        subtree = self._contents.get(category)
        return subtree is not None and is_positive_int(subtree.get(source_id))

    def github_id(self, category: str, source_id: str) -> int | None:
        if self.is_done(category, source_id):
            return self._contents[category][source_id]
        return None

    def github_id_or_fail(self, category: str, source_id: str) -> int:
        """Return the recorded id for a dependency that must already exist."""
        github_id = self.github_id(category, source_id)
        if github_id is None:
            msg = f"No GitHub id recorded for {category}.{source_id}; was an earlier stage skipped?"
            raise ReferenceResolutionError(msg)
        return github_id

    def mark_done(self, category: str, source_id: str, github_id: int) -> None:
        if self.is_done(category, source_id):
            msg = (
                f"Attempted to mark {category}.{source_id} but it was already marked! "
                f"existing: {self._contents[category][source_id]}; new: {github_id!r}"
            )
            raise DuplicateMarkError(msg)

        if not is_positive_int(github_id):
            msg = f"GitHub id for {category}.{source_id} must be a positive integer, got {github_id!r}"
            raise ValueError(msg)

        self._contents.setdefault(category, {})[source_id] = github_id
        if self._flush_on_mark:
            self.flush()

    def track(
        self,
        category: str,
        source_id: str,
        create: Callable[[], ApiResponse],
        extra_fields: Sequence[str] = (),
    ) -> TrackOutcome:
        """Run ``create`` unless ``category.source_id`` is already done, then record the result.

        The response body must carry a positive integer ``id``. Every name in
        ``extra_fields`` (e.g. ``number`` for issues) must be present as well
        and is recorded under ``category.<name>``.

        Raises:
            RemoteCreateError: If the response status is not 2xx
            MalformedResponseError: If the body lacks a required identity field
        """
        if self.is_done(category, source_id):
            logger.debug(f"Nothing to do for: {category}.{source_id}")
            return TrackOutcome.SKIPPED

        logger.debug(f"Trying {category}.{source_id}...")
        try:
            response = create()

            if not response.ok:
                msg = f"status should be 2XX, but was {response.status}"
                raise RemoteCreateError(
                    msg, category=category, source_id=source_id, status=response.status, body=response.body
                )

            ids: dict[str, int] = {}
            for field_name in ("id", *extra_fields):
                value = response.body.get(field_name) if isinstance(response.body, Mapping) else None
                if not is_positive_int(value):
                    msg = f"expected body.{field_name} to be a positive integer"
                    raise MalformedResponseError(
                        msg, category=category, source_id=source_id, status=response.status, body=response.body
                    )
                ids[field_name] = value
        except Exception:
            logger.exception(f"Failed to create {category} item {source_id} in GitHub")
            raise

        self.mark_done(category, source_id, ids.pop("id"))
        for field_name, value in ids.items():
            self.mark_done(f"{category}.{field_name}", source_id, value)

        logger.info(f"Created {category}.{source_id}")
        return TrackOutcome.CREATED

    def ids(self, category: str) -> list[str]:
        """Source ids recorded in ``category``."""
        return list(self._contents.get(category, {}))

    def as_dict(self) -> dict[str, dict[str, Any]]:
        return copy.deepcopy(self._contents)

    def flush(self) -> None:
        """Write the full ledger to disk."""
        logger.debug(f"Flushing progress ledger to {self._path}")
        write_json(self._path, self._contents)
