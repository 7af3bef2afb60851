"""
Cleanup of entities created by a migration run.

Meant for test migrations: after looking at the result, the created
entities can be removed again and the migration re-run from a fresh ledger.
Every kind asks for confirmation by typing ``destroy <kind>``.

Usage:
    destroy-migrated <issues|cards|lists|labels> -c config.json

Kinds:
    issues: close every open issue of the repository (issues cannot be deleted via the API)
    cards:  delete the project cards recorded in the progress ledger
    lists:  delete every column of the project
    labels: delete the labels recorded in the progress ledger, except adopted ones
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from . import github_utils as ghu
from .config import load_config
from .exceptions import MigrationError, RemoteCallError
from .ledger import ProgressLedger
from .orchestrator import ADOPTED_LABELS, LABELS, PROJECT_CARDS
from .utils import setup_logging

if TYPE_CHECKING:
    from .config import MigrationConfig
    from .protocols import TargetApi

logger: logging.Logger = logging.getLogger(__name__)

KINDS = ("issues", "cards", "lists", "labels")


def confirm(question: str, answer: str, *, input_fn: Callable[[str], str] | None = None) -> bool:
    """Ask ``question`` and return True only if the operator types exactly ``answer``."""
    print(question)
    return (input_fn or input)(f'Type "{answer}" to continue: ').strip() == answer


def _delete(api: TargetApi, resource: str, category: str, source_id: str) -> None:
    response = api.delete(resource)
    if not response.ok:
        msg = f"could not delete {resource}"
        raise RemoteCallError(msg, category=category, source_id=source_id, status=response.status, body=response.body)
    print(f"Deleted {resource}")


def destroy_project_cards(api: TargetApi, ledger: ProgressLedger) -> int:
    count = 0
    for source_id in ledger.ids(PROJECT_CARDS):
        card_id = ledger.github_id_or_fail(PROJECT_CARDS, source_id)
        _delete(api, ghu.project_card_path(card_id), PROJECT_CARDS, source_id)
        count += 1
    return count


def destroy_columns(api: TargetApi, config: MigrationConfig) -> int:
    response = api.list(ghu.columns_path(config.project_id))
    if not response.ok or not isinstance(response.body, list):
        msg = "could not list project columns"
        raise RemoteCallError(
            msg, category="columns", source_id=str(config.project_id), status=response.status, body=response.body
        )
    for column in response.body:
        _delete(api, ghu.column_path(column["id"]), "columns", str(column["id"]))
    return len(response.body)


def destroy_labels(api: TargetApi, ledger: ProgressLedger, config: MigrationConfig) -> int:
    """Delete the labels the migration created. Adopted labels existed before and are kept."""
    adopted = set(ledger.ids(ADOPTED_LABELS))
    label_ids = {
        ledger.github_id_or_fail(LABELS, source_id) for source_id in ledger.ids(LABELS) if source_id not in adopted
    }
    response = api.list(ghu.labels_path(config.owner, config.repo))
    if not response.ok or not isinstance(response.body, list):
        msg = "could not list repository labels"
        raise RemoteCallError(msg, category=LABELS, source_id=config.repo_path, status=response.status, body=response.body)
    count = 0
    for label in response.body:
        if label.get("id") in label_ids:
            _delete(api, ghu.label_path(config.owner, config.repo, label["name"]), LABELS, str(label["id"]))
            count += 1
    return count


def destroy(kind: str, config: MigrationConfig, token: str) -> int:
    """Remove the migrated entities of ``kind``. Returns how many were removed."""
    client = ghu.get_client(token)
    if kind == "issues":
        repo = ghu.validate_access(client, config.repo_path)
        return ghu.close_open_issues(repo)

    api = ghu.GitHubApi(client)
    if kind == "lists":
        return destroy_columns(api, config)

    ledger = ProgressLedger(config.progress, create_missing=False)
    if kind == "cards":
        return destroy_project_cards(api, ledger)
    if kind == "labels":
        return destroy_labels(api, ledger, config)

    msg = f"Unknown kind '{kind}'. Choose from: {', '.join(KINDS)}"
    raise ValueError(msg)


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point for the cleanup script."""
    parser = argparse.ArgumentParser(
        description="Remove entities created by a (test) migration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""
            Examples:
              destroy-migrated cards -c config.json     # Delete migrated project cards
              destroy-migrated issues -c config.json    # Close all open issues
        """),
    )
    _ = parser.add_argument("kind", choices=KINDS, help="What to remove")
    _ = parser.add_argument("--config", "-c", required=True, help="Migration config file (JSON)")
    _ = parser.add_argument(
        "--github-pass-token", help="Path for GitHub token in pass utility (default: github/cli/token)"
    )
    args = parser.parse_args(argv)

    setup_logging(verbosity=1, log_file=None)

    try:
        config = load_config(args.config)
        if not confirm(f"This will remove all migrated {args.kind} of {config.repo_path}.", f"destroy {args.kind}"):
            print("Aborted, nothing was changed.")
            sys.exit(1)
        count = destroy(args.kind, config, ghu.get_token(args.github_pass_token))
    except MigrationError as e:
        logger.error(f"Cleanup failed: {e}")  # noqa: TRY400
        sys.exit(1)

    print(f"Removed {count} {args.kind}.")


if __name__ == "__main__":
    main()
