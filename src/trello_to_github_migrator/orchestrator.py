"""Migration orchestrator that moves a Trello board into GitHub.

The Migrator runs a fixed sequence of stages. Each stage creates or updates
one kind of GitHub entity, one entity at a time, and every call goes through
the progress ledger so that nothing is ever created twice.

Migration Flow
--------------
Stage 1: lists
    Trello lists (by position) become columns of the classic project.

Stage 2: labels
    Trello labels become repository labels. Colors are translated through
    a fixed palette. Labels that already exist on GitHub are adopted and
    also recorded under ``labels.adopted``.

Stage 3: issues
    Cards (by short number) become issues with the first-pass body.
    Card links inside still point at Trello, because the issues they refer
    to may not exist yet. The issue number is recorded next to the issue id
    under ``cards.number``.

Stage 4: issue-updates
    Every issue body is rendered again. Now every card has an issue
    number, so Trello card links are rewritten to ``#<number>``. The issue
    state is set to closed for archived cards.

Stage 5: comments
    Comments are added to their card's issue, oldest first.

Stage 6: project-cards
    Each issue is placed in the column its card's list became.

Stage 7: archive
    Project cards of archived Trello cards are archived.

Resuming
--------
Each stage finishes (and the ledger is flushed) before the next starts.
Operations within a stage run strictly one after another. The first
failure aborts the run, but the ledger holds every operation that
succeeded, so running again skips those and continues at the failed one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from functools import partial
from operator import attrgetter
from typing import TYPE_CHECKING

from . import github_utils as ghu
from .exceptions import ConfigurationError
from .issue_builder import RenderContext, build_comment_body, build_issue_body, build_issue_payload
from .labels import is_already_exists_error, label_payload, unique_labels
from .ledger import TrackOutcome
from .models import sorted_by_pos
from .queries import CardIndex, ChecklistIndex, CommentIndex, MemberIndex, UploadIndex
from .references import ISSUE_NUMBER_CATEGORY, remap_links_to_github

if TYPE_CHECKING:
    from .config import MigrationConfig
    from .ledger import ProgressLedger
    from .models import ApiResponse, Board, Card, Comment, Label, TrelloList
    from .protocols import TargetApi

logger = logging.getLogger(__name__)

LISTS = "lists"
LABELS = "labels"
ADOPTED_LABELS = "labels.adopted"
CARDS = "cards"
CARD_STATES = "cards.state"
COMMENTS = "comments"
PROJECT_CARDS = "project-cards"
ARCHIVED_PROJECT_CARDS = "project-cards.archived"

STAGE_NAMES: tuple[str, ...] = ("lists", "labels", "issues", "issue-updates", "comments", "project-cards", "archive")


@dataclass
class StageStats:
    created: int = 0
    skipped: int = 0

    def count(self, outcome: TrackOutcome) -> None:
        if outcome is TrackOutcome.CREATED:
            self.created += 1
        else:
            self.skipped += 1


@dataclass
class MigrationStats:
    """Statistics collected during migration."""

    stages: dict[str, StageStats] = field(default_factory=dict)
    orphaned_comments: int = 0


@dataclass(frozen=True)
class Stage:
    name: str
    title: str
    run: Callable[[StageStats], None]


class Migrator:
    """Orchestrates the migration of a Trello board to a GitHub repository and project.

    Usage:
        ledger = ProgressLedger(config.progress)
        migrator = Migrator(board, GitHubApi(get_client(token)), ledger, config)
        stats = migrator.migrate()
    """

    _board: Board
    _api: TargetApi
    _ledger: ProgressLedger
    _config: MigrationConfig

    def __init__(self, board: Board, api: TargetApi, ledger: ProgressLedger, config: MigrationConfig) -> None:
        self._board = board
        self._api = api
        self._ledger = ledger
        self._config = config

        self.cards: CardIndex = CardIndex(board.cards)
        self.comments: CommentIndex = CommentIndex(board.comments)
        self.context: RenderContext = RenderContext(
            cards=self.cards,
            members=MemberIndex(board.members, config.members),
            checklists=ChecklistIndex(board.checklists),
            uploads=UploadIndex(board.cards, owner=config.owner, repo=config.repo, ref=config.ref),
        )
        self._labels_by_id: dict[str, Label] = {label.id: label for label in board.labels}
        self._adopted_labels: set[str] = set()
        self._remap_links: Callable[[str], str] = remap_links_to_github(self.cards, ledger)
        self.orphaned_comments: int = sum(1 for c in board.comments if self.cards.by_id(c.card_id) is None)

    def stages(self) -> list[Stage]:
        """All stages in the order they must run."""
        return [
            Stage("lists", "Lists", self.migrate_lists),
            Stage("labels", "Labels", self.migrate_labels),
            Stage("issues", "Issues", self.create_issues),
            Stage("issue-updates", "Issue bodies and states", self.update_issues),
            Stage("comments", "Comments", self.migrate_comments),
            Stage("project-cards", "Project cards", self.create_project_cards),
            Stage("archive", "Archived project cards", self.archive_project_cards),
        ]

    def migrate(self, *, only: Sequence[str] | None = None) -> MigrationStats:
        """Run the selected stages (all by default) in canonical order.

        Raises:
            ConfigurationError: If ``only`` names an unknown stage
            MigrationError: If any operation fails; the ledger keeps everything done so far
        """
        if only is not None:
            unknown = sorted(set(only) - set(STAGE_NAMES))
            if unknown:
                msg = f"Unknown stage(s): {', '.join(unknown)}. Choose from: {', '.join(STAGE_NAMES)}"
                raise ConfigurationError(msg)

        stats = MigrationStats()
        selected = [stage for stage in self.stages() if only is None or stage.name in only]
        try:
            for stage in selected:
                self._run_stage(stage, stats)
            if "comments" in (stage.name for stage in selected):
                stats.orphaned_comments = self.orphaned_comments
        finally:
            self._ledger.flush()
        return stats

    def _run_stage(self, stage: Stage, stats: MigrationStats) -> None:
        stage_stats = StageStats()
        stats.stages[stage.name] = stage_stats
        print(f"Migrating {stage.title}...")
        try:
            stage.run(stage_stats)
        finally:
            self._ledger.flush()
        print(f"{stage.title} migrated ({stage_stats.created} created, {stage_stats.skipped} already done).")

    def _issue_order(self) -> list[Card]:
        """Cards in Trello creation order, which becomes the issue numbering order."""
        return sorted(self._board.cards, key=attrgetter("id_short"))

    def _board_order(self) -> list[Card]:
        """Cards grouped by list position, then by their position in the list."""
        rank = {lst.id: i for i, lst in enumerate(sorted_by_pos(self._board.lists))}
        return sorted(self._board.cards, key=lambda c: (rank.get(c.id_list, len(rank)), c.pos))

    # Stage 1

    def migrate_lists(self, stats: StageStats) -> None:
        for lst in sorted_by_pos(self._board.lists):
            stats.count(self._ledger.track(LISTS, lst.id, partial(self._create_column, lst)))

    def _create_column(self, lst: TrelloList) -> ApiResponse:
        return self._api.create(ghu.columns_path(self._config.project_id), {"name": lst.name})

    # Stage 2

    def migrate_labels(self, stats: StageStats) -> None:
        for label in unique_labels(self._board.labels):
            outcome = self._ledger.track(LABELS, label.id, partial(self._create_label, label))
            if label.id in self._adopted_labels and not self._ledger.is_done(ADOPTED_LABELS, label.id):
                # adopted labels predate the migration; destroy-migrated leaves them alone
                self._ledger.mark_done(ADOPTED_LABELS, label.id, self._ledger.github_id_or_fail(LABELS, label.id))
            stats.count(outcome)

    def _create_label(self, label: Label) -> ApiResponse:
        owner, repo = self._config.owner, self._config.repo
        response = self._api.create(ghu.labels_path(owner, repo), label_payload(label))
        if response.status == 422 and is_already_exists_error(response.body):
            # e.g. GitHub's default "bug" label; adopt it instead of failing
            logger.info(f"Label {label.display_name} already exists on GitHub; using the existing one")
            self._adopted_labels.add(label.id)
            return self._api.list(ghu.label_path(owner, repo, label.display_name))
        return response

    # Stage 3

    def create_issues(self, stats: StageStats) -> None:
        for card in self._issue_order():
            outcome = self._ledger.track(CARDS, card.id, partial(self._create_issue, card), extra_fields=("number",))
            stats.count(outcome)

    def _create_issue(self, card: Card) -> ApiResponse:
        body = build_issue_body(card, self.context)
        payload = build_issue_payload(card, self.context, self._labels_by_id, body)
        return self._api.create(ghu.issues_path(self._config.owner, self._config.repo), payload)

    # Stage 4

    def update_issues(self, stats: StageStats) -> None:
        for card in self._issue_order():
            stats.count(self._ledger.track(CARD_STATES, card.id, partial(self._update_issue, card)))

    def _update_issue(self, card: Card) -> ApiResponse:
        number = self._ledger.github_id_or_fail(ISSUE_NUMBER_CATEGORY, card.id)
        payload = {
            "body": self._remap_links(build_issue_body(card, self.context)),
            "state": "closed" if card.closed else "open",
        }
        return self._api.update(ghu.issue_path(self._config.owner, self._config.repo, number), payload)

    # Stage 5

    def migrate_comments(self, stats: StageStats) -> None:
        if self.orphaned_comments:
            logger.warning(f"Skipping {self.orphaned_comments} comments that belong to cards missing from the export")
        for card in self._issue_order():
            for comment in self.comments.for_card(card.id):
                stats.count(self._ledger.track(COMMENTS, comment.id, partial(self._create_comment, card, comment)))

    def _create_comment(self, card: Card, comment: Comment) -> ApiResponse:
        number = self._ledger.github_id_or_fail(ISSUE_NUMBER_CATEGORY, card.id)
        body = build_comment_body(comment, self.context, self._remap_links)
        return self._api.create(ghu.issue_comments_path(self._config.owner, self._config.repo, number), {"body": body})

    # Stage 6

    def create_project_cards(self, stats: StageStats) -> None:
        for card in self._board_order():
            stats.count(self._ledger.track(PROJECT_CARDS, card.id, partial(self._create_project_card, card)))

    def _create_project_card(self, card: Card) -> ApiResponse:
        column_id = self._ledger.github_id_or_fail(LISTS, card.id_list)
        issue_id = self._ledger.github_id_or_fail(CARDS, card.id)
        return self._api.create(ghu.column_cards_path(column_id), {"content_id": issue_id, "content_type": "Issue"})

    # Stage 7

    def archive_project_cards(self, stats: StageStats) -> None:
        # New project cards are not archived, so only archived Trello cards need a call
        for card in self._board_order():
            if card.closed:
                stats.count(
                    self._ledger.track(ARCHIVED_PROJECT_CARDS, card.id, partial(self._archive_project_card, card))
                )

    def _archive_project_card(self, card: Card) -> ApiResponse:
        project_card_id = self._ledger.github_id_or_fail(PROJECT_CARDS, card.id)
        return self._api.update(ghu.project_card_path(project_card_id), {"archived": True})
