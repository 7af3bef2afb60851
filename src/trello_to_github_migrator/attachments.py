"""Download of uploaded Trello attachments.

Uploads are stored in the target repository under a content-addressed key
(see ``queries.upload_key``). This module fetches every upload into a local
directory laid out by that key; the operator commits the directory to the
branch configured as ``ref`` so the rewritten links in issue bodies resolve.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import requests

from .exceptions import MigrationError
from .queries import UploadIndex
from .snapshot import load_board
from .utils import is_regular_file, setup_logging

if TYPE_CHECKING:
    from .queries import Upload

logger: logging.Logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 60.0
CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class DownloadSummary:
    downloaded: int
    skipped: int


def trello_session() -> requests.Session:
    """Session for fetching uploads, authenticated if TRELLO_APP and TRELLO_TOKEN are set."""
    session = requests.Session()
    app_key = os.environ.get("TRELLO_APP")
    token = os.environ.get("TRELLO_TOKEN")
    if app_key and token:
        session.headers["Authorization"] = f'OAuth oauth_consumer_key="{app_key}", oauth_token="{token}"'
    else:
        logger.info("TRELLO_APP/TRELLO_TOKEN not set; downloading attachments anonymously")
    return session


def download_upload(upload: Upload, dest_dir: Path, session: requests.Session) -> bool:
    """Download one upload to ``dest_dir / upload.key``.

    Returns:
        False if the file was already present, True if it was downloaded

    Raises:
        MigrationError: If the download fails; no partial file is left behind
    """
    target = dest_dir / upload.key
    if is_regular_file(target):
        logger.debug(f"Already downloaded {upload.url}")
        return False

    target.parent.mkdir(parents=True, exist_ok=True)
    print(f"fetching {upload.url}")
    try:
        with session.get(upload.url, stream=True, timeout=DOWNLOAD_TIMEOUT) as response:
            response.raise_for_status()
            with target.open("wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    _ = f.write(chunk)
    except (requests.RequestException, OSError) as e:
        target.unlink(missing_ok=True)
        msg = f"Failed to save {upload.url} to {target}: {e}"
        raise MigrationError(msg) from e

    logger.debug(f"Downloaded {upload.url} to {target}")
    return True


def download_uploads(uploads: Iterable[Upload], dest_dir: str | Path, session: requests.Session) -> DownloadSummary:
    """Download every upload, skipping the ones already on disk. Stops at the first failure."""
    downloaded = skipped = 0
    for upload in uploads:
        if download_upload(upload, Path(dest_dir), session):
            downloaded += 1
        else:
            skipped += 1
    return DownloadSummary(downloaded=downloaded, skipped=skipped)


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Download uploaded Trello attachments for committing to GitHub")
    _ = parser.add_argument("snapshot", help="Trello board JSON export")
    _ = parser.add_argument("--dest", default=".", help="Directory to download into (default: .)")
    _ = parser.add_argument("--verbose", "-v", action="count", default=0)
    args = parser.parse_args(argv)

    setup_logging(verbosity=args.verbose, log_file=None)

    try:
        board, _tree = load_board(args.snapshot)
        # owner/repo/ref only matter for public URLs, not for storage keys
        uploads = UploadIndex(board.cards, owner="", repo="", ref="")
        with trello_session() as session:
            summary = download_uploads(uploads, args.dest, session)
    except MigrationError as e:
        logger.error(f"Download failed: {e}")  # noqa: TRY400
        sys.exit(1)

    print(f"done. {summary.downloaded} downloaded, {summary.skipped} already present.")


if __name__ == "__main__":
    main()
