from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from typing import Any, Final
from urllib.parse import quote

import requests
from github import Auth, Github, GithubException, UnknownObjectException
from github.Repository import Repository
from github.Requester import Requester

from . import utils
from .exceptions import ConfigurationError, MigrationError
from .models import ApiResponse

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VARS: Final = ("GITHUB_TOKEN", "GH_TOKEN")
_DEFAULT_TOKEN_PASS_PATH: Final = "github/cli/token"

# Classic projects (columns, cards) are only served with the inertia preview
INERTIA_PREVIEW: Final = "application/vnd.github.inertia-preview+json"
PAGE_SIZE: Final = 100


def get_token(pass_path: str | None = None) -> str:
    """Get GitHub token from pass path, env vars GITHUB_TOKEN/GH_TOKEN, or default pass location."""
    if pass_path:
        try:
            return utils.get_pass_value(pass_path)
        except (utils.PassError, ValueError) as e:
            msg = f"Could not read GitHub token from pass path '{pass_path}': {e}"
            raise ConfigurationError(msg) from e

    for env_var in _TOKEN_ENV_VARS:
        token = os.environ.get(env_var)
        if token:
            return token

    try:
        return utils.get_pass_value(_DEFAULT_TOKEN_PASS_PATH)
    except (utils.PassError, ValueError) as e:
        msg = f"No GitHub token found. Set {' or '.join(_TOKEN_ENV_VARS)}, or pass --github-pass-token."
        raise ConfigurationError(msg) from e


def get_client(token: str) -> Github:
    """Get a GitHub client using the token."""
    return Github(auth=Auth.Token(token))


def get_repo(client: Github, repo_path: str) -> Repository | None:
    try:
        return client.get_repo(repo_path)
    except UnknownObjectException as e:
        if e.status == 404:
            return None
        msg = f"Error checking repository existence: {e}"
        raise MigrationError(msg) from e


def validate_access(client: Github, repo_path: str) -> Repository:
    """Validate that the token works and the target repository exists."""
    try:
        login = client.get_user().login
        logger.info(f"GitHub API access validated as {login}")
    except GithubException as e:
        msg = f"GitHub API access failed: {e}"
        raise ConfigurationError(msg) from e

    repo = get_repo(client, repo_path)
    if repo is None:
        msg = f"GitHub repository {repo_path} does not exist or is not accessible"
        raise ConfigurationError(msg)
    return repo


def close_open_issues(repo: Repository) -> int:
    """Close every open issue of ``repo``. Returns the number of issues closed."""
    closed = 0
    for issue in repo.get_issues(state="open"):
        if issue.pull_request is not None:
            continue
        issue.edit(state="closed")
        logger.info(f"Closed issue #{issue.number}")
        closed += 1
    return closed


# Resource paths used by the migration


def columns_path(project_id: int) -> str:
    return f"/projects/{project_id}/columns"


def column_path(column_id: int) -> str:
    return f"/projects/columns/{column_id}"


def column_cards_path(column_id: int) -> str:
    return f"/projects/columns/{column_id}/cards"


def project_card_path(card_id: int) -> str:
    return f"/projects/columns/cards/{card_id}"


def labels_path(owner: str, repo: str) -> str:
    return f"/repos/{owner}/{repo}/labels"


def label_path(owner: str, repo: str, name: str) -> str:
    return f"/repos/{owner}/{repo}/labels/{quote(name, safe='')}"


def issues_path(owner: str, repo: str) -> str:
    return f"/repos/{owner}/{repo}/issues"


def issue_path(owner: str, repo: str, number: int) -> str:
    return f"/repos/{owner}/{repo}/issues/{number}"


def issue_comments_path(owner: str, repo: str, number: int) -> str:
    return f"/repos/{owner}/{repo}/issues/{number}/comments"


def _decode_body(data: Any) -> Any:  # noqa: ANN401
    """Parse a raw response body. Empty bodies become None, non-JSON stays text."""
    if not isinstance(data, str):
        return data
    if not data.strip():
        return None
    try:
        return json.loads(data)
    except ValueError:
        return data


def _next_page_url(headers: Mapping[str, Any]) -> str | None:
    link = next((value for key, value in headers.items() if key.lower() == "link"), None)
    if not link:
        return None
    for entry in requests.utils.parse_header_links(link):
        if entry.get("rel") == "next":
            return entry.get("url")
    return None


class GitHubApi:
    """``TargetApi`` implementation on top of PyGithub's requester.

    Classic projects have no typed PyGithub API, so the REST calls are made
    through the client's requester. It keeps the client's authentication,
    retries and rate limiting.

    Non-2xx responses are returned as they are; deciding whether they are
    fatal is up to the caller.
    """

    _requester: Requester

    def __init__(self, client: Github) -> None:
        self._requester = client.requester

    def _request(
        self,
        verb: str,
        url: str,
        *,
        payload: Mapping[str, Any] | None = None,
        parameters: Mapping[str, Any] | None = None,
    ) -> tuple[ApiResponse, dict[str, Any]]:
        status, headers, data = self._requester.requestJson(
            verb,
            url,
            parameters=dict(parameters) if parameters is not None else None,
            headers={"Accept": INERTIA_PREVIEW},
            input=dict(payload) if payload is not None else None,
        )
        logger.debug(f"{verb} {url} -> {status}")
        return ApiResponse(status=status, body=_decode_body(data)), headers

    def create(self, resource: str, payload: Mapping[str, Any]) -> ApiResponse:
        return self._request("POST", resource, payload=payload)[0]

    def update(self, resource: str, payload: Mapping[str, Any]) -> ApiResponse:
        return self._request("PATCH", resource, payload=payload)[0]

    def delete(self, resource: str) -> ApiResponse:
        return self._request("DELETE", resource)[0]

    def list(self, resource: str) -> ApiResponse:
        """GET ``resource``. Collection responses are followed across all pages."""
        first, headers = self._request("GET", resource, parameters={"per_page": PAGE_SIZE})
        if not first.ok or not isinstance(first.body, list):
            return first

        items: list[Any] = list(first.body)
        last = first
        next_url = _next_page_url(headers)
        while next_url:
            last, headers = self._request("GET", next_url)
            if not last.ok:
                return last
            items.extend(last.body or [])
            next_url = _next_page_url(headers)
        return ApiResponse(status=last.status, body=items)
