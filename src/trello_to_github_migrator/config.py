"""
Migration settings, read from a JSON config file.

Example::

    {
      "owner": "gocd",
      "repo": "gocd",
      "project_id": 2748526,
      "ref": "master",
      "progress": "progress.json",
      "paranoid": false,
      "members": {"arvind_sv": "arvindsv"}
    }
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .exceptions import ConfigurationError
from .utils import load_json

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_REF = "master"
DEFAULT_PROGRESS_FILE = "progress.json"

_KNOWN_KEYS = frozenset({"owner", "repo", "project_id", "ref", "progress", "paranoid", "members"})


@dataclass(frozen=True)
class MigrationConfig:
    owner: str
    repo: str
    project_id: int
    ref: str = DEFAULT_REF
    progress: Path = Path(DEFAULT_PROGRESS_FILE)
    paranoid: bool = False
    members: Mapping[str, str] = field(default_factory=dict)
    """Trello username -> GitHub login."""

    @property
    def repo_path(self) -> str:
        return f"{self.owner}/{self.repo}"


def _require_str(data: Mapping[str, Any], key: str, default: str | None = None) -> str:
    value = data.get(key, default)
    if not isinstance(value, str) or not value.strip():
        msg = f"Config key '{key}' must be a non-empty string"
        raise ConfigurationError(msg)
    return value.strip()


def parse_config(data: object, base_dir: Path | None = None) -> MigrationConfig:
    """Validate a parsed config document.

    Relative ``progress`` paths are resolved against ``base_dir``.
    """
    if not isinstance(data, Mapping):
        msg = "Config must be a JSON object"
        raise ConfigurationError(msg)

    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        msg = f"Unknown config key(s): {', '.join(unknown)}"
        raise ConfigurationError(msg)

    project_id = data.get("project_id")
    if not isinstance(project_id, int) or isinstance(project_id, bool) or project_id <= 0:
        msg = "Config key 'project_id' must be a positive integer"
        raise ConfigurationError(msg)

    paranoid = data.get("paranoid", False)
    if not isinstance(paranoid, bool):
        msg = "Config key 'paranoid' must be true or false"
        raise ConfigurationError(msg)

    members = data.get("members", {})
    if not isinstance(members, Mapping) or not all(
        isinstance(k, str) and isinstance(v, str) and v for k, v in members.items()
    ):
        msg = "Config key 'members' must map Trello usernames to GitHub logins"
        raise ConfigurationError(msg)

    progress = Path(_require_str(data, "progress", DEFAULT_PROGRESS_FILE))
    if base_dir is not None and not progress.is_absolute():
        progress = base_dir / progress

    return MigrationConfig(
        owner=_require_str(data, "owner"),
        repo=_require_str(data, "repo"),
        project_id=project_id,
        ref=_require_str(data, "ref", DEFAULT_REF),
        progress=progress,
        paranoid=paranoid,
        members=dict(members),
    )


def load_config(path: str | Path) -> MigrationConfig:
    """Load and validate the config file at ``path``.

    Raises:
        ConfigurationError: If the file is missing, not JSON, or invalid
    """
    config_path = Path(path)
    try:
        data = load_json(config_path)
    except FileNotFoundError as e:
        msg = f"Config file {config_path} does not exist"
        raise ConfigurationError(msg) from e
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        msg = f"Could not read config file {config_path}: {e}"
        raise ConfigurationError(msg) from e

    config = parse_config(data, base_dir=config_path.parent)
    logger.debug(f"Loaded config for {config.repo_path} (project {config.project_id}) from {config_path}")
    return config
