"""Protocol defining the contract of the target system API.

The migration engine never talks HTTP directly. Every remote call goes
through a ``TargetApi`` so that:

- the progress ledger can classify each response (status + body) itself
- tests can substitute an in-memory implementation
- the HTTP layer (auth, preview media types, pagination) stays in one place

``resource`` is always an API path relative to the base URL, for example
``/repos/gocd/gocd/issues`` or ``/projects/2748526/columns``.

Example implementations:
    - GitHubApi (github_utils.py): PyGithub requester against api.github.com
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .models import ApiResponse


class TargetApi(Protocol):
    """Protocol for creating data in the target system.

    Implementations must return non-2xx responses instead of raising, so the
    ledger can report them as ``RemoteCreateError`` with full context.
    Transport failures (connection errors, timeouts) may raise.
    """

    def create(self, resource: str, payload: Mapping[str, Any]) -> ApiResponse:
        """Create an entity under ``resource`` (HTTP POST)."""
        ...

    def update(self, resource: str, payload: Mapping[str, Any]) -> ApiResponse:
        """Update the entity at ``resource`` (HTTP PATCH)."""
        ...

    def list(self, resource: str) -> ApiResponse:
        """Fetch ``resource`` (HTTP GET). Collections are returned in full."""
        ...

    def delete(self, resource: str) -> ApiResponse:
        """Delete the entity at ``resource`` (HTTP DELETE)."""
        ...
