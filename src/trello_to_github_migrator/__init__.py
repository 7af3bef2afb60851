"""
Trello to GitHub Migration Tool

Migrates a Trello board to GitHub issues, labels and a classic project board,
resumably: every created entity is recorded in a progress ledger so that an
interrupted run can simply be started again.
"""

from __future__ import annotations

from .cli import main
from .config import MigrationConfig, load_config
from .exceptions import MigrationError
from .ledger import ProgressLedger
from .orchestrator import Migrator
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "MigrationConfig",
    "MigrationError",
    "Migrator",
    "ProgressLedger",
    "load_config",
    "main",
    "setup_logging",
]
