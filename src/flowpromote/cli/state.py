"""Runtime state shared across CLI commands."""

from __future__ import annotations
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from dynaconf import Dynaconf
from rich.console import Console
from flowpromote.client import RemoteEnvironmentClient
from flowpromote.models.environment import Environment


ClientFactory = Callable[[Environment], RemoteEnvironmentClient]


@dataclass(slots=True)
class CLIContext:
    """Object stored on :class:`typer.Context` for command access."""

    settings: Dynaconf
    catalog_path: Path
    console: Console
    client_factory: ClientFactory

    @property
    def state_dir(self) -> Path:
        """Directory holding deployment records."""
        return Path(self.settings.STATE_DIR)

    @property
    def backup_dir(self) -> Path:
        """Directory holding environment snapshots."""
        return Path(self.settings.BACKUP_DIR)


__all__ = ["CLIContext", "ClientFactory"]
