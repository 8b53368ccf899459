"""Command line interface for flowpromote."""

from flowpromote.cli.main import app, run


__all__ = ["app", "run"]
