"""flowpromote CLI entrypoint."""

from __future__ import annotations
import sys
from functools import partial
from pathlib import Path
from typing import Annotated
import click
import typer
from rich.console import Console
from flowpromote.cli.backup import backup_app
from flowpromote.cli.catalog import credentials_app, env_app
from flowpromote.cli.deploy import deploy_app
from flowpromote.cli.state import CLIContext
from flowpromote.client import create_client
from flowpromote.config import get_settings
from flowpromote.logging_config import configure_logging


app = typer.Typer(help="Promote workflows between environments.")
app.add_typer(deploy_app, name="deploy")
app.add_typer(env_app, name="env")
app.add_typer(credentials_app, name="credentials")
app.add_typer(backup_app, name="backup")


@app.callback()
def main(
    ctx: typer.Context,
    catalog: Annotated[
        Path | None,
        typer.Option("--catalog", help="Path to the environment catalog."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log progress to stderr."),
    ] = False,
) -> None:
    """Configure shared CLI state."""
    console = Console()
    try:
        settings = get_settings()
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc

    configure_logging("INFO" if verbose else settings.LOG_LEVEL)
    client_factory = partial(
        create_client,
        timeout=float(settings.REQUEST_TIMEOUT),
        health_timeout=float(settings.HEALTH_TIMEOUT),
        page_size=int(settings.PAGE_SIZE),
    )
    ctx.obj = CLIContext(
        settings=settings,
        catalog_path=catalog or Path(settings.CATALOG_PATH),
        console=console,
        client_factory=client_factory,
    )


def run() -> None:
    """Entry point used by console scripts."""
    console = Console()
    try:
        exit_code = app(standalone_mode=False)
    except click.UsageError as exc:
        console.print(f"[red]Error:[/red] {exc.message}")
        if exc.ctx and exc.ctx.command_path:
            help_cmd = f"{exc.ctx.command_path} --help"
            console.print(f"\nRun '[cyan]{help_cmd}[/cyan]' for usage information.")
        sys.exit(1)
    if isinstance(exit_code, int) and exit_code:
        sys.exit(exit_code)


__all__ = ["app", "run"]
