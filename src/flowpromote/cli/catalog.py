"""Commands that inspect the environment catalog."""

from __future__ import annotations
import typer
from flowpromote.cli.render import render_table
from flowpromote.cli.utils import get_context, load_context_catalog
from flowpromote.credentials import list_credential_mappings


env_app = typer.Typer(help="Inspect configured environments.")
credentials_app = typer.Typer(help="Inspect credential mappings.")


@env_app.command("list")
def list_environments(ctx: typer.Context) -> None:
    """List environments from the catalog."""
    context = get_context(ctx)
    catalog = load_context_catalog(context)
    rows = []
    for environment in catalog.environments:
        marker = "*" if environment.name == catalog.current_environment else ""
        rows.append(
            [
                f"{environment.name}{marker}",
                environment.connection.url,
                "yes" if environment.is_default else "",
                environment.description or "",
                ", ".join(environment.tags),
            ]
        )
    render_table(
        context.console,
        title="Environments",
        columns=["Name", "URL", "Default", "Description", "Tags"],
        rows=rows,
    )


def _presence(flag: bool | None) -> str:
    return "[green]yes[/]" if flag else "[red]no[/]"


@credentials_app.command("list")
def list_credentials(ctx: typer.Context) -> None:
    """Show which environments define each logical credential."""
    context = get_context(ctx)
    catalog = load_context_catalog(context)
    summaries = list_credential_mappings(catalog)
    if not summaries:
        context.console.print("[yellow]No credential mappings configured.[/yellow]")
        return
    env_names = catalog.environment_names()
    rows = [
        [
            summary.name,
            summary.type,
            *(_presence(summary.environment_status.get(name)) for name in env_names),
        ]
        for summary in summaries
    ]
    render_table(
        context.console,
        title="Credential mappings",
        columns=["Name", "Type", *env_names],
        rows=rows,
    )


__all__ = ["credentials_app", "env_app"]
