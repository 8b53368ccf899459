"""Rendering helpers for CLI output."""

from __future__ import annotations
from collections.abc import Iterable, Sequence
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from flowpromote.models.deployment import DeploymentRecord, DeploymentResult


_ACTION_STYLES = {
    "created": "green",
    "updated": "cyan",
    "skipped": "yellow",
}


def render_table(
    console: Console,
    *,
    title: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[str]],
) -> None:
    """Render a simple table using :mod:`rich`."""
    table = Table(title=title, show_lines=False)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*row)
    console.print(table)


def render_kv_section(
    console: Console,
    *,
    title: str,
    pairs: Sequence[tuple[str, str]],
) -> None:
    """Render key/value pairs in a bordered panel."""
    lines = [f"[bold]{key}[/]: {value}" for key, value in pairs]
    panel = Panel("\n".join(lines), title=title, expand=False)
    console.print(panel)


def _styled_action(action: str) -> str:
    style = _ACTION_STYLES.get(action)
    return f"[{style}]{action}[/]" if style else action


def render_deployment_result(console: Console, result: DeploymentResult) -> None:
    """Print per-workflow outcomes, the summary and any errors of a run."""
    title = f"Deployment {result.source_env} -> {result.target_env}"
    if result.dry_run:
        title += " (dry run)"

    if result.workflows:
        columns = ["Workflow", "Source ID", "Target ID", "Action", "Credentials"]
        rows = []
        for outcome in result.workflows:
            action = outcome.action.value
            if result.dry_run and outcome.planned_action is not None:
                action = f"{action} (would be {outcome.planned_action.value})"
            rows.append(
                [
                    outcome.workflow_name,
                    outcome.workflow_id,
                    outcome.target_id or "-",
                    _styled_action(action),
                    str(outcome.credentials_transformed),
                ]
            )
        render_table(console, title=title, columns=columns, rows=rows)

    summary = result.summary
    pairs = [
        ("Total", str(summary.total)),
        ("Created", str(summary.created)),
        ("Updated", str(summary.updated)),
        ("Skipped", str(summary.skipped)),
        ("Failed", str(summary.failed)),
    ]
    if result.backup_path:
        pairs.append(("Backup", result.backup_path))
    if result.record_id:
        pairs.append(("Deployment ID", result.record_id))
    render_kv_section(console, title="Summary", pairs=pairs)

    for error in result.errors:
        subject = error.workflow_name or error.workflow_id or "run"
        console.print(
            f"[red]{error.phase.value}[/red] {subject}: {error.message}",
            highlight=False,
        )

    if result.success:
        console.print("[green]Deployment completed.[/green]")
    elif result.partial:
        console.print("[yellow]Deployment completed with errors.[/yellow]")
    else:
        console.print("[red]Deployment failed.[/red]")


def render_records(console: Console, records: Sequence[DeploymentRecord]) -> None:
    """Print deployment records as a table."""
    rows = [
        [
            record.id,
            record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            record.source_env,
            record.target_env,
            str(len(record.resources)),
            record.backup_path or "-",
        ]
        for record in records
    ]
    render_table(
        console,
        title="Deployments",
        columns=["ID", "Time (UTC)", "Source", "Target", "Workflows", "Backup"],
        rows=rows,
    )


__all__ = [
    "render_deployment_result",
    "render_kv_section",
    "render_records",
    "render_table",
]
