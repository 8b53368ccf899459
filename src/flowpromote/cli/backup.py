"""Snapshot commands: list, create, restore and prune."""

from __future__ import annotations
import asyncio
from pathlib import Path
import typer
from flowpromote.backup.engine import create_backup, restore_backup
from flowpromote.backup.models import (
    BackupResult,
    RestoreMode,
    RestoreOptions,
    RestoreResult,
)
from flowpromote.backup.storage import (
    BackupError,
    find_backup_path,
    list_backups,
    prune_old_backups,
)
from flowpromote.cli.render import render_table
from flowpromote.cli.state import CLIContext
from flowpromote.cli.utils import (
    abort_with_error,
    get_context,
    load_context_catalog,
    open_client,
    parse_ids,
    resolve_environment,
)
from flowpromote.deploy.records import DeploymentRecordStore
from flowpromote.models.environment import Environment


backup_app = typer.Typer(help="Create, restore and inspect environment backups.")


def _referenced_backups(context: CLIContext) -> list[str]:
    records = DeploymentRecordStore(context.state_dir).list()
    return [record.backup_path for record in records if record.backup_path]


def _prune(context: CLIContext, retention: int | None) -> list[str]:
    keep = retention or int(context.settings.BACKUP_RETENTION)
    return prune_old_backups(
        context.backup_dir, keep, protected=_referenced_backups(context)
    )


@backup_app.command("list")
def list_backup_snapshots(ctx: typer.Context) -> None:
    """List snapshots stored in the backup directory, newest first."""
    context = get_context(ctx)
    backups = list_backups(context.backup_dir)
    if not backups:
        context.console.print("[yellow]No backups found.[/yellow]")
        return
    render_table(
        context.console,
        title="Backups",
        columns=["ID", "Time (UTC)", "Environment", "Workflows"],
        rows=[
            [
                item.id,
                item.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                item.environment,
                str(item.workflow_count),
            ]
            for item in backups
        ],
    )


async def _create(
    context: CLIContext,
    environment: Environment,
    workflow_ids: tuple[str, ...] | None,
    strip_credentials: bool,
    description: str | None,
) -> BackupResult:
    async with open_client(context, environment) as client:
        return await create_backup(
            client,
            base_dir=context.backup_dir,
            environment=environment.name,
            base_url=environment.connection.url,
            workflow_ids=workflow_ids,
            strip_credentials=strip_credentials,
            description=description,
        )


@backup_app.command("create")
def create_snapshot(
    ctx: typer.Context,
    env: str = typer.Argument(..., help="Environment to back up."),
    workflows: str | None = typer.Option(
        None, "--workflows", "-w", help="Comma separated workflow IDs."
    ),
    strip_credentials: bool = typer.Option(
        False, "--strip-credentials", help="Drop credential references from bodies."
    ),
    description: str | None = typer.Option(
        None, "--description", help="Note stored in the manifest."
    ),
    cleanup: bool = typer.Option(
        False, "--cleanup", help="Apply the retention policy afterwards."
    ),
    retention: int | None = typer.Option(
        None, "--retention", min=1, help="Snapshots to keep when cleaning up."
    ),
) -> None:
    """Snapshot the workflows of ENV."""
    context = get_context(ctx)
    catalog = load_context_catalog(context)
    environment = resolve_environment(context, catalog, env)
    result = asyncio.run(
        _create(
            context, environment, parse_ids(workflows), strip_credentials, description
        )
    )
    if result.error:
        abort_with_error(context, BackupError(result.error))
    context.console.print(
        f"[green]Backed up {result.success_count} workflow(s)[/green] "
        f"to {result.backup_path}",
        highlight=False,
    )
    for workflow_id in result.failed_workflows:
        context.console.print(f"[red]Could not back up {workflow_id}[/red]")

    if cleanup:
        pruned = _prune(context, retention)
        context.console.print(f"Pruned {len(pruned)} old backup(s).")
    if not result.success:
        raise typer.Exit(code=1)


async def _restore(
    context: CLIContext,
    environment: Environment,
    backup_dir: Path,
    options: RestoreOptions,
) -> RestoreResult:
    async with open_client(context, environment) as client:
        return await restore_backup(client, backup_dir, options)


@backup_app.command("restore")
def restore_snapshot(
    ctx: typer.Context,
    backup_id: str = typer.Argument(..., help="Backup ID to restore."),
    env: str = typer.Argument(..., help="Environment to restore into."),
    mode: RestoreMode = typer.Option(
        RestoreMode.OVERWRITE,
        "--mode",
        case_sensitive=False,
        help="Overwrite same-named workflows or skip them.",
    ),
    workflows: str | None = typer.Option(
        None, "--workflows", "-w", help="Comma separated backed-up workflow IDs."
    ),
    activate: bool = typer.Option(
        False, "--activate", help="Activate workflows after restoring them."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="List what would be restored without writing."
    ),
) -> None:
    """Write the workflows of BACKUP_ID into ENV."""
    context = get_context(ctx)
    try:
        backup_dir = find_backup_path(context.backup_dir, backup_id)
    except BackupError as exc:
        abort_with_error(context, exc)
    catalog = load_context_catalog(context)
    environment = resolve_environment(context, catalog, env)
    options = RestoreOptions(
        mode=mode,
        activate=activate,
        target_ids=parse_ids(workflows),
        dry_run=dry_run,
    )
    result = asyncio.run(_restore(context, environment, backup_dir, options))
    if result.error:
        abort_with_error(context, BackupError(result.error))

    rows = []
    for item in result.workflows:
        if item.success and item.action is not None:
            outcome = item.action.value
        else:
            outcome = f"[red]failed[/red] {item.error or ''}".rstrip()
        rows.append([item.name, item.original_id, item.restored_id or "-", outcome])
    title = f"Restore {result.backup_id} -> {env}"
    if dry_run:
        title += " (dry run)"
    render_table(
        context.console,
        title=title,
        columns=["Workflow", "Backup ID", "Restored ID", "Outcome"],
        rows=rows,
    )
    context.console.print(
        f"Restored {result.success_count}, skipped {result.skipped_count}, "
        f"failed {result.failed_count}."
    )
    if not result.success:
        raise typer.Exit(code=1)


@backup_app.command("prune")
def prune_snapshots(
    ctx: typer.Context,
    retention: int | None = typer.Option(
        None, "--retention", min=1, help="Snapshots to keep; defaults to settings."
    ),
) -> None:
    """Delete old snapshots that no deployment record points to."""
    context = get_context(ctx)
    pruned = _prune(context, retention)
    if not pruned:
        context.console.print("Nothing to prune.")
        return
    for backup_id in pruned:
        context.console.print(f"Deleted {backup_id}")
    context.console.print(f"Pruned {len(pruned)} old backup(s).")


__all__ = ["backup_app"]
