"""Deployment commands."""

from __future__ import annotations
import asyncio
import typer
from flowpromote.cli.render import (
    render_deployment_result,
    render_records,
    render_table,
)
from flowpromote.cli.state import CLIContext
from flowpromote.cli.utils import (
    abort_with_error,
    get_context,
    load_context_catalog,
    open_client,
    parse_ids,
    resolve_environment,
)
from flowpromote.deploy.pipeline import DeploymentPipeline
from flowpromote.deploy.records import DeploymentRecordStore
from flowpromote.deploy.rollback import (
    RollbackOptions,
    RollbackResult,
    rollback_deployment,
    select_resources,
)
from flowpromote.models.deployment import (
    DeploymentOptions,
    DeploymentRecord,
    DeploymentResult,
    DeploymentTarget,
)
from flowpromote.models.environment import Environment, EnvironmentCatalog
from flowpromote.models.workflow import WorkflowSummary
from flowpromote.transfer import index_by_name


deploy_app = typer.Typer(help="Promote workflows between environments.")


async def _run_pipeline(
    context: CLIContext,
    catalog: EnvironmentCatalog,
    source: Environment,
    target: Environment,
    deployment: DeploymentTarget,
    options: DeploymentOptions,
) -> DeploymentResult:
    async with (
        open_client(context, source) as source_client,
        open_client(context, target) as target_client,
    ):
        pipeline = DeploymentPipeline(
            source_client,
            target_client,
            catalog,
            record_store=DeploymentRecordStore(context.state_dir),
            backup_dir=context.backup_dir,
        )
        return await pipeline.run_pipeline(deployment, options)


@deploy_app.command("run")
def run_deployment(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Source environment name."),
    target: str = typer.Argument(..., help="Target environment name."),
    workflows: str | None = typer.Option(
        None, "--workflows", "-w", help="Comma separated source workflow IDs."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Plan the deployment without writing anything."
    ),
    no_backup: bool = typer.Option(
        False, "--no-backup", help="Skip the pre-deployment backup."
    ),
    activate: bool = typer.Option(
        False, "--activate", help="Activate workflows after deploying them."
    ),
    force: bool = typer.Option(
        False, "--force", help="Overwrite same-named workflows in the target."
    ),
    skip_validation: bool = typer.Option(
        False, "--skip-validation", help="Skip connectivity and id checks."
    ),
) -> None:
    """Deploy workflows from SOURCE to TARGET."""
    context = get_context(ctx)
    catalog = load_context_catalog(context)
    source_env = resolve_environment(context, catalog, source)
    target_env = resolve_environment(context, catalog, target)
    deployment = DeploymentTarget(
        source_env=source,
        target_env=target,
        workflow_ids=parse_ids(workflows),
    )
    options = DeploymentOptions(
        dry_run=dry_run,
        skip_validation=skip_validation,
        activate_after_deploy=activate,
        overwrite=force,
        create_backup=not no_backup,
    )
    result = asyncio.run(
        _run_pipeline(context, catalog, source_env, target_env, deployment, options)
    )
    render_deployment_result(context.console, result)

    if not result.success:
        raise typer.Exit(code=1)


@deploy_app.command("status")
def deployment_status(
    ctx: typer.Context,
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Rows to show."),
    env: str | None = typer.Option(
        None, "--env", help="Only show deployments into this environment."
    ),
) -> None:
    """List recorded deployments, newest first."""
    context = get_context(ctx)
    records = DeploymentRecordStore(context.state_dir).list()
    if env:
        records = [record for record in records if record.target_env == env]
    if not records:
        context.console.print("[yellow]No deployments recorded.[/yellow]")
        return
    render_records(context.console, records[:limit])


def _load_record(context: CLIContext, deployment_id: str | None) -> DeploymentRecord:
    store = DeploymentRecordStore(context.state_dir)
    record = store.get(deployment_id) if deployment_id else store.get_latest()
    if record is None:
        label = deployment_id or "latest"
        abort_with_error(context, LookupError(f"Deployment not found: {label}"))
    return record


async def _rollback(
    context: CLIContext,
    environment: Environment,
    record: DeploymentRecord,
    options: RollbackOptions,
) -> RollbackResult:
    async with open_client(context, environment) as client:
        return await rollback_deployment(client, record, options)


@deploy_app.command("rollback")
def rollback(
    ctx: typer.Context,
    deployment_id: str | None = typer.Argument(
        None, help="Deployment ID; defaults to the latest deployment."
    ),
    workflows: str | None = typer.Option(
        None,
        "--workflows",
        "-w",
        help="Comma separated source or target workflow IDs to roll back.",
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Restore without asking for confirmation."
    ),
) -> None:
    """Restore the target workflows of a deployment from its backup."""
    context = get_context(ctx)
    record = _load_record(context, deployment_id)
    options = RollbackOptions(
        deployment_id=record.id, workflow_ids=parse_ids(workflows)
    )
    selected = select_resources(record, options.workflow_ids)
    render_table(
        context.console,
        title=f"Rollback of {record.id} ({record.target_env})",
        columns=["Source ID", "Target ID", "Previous Target ID"],
        rows=[
            [item.original_id, item.target_id, item.previous_target_id or "-"]
            for item in selected
        ],
    )
    if not yes:
        context.console.print(
            f"Re-run with --yes to restore {len(selected)} workflow(s) "
            f"from {record.backup_path or 'no backup'}."
        )
        return

    catalog = load_context_catalog(context)
    environment = resolve_environment(context, catalog, record.target_env)
    result = asyncio.run(_rollback(context, environment, record, options))
    for error in result.errors:
        context.console.print(f"[red]{error}[/red]", highlight=False)
    if not result.success:
        context.console.print(
            f"[red]Rollback failed[/red] ({result.restored_count} restored)."
        )
        raise typer.Exit(code=1)
    context.console.print(
        f"[green]Rolled back {result.restored_count} workflow(s).[/green]"
    )


async def _fetch_inventories(
    context: CLIContext, source: Environment, target: Environment
) -> tuple[list[WorkflowSummary], list[WorkflowSummary]]:
    async with (
        open_client(context, source) as source_client,
        open_client(context, target) as target_client,
    ):
        source_items, target_items = await asyncio.gather(
            source_client.get_all_workflows(), target_client.get_all_workflows()
        )
    return source_items, target_items


@deploy_app.command("diff")
def diff(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Source environment name."),
    target: str = typer.Argument(..., help="Target environment name."),
) -> None:
    """Compare the workflow inventories of SOURCE and TARGET by name."""
    context = get_context(ctx)
    catalog = load_context_catalog(context)
    source_env = resolve_environment(context, catalog, source)
    target_env = resolve_environment(context, catalog, target)
    try:
        source_items, target_items = asyncio.run(
            _fetch_inventories(context, source_env, target_env)
        )
    except Exception as exc:
        abort_with_error(context, exc)

    source_index = index_by_name(source_items)
    target_index = index_by_name(target_items)
    rows: list[list[str]] = []
    for name in sorted(source_index.keys() | target_index.keys()):
        in_source = source_index.get(name)
        in_target = target_index.get(name)
        if in_source and in_target:
            status = "[cyan]both[/]"
        elif in_source:
            status = "[green]new[/]"
        else:
            status = "[yellow]target only[/]"
        rows.append(
            [
                name,
                in_source.id if in_source else "-",
                in_target.id if in_target else "-",
                status,
            ]
        )
    if not rows:
        context.console.print("[yellow]No workflows found.[/yellow]")
        return
    render_table(
        context.console,
        title=f"{source} -> {target}",
        columns=["Workflow", "Source ID", "Target ID", "Status"],
        rows=rows,
    )


__all__ = ["deploy_app"]
