"""Undo a deployment by restoring its pre-deployment backup."""

from __future__ import annotations
import logging
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field
from flowpromote.backup.engine import restore_backup
from flowpromote.backup.models import RestoreMode, RestoreOptions, RestoreResult
from flowpromote.client import RemoteEnvironmentClient
from flowpromote.deploy.errors import RollbackError
from flowpromote.models.deployment import DeploymentRecord, RecordedWorkflow


logger = logging.getLogger(__name__)

RestoreCallable = Callable[
    [RemoteEnvironmentClient, Path, RestoreOptions], Awaitable[RestoreResult]
]


class RollbackOptions(BaseModel):
    """Scope of a rollback."""

    model_config = ConfigDict(frozen=True)

    deployment_id: str | None = None
    workflow_ids: tuple[str, ...] | None = None


class RollbackResult(BaseModel):
    """Outcome of a rollback."""

    success: bool
    restored_count: int = 0
    errors: list[str] = Field(default_factory=list)


def select_resources(
    record: DeploymentRecord, workflow_ids: Sequence[str] | None
) -> list[RecordedWorkflow]:
    """Return the recorded resources a rollback should touch.

    Each requested id is matched against the original ids first and only then
    against the target ids. Requested ids matching nothing are ignored.
    """
    if not workflow_ids:
        return list(record.resources)
    selected: list[RecordedWorkflow] = []
    for requested in workflow_ids:
        match = next(
            (item for item in record.resources if item.original_id == requested),
            None,
        )
        if match is None:
            match = next(
                (item for item in record.resources if item.target_id == requested),
                None,
            )
        if match is None:
            logger.warning(
                "Workflow %s is not part of deployment %s", requested, record.id
            )
            continue
        if match not in selected:
            selected.append(match)
    return selected


def _check_preconditions(
    record: DeploymentRecord, options: RollbackOptions
) -> tuple[Path, list[RecordedWorkflow]]:
    if options.deployment_id and options.deployment_id != record.id:
        msg = (
            f"Deployment record {record.id} does not match requested "
            f"deployment {options.deployment_id}"
        )
        raise RollbackError(msg)
    if not record.backup_path:
        msg = f"Deployment {record.id} has no backup to roll back to"
        raise RollbackError(msg)
    backup_dir = Path(record.backup_path)
    if not backup_dir.exists():
        msg = f"Backup not found: {backup_dir}"
        raise RollbackError(msg)
    resources = select_resources(record, options.workflow_ids)
    if not resources:
        msg = f"No workflows of deployment {record.id} match the requested ids"
        raise RollbackError(msg)
    return backup_dir, resources


async def rollback_deployment(
    target_client: RemoteEnvironmentClient,
    record: DeploymentRecord,
    options: RollbackOptions | None = None,
    *,
    restore: RestoreCallable = restore_backup,
) -> RollbackResult:
    """Restore the target workflows touched by ``record`` from its backup.

    Precondition failures return ``success=False`` before any call reaches the
    target environment. Workflows created by the deployment did not exist when
    the backup was taken, so they are left in place.
    """
    opts = options or RollbackOptions()
    try:
        backup_dir, resources = _check_preconditions(record, opts)
    except RollbackError as exc:
        logger.warning("Rollback of %s refused: %s", record.id, exc)
        return RollbackResult(success=False, errors=[str(exc)])

    target_ids = tuple(dict.fromkeys(item.target_id for item in resources))
    logger.info(
        "Rolling back %d workflow(s) of deployment %s from %s",
        len(target_ids),
        record.id,
        backup_dir,
    )
    restored = await restore(
        target_client,
        backup_dir,
        RestoreOptions(
            mode=RestoreMode.OVERWRITE,
            target_ids=target_ids,
            continue_on_error=True,
        ),
    )

    errors = [
        f"{item.name} ({item.original_id}): {item.error}"
        for item in restored.workflows
        if not item.success
    ]
    if restored.error:
        errors.append(restored.error)
    return RollbackResult(
        success=restored.failed_count == 0 and restored.error is None,
        restored_count=restored.success_count,
        errors=errors,
    )


__all__ = [
    "RestoreCallable",
    "RollbackOptions",
    "RollbackResult",
    "rollback_deployment",
    "select_resources",
]
