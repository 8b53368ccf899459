"""Capture and restore point-in-time snapshots of an environment."""

from __future__ import annotations
import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any
from pydantic import ValidationError
from flowpromote.backup.models import (
    BackupManifest,
    BackupMetadata,
    BackupResult,
    BackupWorkflowInfo,
    RestoreMode,
    RestoreOptions,
    RestoreResult,
    RestoreWorkflowResult,
)
from flowpromote.backup.storage import (
    BackupError,
    allocate_backup_directory,
    create_backup_directory,
    read_manifest,
    workflow_filename,
    write_manifest,
)
from flowpromote.client import RemoteEnvironmentClient
from flowpromote.models.deployment import DeployAction
from flowpromote.models.workflow import WorkflowDefinition
from flowpromote.transfer import TransferMode, apply_transfer, index_by_name


logger = logging.getLogger(__name__)

_RESTORE_TRANSFER_MODES = {
    RestoreMode.OVERWRITE: TransferMode.UPSERT,
    RestoreMode.SKIP: TransferMode.CREATE,
}


def _strip_credentials(document: dict[str, Any]) -> dict[str, Any]:
    nodes = document.get("nodes")
    if isinstance(nodes, list):
        for node in nodes:
            if isinstance(node, dict):
                node.pop("credentials", None)
    return document


async def create_backup(
    client: RemoteEnvironmentClient,
    *,
    base_dir: Path,
    environment: str,
    base_url: str,
    workflow_ids: Sequence[str] | None = None,
    strip_credentials: bool = False,
    description: str | None = None,
    backup_id: str | None = None,
) -> BackupResult:
    """Write every workflow of the environment into a new snapshot directory.

    Workflows that cannot be fetched are listed in ``failed_workflows``; the
    snapshot is still written for the rest. Errors that prevent the snapshot
    from existing at all are reported through ``error`` with ``success=False``.
    """
    try:
        if workflow_ids is None:
            workflow_ids = [item.id for item in await client.get_all_workflows()]
    except Exception as exc:
        logger.warning("Listing %s for backup failed: %s", environment, exc)
        return BackupResult(
            success=False,
            backup_id=backup_id or "",
            error=f"Failed to list workflows: {exc}",
        )

    try:
        if backup_id is None:
            backup_id, backup_dir = allocate_backup_directory(Path(base_dir))
        else:
            backup_dir = create_backup_directory(Path(base_dir), backup_id)
    except (BackupError, OSError) as exc:
        return BackupResult(success=False, backup_id=backup_id or "", error=str(exc))

    entries: list[BackupWorkflowInfo] = []
    failed: list[str] = []
    for workflow_id in workflow_ids:
        try:
            workflow = await client.get_workflow(workflow_id)
        except Exception as exc:
            logger.warning("Backup of workflow %s failed: %s", workflow_id, exc)
            failed.append(workflow_id)
            continue
        document = workflow.to_document()
        if strip_credentials:
            document = _strip_credentials(document)
        stored_id = workflow.id or workflow_id
        filename = workflow_filename(stored_id, workflow.name)
        (backup_dir / filename).write_text(
            json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8"
        )
        entries.append(
            BackupWorkflowInfo(
                id=stored_id,
                name=workflow.name,
                active=workflow.active,
                filename=filename,
            )
        )

    manifest = BackupManifest(
        metadata=BackupMetadata(
            id=backup_id,
            environment=environment,
            base_url=base_url,
            workflow_count=len(entries),
            description=description,
        ),
        workflows=entries,
        credentials_stripped=strip_credentials,
    )
    write_manifest(backup_dir, manifest)
    logger.info(
        "Backup %s of %s captured %d workflow(s), %d failed",
        backup_id,
        environment,
        len(entries),
        len(failed),
    )
    return BackupResult(
        success=not failed,
        backup_id=backup_id,
        backup_path=str(backup_dir),
        success_count=len(entries),
        failed_count=len(failed),
        failed_workflows=failed,
    )


def _load_workflow(backup_dir: Path, info: BackupWorkflowInfo) -> WorkflowDefinition:
    path = backup_dir / info.filename
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        msg = f"Workflow file missing from backup: {info.filename}"
        raise BackupError(msg) from exc
    try:
        return WorkflowDefinition.model_validate_json(text)
    except ValidationError as exc:
        msg = f"Workflow file is invalid: {info.filename}"
        raise BackupError(msg) from exc


async def restore_backup(
    client: RemoteEnvironmentClient,
    backup_dir: Path | str,
    options: RestoreOptions | None = None,
) -> RestoreResult:
    """Write the workflows stored in ``backup_dir`` back into an environment."""
    opts = options or RestoreOptions()
    directory = Path(backup_dir)
    try:
        manifest = read_manifest(directory)
    except BackupError as exc:
        return RestoreResult(success=False, error=f"Failed to read manifest: {exc}")

    selected = manifest.workflows
    if opts.target_ids is not None:
        wanted = set(opts.target_ids)
        selected = [info for info in selected if info.id in wanted]

    result = RestoreResult(
        success=True,
        backup_id=manifest.metadata.id,
        total_count=len(selected),
    )

    if opts.dry_run:
        for info in selected:
            result.workflows.append(
                RestoreWorkflowResult(
                    original_id=info.id,
                    name=info.name,
                    success=True,
                    action=DeployAction.SKIPPED,
                )
            )
        result.skipped_count = len(selected)
        return result

    if not selected:
        return result

    try:
        inventory = index_by_name(await client.get_all_workflows())
    except Exception as exc:
        result.success = False
        result.error = f"Failed to list target workflows: {exc}"
        return result

    mode = _RESTORE_TRANSFER_MODES[opts.mode]
    for info in selected:
        try:
            workflow = _load_workflow(directory, info)
            outcome = await apply_transfer(
                client,
                workflow,
                inventory.get(workflow.name),
                mode,
                activate=opts.activate,
                inventory=inventory,
            )
        except Exception as exc:
            logger.warning("Restoring workflow '%s' failed: %s", info.name, exc)
            result.workflows.append(
                RestoreWorkflowResult(
                    original_id=info.id,
                    name=info.name,
                    success=False,
                    error=str(exc),
                )
            )
            result.failed_count += 1
            if not opts.continue_on_error:
                break
            continue

        result.workflows.append(
            RestoreWorkflowResult(
                original_id=info.id,
                name=info.name,
                success=True,
                restored_id=outcome.target_id,
                action=outcome.action,
            )
        )
        if outcome.action is DeployAction.SKIPPED:
            result.skipped_count += 1
        else:
            result.success_count += 1

    result.success = result.failed_count == 0
    return result


__all__ = ["create_backup", "restore_backup"]
