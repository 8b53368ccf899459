"""Name-keyed create/update/skip decisions shared by deploy and restore."""

from __future__ import annotations
import logging
from collections.abc import Iterable, MutableMapping
from dataclasses import dataclass
from enum import Enum
from flowpromote.client import RemoteEnvironmentClient
from flowpromote.models.deployment import DeployAction
from flowpromote.models.workflow import WorkflowDefinition, WorkflowSummary


logger = logging.getLogger(__name__)


class TransferMode(str, Enum):
    """How an incoming workflow treats a same-named target workflow."""

    CREATE = "create"
    """Create when absent, skip when present."""

    UPDATE = "update"
    """Update when present, skip when absent."""

    UPSERT = "upsert"
    """Update when present, create when absent."""


@dataclass(frozen=True, slots=True)
class TransferOutcome:
    """Result of writing one workflow to an environment."""

    action: DeployAction
    target_id: str | None
    previous_target_id: str | None = None


def index_by_name(workflows: Iterable[WorkflowSummary]) -> dict[str, WorkflowSummary]:
    """Index an inventory by name keeping the first entry in listing order."""
    index: dict[str, WorkflowSummary] = {}
    for workflow in workflows:
        index.setdefault(workflow.name, workflow)
    return index


async def find_workflow_by_name(
    client: RemoteEnvironmentClient, name: str
) -> WorkflowSummary | None:
    """Return the first workflow in ``client`` whose name equals ``name``."""
    for workflow in await client.get_all_workflows():
        if workflow.name == name:
            return workflow
    return None


def plan_action(
    existing: WorkflowSummary | None, mode: TransferMode
) -> DeployAction:
    """Return the action a transfer would take without touching the target."""
    if existing is None:
        if mode is TransferMode.UPDATE:
            return DeployAction.SKIPPED
        return DeployAction.CREATED
    if mode is TransferMode.CREATE:
        return DeployAction.SKIPPED
    return DeployAction.UPDATED


async def apply_transfer(
    client: RemoteEnvironmentClient,
    workflow: WorkflowDefinition,
    existing: WorkflowSummary | None,
    mode: TransferMode,
    *,
    activate: bool = False,
    inventory: MutableMapping[str, WorkflowSummary] | None = None,
) -> TransferOutcome:
    """Create, update, or skip ``workflow`` in the environment behind ``client``.

    Activation is a separate call issued after the write because the remote
    API offers no combined create-and-activate operation. When ``inventory``
    is given, a newly created workflow is registered under its name.
    """
    action = plan_action(existing, mode)
    if action is DeployAction.SKIPPED:
        return TransferOutcome(
            action=action,
            target_id=existing.id if existing is not None else None,
        )

    payload = workflow.to_payload()
    previous_target_id: str | None = None
    if existing is not None:
        previous_target_id = existing.id
        written = await client.update_workflow(existing.id, payload)
    else:
        written = await client.create_workflow(payload)
    target_id = written.id or (existing.id if existing is not None else None)
    if target_id is None:
        msg = f"Environment returned no id for workflow '{workflow.name}'"
        raise ValueError(msg)
    logger.info("%s workflow '%s' as %s", action.value, workflow.name, target_id)

    if inventory is not None and action is DeployAction.CREATED:
        inventory.setdefault(
            workflow.name,
            WorkflowSummary(id=target_id, name=workflow.name, active=written.active),
        )

    if activate:
        await client.activate_workflow(target_id)

    return TransferOutcome(
        action=action,
        target_id=target_id,
        previous_target_id=previous_target_id,
    )


__all__ = [
    "TransferMode",
    "TransferOutcome",
    "apply_transfer",
    "find_workflow_by_name",
    "index_by_name",
    "plan_action",
]
