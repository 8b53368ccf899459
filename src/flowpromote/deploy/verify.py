"""Post-deployment checks against the target environment."""

from __future__ import annotations
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from flowpromote.client import RemoteEnvironmentClient
from flowpromote.models.deployment import DeployAction, DeployedWorkflow
from flowpromote.models.workflow import WorkflowDefinition


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class VerificationResult:
    """Read-back status of one deployed workflow."""

    workflow_id: str
    workflow_name: str
    exists: bool
    active: bool = False
    node_count: int = 0
    error: str | None = None


@dataclass(slots=True)
class VerificationSummary:
    """Aggregate read-back status of a deployment."""

    total: int = 0
    verified: int = 0
    failed: int = 0
    results: list[VerificationResult] = field(default_factory=list)


@dataclass(slots=True)
class WorkflowComparison:
    """Structural differences between a source and a target workflow."""

    match: bool
    differences: list[str] = field(default_factory=list)


async def verify_workflow(
    client: RemoteEnvironmentClient, workflow_id: str
) -> VerificationResult:
    """Fetch ``workflow_id`` and report whether it exists."""
    try:
        workflow = await client.get_workflow(workflow_id)
    except Exception as exc:
        logger.debug("Verification of %s failed: %s", workflow_id, exc)
        return VerificationResult(
            workflow_id=workflow_id,
            workflow_name="",
            exists=False,
            error=str(exc),
        )
    return VerificationResult(
        workflow_id=workflow.id or workflow_id,
        workflow_name=workflow.name,
        exists=True,
        active=workflow.active,
        node_count=len(workflow.nodes),
    )


async def verify_deployment(
    client: RemoteEnvironmentClient, deployed: Iterable[DeployedWorkflow]
) -> VerificationSummary:
    """Verify every outcome that points at a target workflow.

    Skipped outcomes without a target id (dry runs) count as verified.
    """
    summary = VerificationSummary()
    for outcome in deployed:
        summary.total += 1
        if outcome.action is DeployAction.SKIPPED and not outcome.target_id:
            summary.results.append(
                VerificationResult(
                    workflow_id=outcome.workflow_id,
                    workflow_name=outcome.workflow_name,
                    exists=True,
                )
            )
            summary.verified += 1
            continue
        result = await verify_workflow(client, outcome.target_id or "")
        summary.results.append(result)
        if result.exists:
            summary.verified += 1
        else:
            summary.failed += 1
    return summary


def compare_workflows(
    source: WorkflowDefinition, target: WorkflowDefinition
) -> WorkflowComparison:
    """Compare names, nodes, connections and activation of two workflows."""
    differences: list[str] = []

    if source.name != target.name:
        differences.append(f"name differs: '{source.name}' vs '{target.name}'")

    if len(source.nodes) != len(target.nodes):
        differences.append(
            f"node count differs: {len(source.nodes)} vs {len(target.nodes)}"
        )

    source_types = {node.type for node in source.nodes}
    target_types = {node.type for node in target.nodes}
    for node_type in sorted(source_types - target_types):
        differences.append(f"node type only in source: {node_type}")
    for node_type in sorted(target_types - source_types):
        differences.append(f"node type only in target: {node_type}")

    source_nodes = {node.name: node for node in source.nodes}
    target_nodes = {node.name: node for node in target.nodes}
    for name, node in source_nodes.items():
        other = target_nodes.get(name)
        if other is None:
            differences.append(f"node missing in target: '{name}'")
            continue
        if node.type != other.type:
            differences.append(
                f"node '{name}' type differs: {node.type} vs {other.type}"
            )
        if node.type_version != other.type_version:
            differences.append(
                f"node '{name}' version differs: "
                f"{node.type_version} vs {other.type_version}"
            )
    for name in target_nodes:
        if name not in source_nodes:
            differences.append(f"node missing in source: '{name}'")

    if len(source.connections) != len(target.connections):
        differences.append(
            "connection count differs: "
            f"{len(source.connections)} vs {len(target.connections)}"
        )

    if source.active != target.active:
        differences.append(
            f"active flag differs: {source.active} vs {target.active}"
        )

    return WorkflowComparison(match=not differences, differences=differences)


__all__ = [
    "VerificationResult",
    "VerificationSummary",
    "WorkflowComparison",
    "compare_workflows",
    "verify_deployment",
    "verify_workflow",
]
