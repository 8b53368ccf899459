"""Rewrite credential references embedded in workflow nodes."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
from flowpromote.credentials import CredentialIdentifier, CredentialTransform
from flowpromote.models.workflow import WorkflowDefinition, WorkflowNode


@dataclass(slots=True)
class TransformStats:
    """Counters collected while rewriting one workflow."""

    nodes_processed: int = 0
    credentials_transformed: int = 0
    credentials_unmapped: list[str] = field(default_factory=list)


@dataclass(slots=True)
class NodeTransformResult:
    """Rewritten node with its per-node counters."""

    node: WorkflowNode
    transformed: int
    unmapped: list[str]


@dataclass(slots=True)
class TransformResult:
    """Rewritten workflow with aggregated counters."""

    workflow: WorkflowDefinition
    stats: TransformStats


def extract_credential_id(value: Any) -> CredentialIdentifier:
    """Resolve a raw credential slot value into a :class:`CredentialIdentifier`."""
    return CredentialIdentifier.from_value(value)


def transform_node_credentials(
    node: WorkflowNode, id_map: dict[str, str]
) -> NodeTransformResult:
    """Return a copy of ``node`` with mapped credential ids replaced.

    Slots whose id is not in ``id_map`` are copied unchanged and reported as
    unmapped; slots without an id are copied unchanged and not reported.
    """
    if not node.credentials:
        return NodeTransformResult(node=node, transformed=0, unmapped=[])

    rewritten: dict[str, Any] = {}
    transformed = 0
    unmapped: list[str] = []
    for slot, value in node.credentials.items():
        identifier = extract_credential_id(value)
        if not identifier.has_id or identifier.id is None:
            rewritten[slot] = value
            continue
        new_id = id_map.get(identifier.id)
        if new_id is None:
            rewritten[slot] = value
            unmapped.append(identifier.id)
            continue
        rewritten[slot] = {**value, "id": new_id}
        transformed += 1

    return NodeTransformResult(
        node=node.model_copy(update={"credentials": rewritten}),
        transformed=transformed,
        unmapped=unmapped,
    )


def transform_credentials_in_workflow(
    workflow: WorkflowDefinition, transform: CredentialTransform
) -> TransformResult:
    """Return a copy of ``workflow`` with credential ids translated.

    The input workflow is left untouched.
    """
    id_map = transform.id_map
    nodes: list[WorkflowNode] = []
    stats = TransformStats(nodes_processed=len(workflow.nodes))
    for node in workflow.nodes:
        result = transform_node_credentials(node, id_map)
        nodes.append(result.node)
        stats.credentials_transformed += result.transformed
        for credential_id in result.unmapped:
            if credential_id not in stats.credentials_unmapped:
                stats.credentials_unmapped.append(credential_id)
    return TransformResult(
        workflow=workflow.model_copy(update={"nodes": nodes}),
        stats=stats,
    )


__all__ = [
    "NodeTransformResult",
    "TransformResult",
    "TransformStats",
    "extract_credential_id",
    "transform_credentials_in_workflow",
    "transform_node_credentials",
]
