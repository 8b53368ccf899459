"""Domain models for environments, workflows, and deployments."""

from flowpromote.models.deployment import (
    DeployAction,
    DeployedWorkflow,
    DeploymentFailure,
    DeploymentOptions,
    DeploymentPhase,
    DeploymentRecord,
    DeploymentResult,
    DeploymentSummary,
    DeploymentTarget,
    RecordedWorkflow,
)
from flowpromote.models.environment import (
    CredentialMapping,
    Environment,
    EnvironmentCatalog,
    EnvironmentConnection,
    EnvironmentNotFoundError,
)
from flowpromote.models.workflow import (
    WorkflowDefinition,
    WorkflowNode,
    WorkflowSummary,
)


__all__ = [
    "CredentialMapping",
    "DeployAction",
    "DeployedWorkflow",
    "DeploymentFailure",
    "DeploymentOptions",
    "DeploymentPhase",
    "DeploymentRecord",
    "DeploymentResult",
    "DeploymentSummary",
    "DeploymentTarget",
    "Environment",
    "EnvironmentCatalog",
    "EnvironmentConnection",
    "EnvironmentNotFoundError",
    "RecordedWorkflow",
    "WorkflowDefinition",
    "WorkflowNode",
    "WorkflowSummary",
]
