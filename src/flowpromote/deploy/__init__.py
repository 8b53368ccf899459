"""Environment-to-environment deployment, verification, and rollback."""

from flowpromote.deploy.errors import (
    DeployError,
    DeploymentPipelineError,
    DeploymentValidationError,
    PrepareError,
    RecordExistsError,
    RollbackError,
    TransformError,
    VerifyError,
)
from flowpromote.deploy.pipeline import (
    DeploymentPipeline,
    PrepareResult,
    ValidationResult,
)
from flowpromote.deploy.records import DeploymentRecordStore, generate_deployment_id
from flowpromote.deploy.rollback import (
    RollbackOptions,
    RollbackResult,
    rollback_deployment,
)
from flowpromote.deploy.transform import (
    transform_credentials_in_workflow,
    transform_node_credentials,
)
from flowpromote.deploy.verify import (
    compare_workflows,
    verify_deployment,
    verify_workflow,
)


__all__ = [
    "DeployError",
    "DeploymentPipeline",
    "DeploymentPipelineError",
    "DeploymentRecordStore",
    "DeploymentValidationError",
    "PrepareError",
    "PrepareResult",
    "RecordExistsError",
    "RollbackError",
    "RollbackOptions",
    "RollbackResult",
    "TransformError",
    "ValidationResult",
    "VerifyError",
    "compare_workflows",
    "generate_deployment_id",
    "rollback_deployment",
    "transform_credentials_in_workflow",
    "transform_node_credentials",
    "verify_deployment",
    "verify_workflow",
]
