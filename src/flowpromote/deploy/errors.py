"""Phase-tagged exceptions raised by the deployment pipeline."""

from __future__ import annotations
from flowpromote.models.deployment import DeploymentFailure, DeploymentPhase


class DeploymentPipelineError(RuntimeError):
    """Base error type for deployment operations."""

    phase: DeploymentPhase = DeploymentPhase.DEPLOY

    def __init__(
        self,
        message: str,
        *,
        workflow_id: str = "",
        workflow_name: str = "",
    ) -> None:
        """Attach the workflow the error relates to, when there is one."""
        super().__init__(message)
        self.message = message
        self.workflow_id = workflow_id
        self.workflow_name = workflow_name

    def to_failure(self) -> DeploymentFailure:
        """Return the result entry describing this error."""
        return DeploymentFailure(
            workflow_id=self.workflow_id,
            workflow_name=self.workflow_name,
            phase=self.phase,
            message=self.message,
        )


class DeploymentValidationError(DeploymentPipelineError):
    """Raised when the deployment target fails validation."""

    phase = DeploymentPhase.VALIDATION


class PrepareError(DeploymentPipelineError):
    """Raised when the workflow set cannot be resolved or fetched."""

    phase = DeploymentPhase.PREPARE


class TransformError(DeploymentPipelineError):
    """Raised when credential references of a workflow cannot be rewritten."""

    phase = DeploymentPhase.TRANSFORM


class DeployError(DeploymentPipelineError):
    """Raised when writing a workflow to the target environment fails."""

    phase = DeploymentPhase.DEPLOY


class VerifyError(DeploymentPipelineError):
    """Raised when a deployed workflow cannot be read back."""

    phase = DeploymentPhase.VERIFY


class RollbackError(RuntimeError):
    """Raised when a rollback precondition is not met."""


class RecordExistsError(RuntimeError):
    """Raised when a deployment record with the same id is already stored."""


__all__ = [
    "DeployError",
    "DeploymentPipelineError",
    "DeploymentValidationError",
    "PrepareError",
    "RecordExistsError",
    "RollbackError",
    "TransformError",
    "VerifyError",
]
