"""Deployment targets, outcomes, and the durable deployment record."""

from __future__ import annotations
from datetime import UTC, datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


__all__ = [
    "DeployAction",
    "DeployedWorkflow",
    "DeploymentFailure",
    "DeploymentOptions",
    "DeploymentPhase",
    "DeploymentRecord",
    "DeploymentResult",
    "DeploymentSummary",
    "DeploymentTarget",
    "RecordedWorkflow",
]


def _utcnow() -> datetime:
    """Return the current UTC timestamp."""
    return datetime.now(tz=UTC)


class DeployAction(str, Enum):
    """Outcome of deploying a single workflow to the target environment."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"

    @property
    def is_mutation(self) -> bool:
        """Return whether the action wrote to the target environment."""
        return self in {DeployAction.CREATED, DeployAction.UPDATED}


class DeploymentPhase(str, Enum):
    """Pipeline phase in which an error was raised."""

    VALIDATION = "validation"
    PREPARE = "prepare"
    TRANSFORM = "transform"
    DEPLOY = "deploy"
    VERIFY = "verify"


class DeploymentTarget(BaseModel):
    """Source and target environments plus an optional workflow subset."""

    model_config = ConfigDict(frozen=True)

    source_env: str
    target_env: str
    workflow_ids: tuple[str, ...] | None = None

    @property
    def has_explicit_workflows(self) -> bool:
        """Return whether an explicit workflow subset was requested."""
        return bool(self.workflow_ids)


class DeploymentOptions(BaseModel):
    """Flags that control a single pipeline run."""

    model_config = ConfigDict(frozen=True)

    dry_run: bool = False
    skip_validation: bool = False
    activate_after_deploy: bool = False
    overwrite: bool = False
    create_backup: bool = True


class DeployedWorkflow(BaseModel):
    """Per-workflow outcome of a deployment."""

    workflow_id: str
    workflow_name: str
    target_id: str | None
    action: DeployAction
    credentials_transformed: int = 0
    previous_target_id: str | None = None
    planned_action: DeployAction | None = None


class DeploymentFailure(BaseModel):
    """Phase-tagged error captured while running the pipeline."""

    workflow_id: str = ""
    workflow_name: str = ""
    phase: DeploymentPhase
    message: str


class DeploymentSummary(BaseModel):
    """Aggregate counts for a deployment run."""

    total: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    @classmethod
    def from_outcomes(
        cls, outcomes: list[DeployedWorkflow], *, failed: int
    ) -> DeploymentSummary:
        """Count outcomes by action; ``failed`` workflows produced no outcome."""
        counts = {action: 0 for action in DeployAction}
        for outcome in outcomes:
            counts[outcome.action] += 1
        return cls(
            total=len(outcomes) + failed,
            created=counts[DeployAction.CREATED],
            updated=counts[DeployAction.UPDATED],
            skipped=counts[DeployAction.SKIPPED],
            failed=failed,
        )


class DeploymentResult(BaseModel):
    """Complete result of one pipeline run."""

    success: bool
    timestamp: datetime = Field(default_factory=_utcnow)
    source_env: str
    target_env: str
    dry_run: bool = False
    workflows: list[DeployedWorkflow] = Field(default_factory=list)
    summary: DeploymentSummary = Field(default_factory=DeploymentSummary)
    errors: list[DeploymentFailure] = Field(default_factory=list)
    backup_path: str | None = None
    record_id: str | None = None

    @property
    def partial(self) -> bool:
        """Return whether some workflows deployed while others failed."""
        mutated = self.summary.created + self.summary.updated
        return bool(self.errors) and mutated > 0


class RecordedWorkflow(BaseModel):
    """Mapping between a source workflow and the target workflow it produced."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    original_id: str
    target_id: str
    previous_target_id: str | None = None


class DeploymentRecord(BaseModel):
    """Write-once audit entry that makes a deployment reversible."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    source_env: str
    target_env: str
    resources: tuple[RecordedWorkflow, ...] = ()
    backup_path: str | None = None

    @field_validator("timestamp", mode="after")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def to_document(self) -> dict[str, object]:
        """Return the persisted JSON layout."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
