"""Snapshot manifest and backup/restore result types."""

from __future__ import annotations
from datetime import UTC, datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from flowpromote.models.deployment import DeployAction


MANIFEST_VERSION = "1.0"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class _ManifestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BackupMetadata(_ManifestModel):
    """Descriptive header of a snapshot."""

    id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    environment: str
    base_url: str
    workflow_count: int = 0
    description: str | None = None


class BackupWorkflowInfo(_ManifestModel):
    """Manifest entry pointing at one stored workflow body."""

    id: str
    name: str
    active: bool = False
    filename: str


class BackupManifest(_ManifestModel):
    """Index of a snapshot directory."""

    version: str = MANIFEST_VERSION
    metadata: BackupMetadata
    workflows: list[BackupWorkflowInfo] = Field(default_factory=list)
    credentials_stripped: bool = False


class BackupListItem(BaseModel):
    """Short description of a snapshot found on disk."""

    id: str
    path: str
    timestamp: datetime
    environment: str
    workflow_count: int


class BackupResult(BaseModel):
    """Outcome of capturing a snapshot."""

    success: bool
    backup_id: str
    backup_path: str | None = None
    success_count: int = 0
    failed_count: int = 0
    failed_workflows: list[str] = Field(default_factory=list)
    error: str | None = None


class RestoreMode(str, Enum):
    """How restored workflows treat same-named workflows in the target."""

    OVERWRITE = "overwrite"
    SKIP = "skip"


class RestoreOptions(BaseModel):
    """Flags for :func:`flowpromote.backup.engine.restore_backup`."""

    model_config = ConfigDict(frozen=True)

    mode: RestoreMode = RestoreMode.SKIP
    activate: bool = False
    target_ids: tuple[str, ...] | None = None
    dry_run: bool = False
    continue_on_error: bool = True


class RestoreWorkflowResult(BaseModel):
    """Outcome of restoring one workflow from a snapshot."""

    original_id: str
    name: str
    success: bool
    restored_id: str | None = None
    action: DeployAction | None = None
    error: str | None = None


class RestoreResult(BaseModel):
    """Aggregate outcome of restoring a snapshot."""

    success: bool
    backup_id: str = ""
    total_count: int = 0
    success_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    workflows: list[RestoreWorkflowResult] = Field(default_factory=list)
    error: str | None = None


__all__ = [
    "MANIFEST_VERSION",
    "BackupListItem",
    "BackupManifest",
    "BackupMetadata",
    "BackupResult",
    "BackupWorkflowInfo",
    "RestoreMode",
    "RestoreOptions",
    "RestoreResult",
    "RestoreWorkflowResult",
]
