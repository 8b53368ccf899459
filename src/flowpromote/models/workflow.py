"""Workflow definition payloads exchanged with remote environments."""

from __future__ import annotations
from typing import Any
from pydantic import BaseModel, ConfigDict, Field


__all__ = [
    "TRANSFER_EXCLUDED_FIELDS",
    "WorkflowDefinition",
    "WorkflowNode",
    "WorkflowSummary",
]


TRANSFER_EXCLUDED_FIELDS = frozenset(
    {"id", "created_at", "updated_at", "static_data", "pin_data"}
)
"""Environment-local fields dropped before a definition is sent elsewhere."""


class _RemoteModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class WorkflowSummary(_RemoteModel):
    """Listing shape returned by inventory endpoints."""

    id: str
    name: str
    active: bool = False


class WorkflowNode(_RemoteModel):
    """Single step inside a workflow definition."""

    id: str | None = None
    name: str
    type: str
    type_version: float | int = Field(default=1, alias="typeVersion")
    position: list[float] = Field(default_factory=list)
    parameters: dict[str, Any] = Field(default_factory=dict)
    credentials: dict[str, Any] | None = None
    disabled: bool | None = None


class WorkflowDefinition(_RemoteModel):
    """Full workflow body including nodes and the connection graph."""

    id: str | None = None
    name: str
    active: bool = False
    nodes: list[WorkflowNode] = Field(default_factory=list)
    connections: dict[str, Any] = Field(default_factory=dict)
    settings: dict[str, Any] | None = None
    static_data: Any = Field(default=None, alias="staticData")
    pin_data: dict[str, Any] | None = Field(default=None, alias="pinData")
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")

    def summary(self) -> WorkflowSummary:
        """Return the listing view of this definition."""
        return WorkflowSummary(id=self.id or "", name=self.name, active=self.active)

    def to_payload(self, *, preserve_id: bool = False) -> dict[str, Any]:
        """Return the JSON body used to create or update this workflow remotely."""
        excluded = set(TRANSFER_EXCLUDED_FIELDS)
        if preserve_id:
            excluded.discard("id")
        return self.model_dump(
            mode="json", by_alias=True, exclude=excluded, exclude_none=True
        )

    def to_document(self) -> dict[str, Any]:
        """Return the complete JSON document, as stored in backups."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
