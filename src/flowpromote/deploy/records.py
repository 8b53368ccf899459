"""Append-only storage for deployment records."""

from __future__ import annotations
import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from pydantic import ValidationError
from flowpromote.deploy.errors import RecordExistsError
from flowpromote.models.deployment import DeploymentRecord


logger = logging.getLogger(__name__)

DEPLOYMENTS_NAMESPACE = "deployments"


def generate_deployment_id(moment: datetime | None = None) -> str:
    """Return a lexicographically time-ordered id for a deployment run."""
    moment = moment or datetime.now(tz=UTC)
    return moment.astimezone(UTC).strftime("%Y%m%dT%H%M%S%fZ")


class DeploymentRecordStore:
    """Persist deployment records as JSON documents under one directory.

    Records are write-once: :meth:`write` refuses to replace an existing id.
    Unreadable files are skipped by :meth:`list` with a warning.
    """

    def __init__(self, state_dir: Path | str) -> None:
        """Create a store rooted at ``state_dir/deployments``."""
        self.root = Path(state_dir) / DEPLOYMENTS_NAMESPACE

    def _path(self, record_id: str) -> Path:
        if not record_id or "/" in record_id or "\\" in record_id:
            msg = f"Invalid deployment record id: {record_id!r}"
            raise ValueError(msg)
        return self.root / f"{record_id}.json"

    def write(self, record: DeploymentRecord) -> Path:
        """Persist ``record`` and return the file it was written to."""
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(record.id)
        text = json.dumps(record.to_document(), indent=2, ensure_ascii=False)
        try:
            with path.open("x", encoding="utf-8") as handle:
                handle.write(text)
        except FileExistsError as exc:
            msg = f"Deployment record already exists: {record.id}"
            raise RecordExistsError(msg) from exc
        logger.info("Wrote deployment record %s", path)
        return path

    def _read(self, path: Path) -> DeploymentRecord:
        return DeploymentRecord.model_validate_json(path.read_text(encoding="utf-8"))

    def list(self) -> list[DeploymentRecord]:
        """Return every readable record, newest first."""
        if not self.root.exists():
            return []
        records: list[DeploymentRecord] = []
        for path in self.root.glob("*.json"):
            try:
                records.append(self._read(path))
            except (OSError, UnicodeDecodeError, ValidationError) as exc:
                logger.warning("Skipping unreadable record %s: %s", path, exc)
        records.sort(key=lambda item: (item.timestamp, item.id), reverse=True)
        return records

    def get(self, record_id: str) -> DeploymentRecord | None:
        """Return the record called ``record_id``, if it exists and parses."""
        for record in self.list():
            if record.id == record_id:
                return record
        return None

    def get_latest(self) -> DeploymentRecord | None:
        """Return the newest record, if any."""
        records = self.list()
        return records[0] if records else None

    def delete(self, record_id: str) -> bool:
        """Remove the record called ``record_id`` and report whether it existed."""
        path = self._path(record_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True


__all__ = [
    "DEPLOYMENTS_NAMESPACE",
    "DeploymentRecordStore",
    "generate_deployment_id",
]
