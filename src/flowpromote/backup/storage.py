"""On-disk layout of snapshot directories."""

from __future__ import annotations
import json
import logging
import re
import shutil
from collections.abc import Iterable
from datetime import datetime, timedelta
from pathlib import Path
from pydantic import ValidationError
from flowpromote.backup.models import BackupListItem, BackupManifest


logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"
_BACKUP_ID_RE = re.compile(r"^\d{8}_\d{6}(_\d{6})?$")
_FILENAME_RE = re.compile(r"[^A-Za-z0-9_-]+")


class BackupError(RuntimeError):
    """Raised when a snapshot directory cannot be written or read."""


def generate_backup_id(moment: datetime | None = None) -> str:
    """Return a ``YYYYMMDD_HHMMSS_ffffff`` id for ``moment`` in local time."""
    return (moment or datetime.now()).strftime("%Y%m%d_%H%M%S_%f")


def is_valid_backup_id(value: str) -> bool:
    """Return whether ``value`` looks like a generated backup id."""
    return bool(_BACKUP_ID_RE.fullmatch(value))


def workflow_filename(workflow_id: str, name: str) -> str:
    """Return a filesystem-safe filename for one stored workflow."""
    slug = _FILENAME_RE.sub("_", name).strip("_") or "workflow"
    return f"{slug[:64]}_{_FILENAME_RE.sub('_', workflow_id)}.json"


def create_backup_directory(base_dir: Path, backup_id: str) -> Path:
    """Create ``base_dir/backup_id`` and refuse to reuse an existing one."""
    backup_dir = base_dir / backup_id
    base_dir.mkdir(parents=True, exist_ok=True)
    try:
        backup_dir.mkdir()
    except FileExistsError as exc:
        msg = f"Backup directory already exists: {backup_dir}"
        raise BackupError(msg) from exc
    return backup_dir


def allocate_backup_directory(
    base_dir: Path, moment: datetime | None = None, *, attempts: int = 1000
) -> tuple[str, Path]:
    """Create a snapshot directory under a fresh generated id.

    Ids taken within the same clock tick are bumped one microsecond at a time.
    """
    moment = moment or datetime.now()
    for _ in range(attempts):
        backup_id = generate_backup_id(moment)
        try:
            return backup_id, create_backup_directory(base_dir, backup_id)
        except BackupError:
            moment += timedelta(microseconds=1)
    msg = f"Could not allocate a backup directory under {base_dir}"
    raise BackupError(msg)


def write_manifest(backup_dir: Path, manifest: BackupManifest) -> Path:
    """Persist ``manifest`` inside ``backup_dir``."""
    path = backup_dir / MANIFEST_FILENAME
    payload = manifest.model_dump(mode="json", by_alias=True, exclude_none=True)
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    path.write_text(text, encoding="utf-8")
    return path


def read_manifest(backup_dir: Path) -> BackupManifest:
    """Load the manifest stored inside ``backup_dir``."""
    path = backup_dir / MANIFEST_FILENAME
    if not path.exists():
        msg = f"Manifest not found: {path}"
        raise BackupError(msg)
    try:
        return BackupManifest.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        msg = f"Manifest is invalid: {path}"
        raise BackupError(msg) from exc


def list_backups(base_dir: Path) -> list[BackupListItem]:
    """Return snapshots found under ``base_dir``, newest first."""
    if not base_dir.exists():
        return []
    backups: list[BackupListItem] = []
    for entry in base_dir.iterdir():
        if not entry.is_dir() or not is_valid_backup_id(entry.name):
            continue
        if not (entry / MANIFEST_FILENAME).exists():
            continue
        try:
            manifest = read_manifest(entry)
        except BackupError as exc:
            logger.warning("Skipping unreadable backup %s: %s", entry, exc)
            continue
        backups.append(
            BackupListItem(
                id=manifest.metadata.id,
                path=str(entry),
                timestamp=manifest.metadata.timestamp,
                environment=manifest.metadata.environment,
                workflow_count=manifest.metadata.workflow_count,
            )
        )
    return sorted(backups, key=lambda item: item.id, reverse=True)


def get_latest_backup(base_dir: Path) -> BackupManifest | None:
    """Return the manifest of the newest snapshot, if any."""
    backups = list_backups(base_dir)
    if not backups:
        return None
    return read_manifest(Path(backups[0].path))


def find_backup_path(base_dir: Path, backup_id: str) -> Path:
    """Return the directory of ``backup_id``."""
    for item in list_backups(base_dir):
        if item.id == backup_id:
            return Path(item.path)
    msg = f"Backup not found: {backup_id}"
    raise BackupError(msg)


def delete_backup(backup_dir: Path) -> None:
    """Remove a snapshot directory."""
    if not backup_dir.exists():
        msg = f"Backup directory not found: {backup_dir}"
        raise BackupError(msg)
    shutil.rmtree(backup_dir)


def prune_old_backups(
    base_dir: Path,
    retention: int,
    *,
    protected: Iterable[Path | str] = (),
) -> list[str]:
    """Delete all but the newest ``retention`` snapshots and return their ids.

    Snapshots listed in ``protected`` are kept regardless of their age.
    """
    if retention < 1:
        msg = "retention must be at least 1"
        raise ValueError(msg)
    keep = {Path(path).resolve() for path in protected}
    deleted: list[str] = []
    for item in list_backups(base_dir)[retention:]:
        if Path(item.path).resolve() in keep:
            logger.info("Keeping backup %s still referenced by a deployment", item.id)
            continue
        try:
            delete_backup(Path(item.path))
        except OSError as exc:
            logger.warning("Could not delete backup %s: %s", item.path, exc)
            continue
        deleted.append(item.id)
    return deleted


__all__ = [
    "MANIFEST_FILENAME",
    "BackupError",
    "allocate_backup_directory",
    "create_backup_directory",
    "delete_backup",
    "find_backup_path",
    "generate_backup_id",
    "get_latest_backup",
    "is_valid_backup_id",
    "list_backups",
    "prune_old_backups",
    "read_manifest",
    "workflow_filename",
    "write_manifest",
]
