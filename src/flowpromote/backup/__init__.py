"""Environment snapshots used for pre-deployment backups and rollback."""

from flowpromote.backup.engine import create_backup, restore_backup
from flowpromote.backup.models import (
    BackupListItem,
    BackupManifest,
    BackupResult,
    RestoreMode,
    RestoreOptions,
    RestoreResult,
    RestoreWorkflowResult,
)
from flowpromote.backup.storage import (
    BackupError,
    delete_backup,
    find_backup_path,
    get_latest_backup,
    list_backups,
    prune_old_backups,
    read_manifest,
)


__all__ = [
    "BackupError",
    "BackupListItem",
    "BackupManifest",
    "BackupResult",
    "RestoreMode",
    "RestoreOptions",
    "RestoreResult",
    "RestoreWorkflowResult",
    "create_backup",
    "delete_backup",
    "find_backup_path",
    "get_latest_backup",
    "list_backups",
    "prune_old_backups",
    "read_manifest",
    "restore_backup",
]
