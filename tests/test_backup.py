"""Tests for environment snapshots."""

from __future__ import annotations
import json
from datetime import UTC, datetime
from pathlib import Path
import pytest
from flowpromote.backup.engine import create_backup, restore_backup
from flowpromote.backup.models import RestoreMode, RestoreOptions
from flowpromote.backup.storage import (
    BackupError,
    allocate_backup_directory,
    create_backup_directory,
    is_valid_backup_id,
    find_backup_path,
    generate_backup_id,
    get_latest_backup,
    list_backups,
    prune_old_backups,
    read_manifest,
    workflow_filename,
)
from flowpromote.models.deployment import DeployAction
from tests.fakes import FakeEnvironmentClient, make_workflow


SLACK = {"slackApi": {"id": "11", "name": "Slack"}}


async def _snapshot(
    client: FakeEnvironmentClient, base_dir: Path, backup_id: str, **kwargs: bool
) -> Path:
    result = await create_backup(
        client,
        base_dir=base_dir,
        environment="prod",
        base_url="http://prod.test",
        backup_id=backup_id,
        **kwargs,
    )
    assert result.backup_path is not None
    return Path(result.backup_path)


def test_backup_id_and_filenames() -> None:
    moment = datetime(2024, 5, 6, 7, 8, 9, tzinfo=UTC)

    assert generate_backup_id(moment) == "20240506_070809_000000"
    assert workflow_filename("w1", "Sync / Daily") == "Sync_Daily_w1.json"


def test_backup_directory_is_never_reused(tmp_path: Path) -> None:
    create_backup_directory(tmp_path, "20240101_000000")

    with pytest.raises(BackupError):
        create_backup_directory(tmp_path, "20240101_000000")


def test_allocation_within_one_clock_tick_gets_distinct_ids(tmp_path: Path) -> None:
    moment = datetime(2024, 1, 1, 9, 0, 0)

    first_id, first_dir = allocate_backup_directory(tmp_path, moment)
    second_id, second_dir = allocate_backup_directory(tmp_path, moment)

    assert first_id == "20240101_090000_000000"
    assert second_id == "20240101_090000_000001"
    assert first_dir != second_dir
    assert is_valid_backup_id(second_id)
    assert is_valid_backup_id("20240101_090000")
    assert not is_valid_backup_id("20240101_0900")


@pytest.mark.asyncio
async def test_back_to_back_backups_do_not_collide(tmp_path: Path) -> None:
    client = FakeEnvironmentClient([make_workflow("p1", "Sync")])

    results = [
        await create_backup(
            client, base_dir=tmp_path, environment="prod", base_url="http://prod.test"
        )
        for _ in range(3)
    ]

    assert all(result.success for result in results)
    assert len({result.backup_id for result in results}) == 3
    assert len(list_backups(tmp_path)) == 3


@pytest.mark.asyncio
async def test_failed_listing_leaves_no_directory(tmp_path: Path) -> None:
    client = FakeEnvironmentClient([make_workflow("p1", "Sync")])
    client.fail_listing = True

    result = await create_backup(
        client, base_dir=tmp_path, environment="prod", base_url="http://prod.test"
    )

    assert not result.success
    assert result.backup_path is None
    assert result.error is not None
    assert "Failed to list workflows" in result.error
    assert not tmp_path.exists() or list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_create_backup_writes_manifest_and_bodies(tmp_path: Path) -> None:
    client = FakeEnvironmentClient(
        [
            make_workflow("p1", "Sync", credentials=SLACK, active=True),
            make_workflow("p2", "Alert"),
        ]
    )

    result = await create_backup(
        client,
        base_dir=tmp_path,
        environment="prod",
        base_url="http://prod.test",
        backup_id="20240101_000000",
        description="nightly",
    )

    assert result.success
    assert result.success_count == 2
    manifest = read_manifest(tmp_path / "20240101_000000")
    assert manifest.metadata.environment == "prod"
    assert manifest.metadata.workflow_count == 2
    assert [item.id for item in manifest.workflows] == ["p1", "p2"]
    assert manifest.workflows[0].active is True
    body = json.loads(
        (tmp_path / "20240101_000000" / manifest.workflows[0].filename).read_text()
    )
    assert body["nodes"][1]["credentials"] == SLACK
    assert client.mutations == []


@pytest.mark.asyncio
async def test_create_backup_collects_failures(tmp_path: Path) -> None:
    client = FakeEnvironmentClient(
        [make_workflow("p1", "Sync"), make_workflow("p2", "Alert")]
    )
    client.fail_get.add("p2")

    result = await create_backup(
        client, base_dir=tmp_path, environment="prod", base_url="http://prod.test"
    )

    assert not result.success
    assert result.success_count == 1
    assert result.failed_workflows == ["p2"]


@pytest.mark.asyncio
async def test_create_backup_can_strip_credentials(tmp_path: Path) -> None:
    client = FakeEnvironmentClient([make_workflow("p1", "Sync", credentials=SLACK)])

    backup_dir = await _snapshot(
        client, tmp_path, "20240101_000000", strip_credentials=True
    )

    manifest = read_manifest(backup_dir)
    assert manifest.credentials_stripped
    body = json.loads((backup_dir / manifest.workflows[0].filename).read_text())
    assert "credentials" not in body["nodes"][1]


@pytest.mark.asyncio
async def test_listing_and_retention(tmp_path: Path) -> None:
    client = FakeEnvironmentClient([make_workflow("p1", "Sync")])
    for backup_id in ("20240101_000000", "20240102_000000", "20240103_000000"):
        await _snapshot(client, tmp_path, backup_id)
    (tmp_path / "not-a-backup").mkdir()

    assert [item.id for item in list_backups(tmp_path)] == [
        "20240103_000000",
        "20240102_000000",
        "20240101_000000",
    ]
    latest = get_latest_backup(tmp_path)
    assert latest is not None
    assert latest.metadata.id == "20240103_000000"
    assert find_backup_path(tmp_path, "20240102_000000").name == "20240102_000000"

    assert prune_old_backups(tmp_path, 1) == ["20240102_000000", "20240101_000000"]
    assert [item.id for item in list_backups(tmp_path)] == ["20240103_000000"]
    with pytest.raises(BackupError):
        find_backup_path(tmp_path, "20240101_000000")


@pytest.mark.asyncio
async def test_retention_keeps_protected_snapshots(tmp_path: Path) -> None:
    client = FakeEnvironmentClient([make_workflow("p1", "Sync")])
    for backup_id in ("20240101_000000", "20240102_000000", "20240103_000000"):
        await _snapshot(client, tmp_path, backup_id)

    deleted = prune_old_backups(
        tmp_path, 1, protected=[str(tmp_path / "20240101_000000")]
    )

    assert deleted == ["20240102_000000"]
    assert [item.id for item in list_backups(tmp_path)] == [
        "20240103_000000",
        "20240101_000000",
    ]


@pytest.mark.asyncio
async def test_restore_overwrite_updates_and_creates(tmp_path: Path) -> None:
    source = FakeEnvironmentClient(
        [make_workflow("p1", "Sync"), make_workflow("p2", "Alert")]
    )
    backup_dir = await _snapshot(source, tmp_path, "20240101_000000")
    target = FakeEnvironmentClient([make_workflow("x1", "Sync")])

    result = await restore_backup(
        target, backup_dir, RestoreOptions(mode=RestoreMode.OVERWRITE)
    )

    assert result.success
    assert result.success_count == 2
    assert [item.action for item in result.workflows] == [
        DeployAction.UPDATED,
        DeployAction.CREATED,
    ]
    assert target.mutations == [("update", "x1"), ("create", "Alert")]


@pytest.mark.asyncio
async def test_restore_skip_mode_leaves_existing(tmp_path: Path) -> None:
    source = FakeEnvironmentClient([make_workflow("p1", "Sync")])
    backup_dir = await _snapshot(source, tmp_path, "20240101_000000")
    target = FakeEnvironmentClient([make_workflow("x1", "Sync")])

    result = await restore_backup(target, backup_dir)

    assert result.success
    assert result.skipped_count == 1
    assert result.success_count == 0
    assert target.mutations == []


@pytest.mark.asyncio
async def test_restore_dry_run_and_target_filter(tmp_path: Path) -> None:
    source = FakeEnvironmentClient(
        [make_workflow("p1", "Sync"), make_workflow("p2", "Alert")]
    )
    backup_dir = await _snapshot(source, tmp_path, "20240101_000000")
    target = FakeEnvironmentClient()

    result = await restore_backup(
        target, backup_dir, RestoreOptions(target_ids=("p2",), dry_run=True)
    )

    assert result.total_count == 1
    assert result.skipped_count == 1
    assert [item.original_id for item in result.workflows] == ["p2"]
    assert target.calls == []


@pytest.mark.asyncio
async def test_restore_stops_on_error_when_asked(tmp_path: Path) -> None:
    source = FakeEnvironmentClient(
        [make_workflow("p1", "Sync"), make_workflow("p2", "Alert")]
    )
    backup_dir = await _snapshot(source, tmp_path, "20240101_000000")
    target = FakeEnvironmentClient()
    target.fail_create.add("Sync")

    result = await restore_backup(
        target, backup_dir, RestoreOptions(continue_on_error=False)
    )

    assert not result.success
    assert result.failed_count == 1
    assert len(result.workflows) == 1
    assert target.mutations == [("create", "Sync")]


@pytest.mark.asyncio
async def test_restore_reports_unreadable_manifest(tmp_path: Path) -> None:
    result = await restore_backup(FakeEnvironmentClient(), tmp_path / "missing")

    assert not result.success
    assert result.error is not None
    assert "manifest" in result.error
