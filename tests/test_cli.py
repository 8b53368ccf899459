"""Tests covering the flowpromote CLI."""

from __future__ import annotations
from pathlib import Path
from typing import Any
import pytest
from flowpromote.backup.storage import list_backups
from flowpromote.cli.main import app
from flowpromote.deploy.records import DeploymentRecordStore
from flowpromote.models.environment import Environment
from tests.fakes import FakeEnvironmentClient, make_workflow
from typer.testing import CliRunner


CATALOG_TOML = """
current_environment = "dev"

[[environments]]
name = "dev"
url = "http://dev.test"
api_key = "dev-key"
is_default = true

[[environments]]
name = "prod"
url = "http://prod.test"
api_key = "prod-key"

[[credential_mappings]]
name = "slack-main"
type = "slackApi"
environments = { dev = "11", prod = "42" }
"""


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def env(tmp_path: Path) -> dict[str, str]:
    catalog_path = tmp_path / "flowpromote.toml"
    catalog_path.write_text(CATALOG_TOML)
    return {
        "FLOWPROMOTE_CATALOG_PATH": str(catalog_path),
        "FLOWPROMOTE_STATE_DIR": str(tmp_path / "state"),
        "NO_COLOR": "1",
        "COLUMNS": "200",
    }


@pytest.fixture()
def clients(monkeypatch: pytest.MonkeyPatch) -> dict[str, FakeEnvironmentClient]:
    fakes = {
        "dev": FakeEnvironmentClient(
            [
                make_workflow("w1", "Sync", credentials={"slackApi": {"id": "11"}}),
                make_workflow("w2", "Alert"),
            ]
        ),
        "prod": FakeEnvironmentClient([make_workflow("p1", "Sync")]),
    }

    def factory(environment: Environment, **_: Any) -> FakeEnvironmentClient:
        return fakes[environment.name]

    monkeypatch.setattr("flowpromote.cli.main.create_client", factory)
    return fakes


def test_env_list_marks_current_environment(
    runner: CliRunner, env: dict[str, str]
) -> None:
    result = runner.invoke(app, ["env", "list"], env=env)

    assert result.exit_code == 0
    assert "dev*" in result.output
    assert "http://prod.test" in result.output


def test_missing_catalog_exits_with_error(
    runner: CliRunner, env: dict[str, str], tmp_path: Path
) -> None:
    result = runner.invoke(
        app, ["--catalog", str(tmp_path / "missing.toml"), "env", "list"], env=env
    )

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_invalid_settings_exit_with_error(
    runner: CliRunner, env: dict[str, str]
) -> None:
    result = runner.invoke(
        app, ["env", "list"], env={**env, "FLOWPROMOTE_PAGE_SIZE": "0"}
    )

    assert result.exit_code == 1
    assert "FLOWPROMOTE_PAGE_SIZE" in result.output


def test_credentials_list(runner: CliRunner, env: dict[str, str]) -> None:
    result = runner.invoke(app, ["credentials", "list"], env=env)

    assert result.exit_code == 0
    assert "slack-main" in result.output
    assert "slackApi" in result.output


def test_deploy_dry_run_writes_nothing(
    runner: CliRunner,
    env: dict[str, str],
    clients: dict[str, FakeEnvironmentClient],
    tmp_path: Path,
) -> None:
    result = runner.invoke(app, ["deploy", "run", "dev", "prod", "--dry-run"], env=env)

    assert result.exit_code == 0, result.output
    assert "(dry run)" in result.output
    assert "would be created" in result.output
    assert "would be skipped" in result.output
    assert clients["prod"].mutations == []
    assert not (tmp_path / "state").exists()


def test_deploy_unknown_environment(
    runner: CliRunner, env: dict[str, str], clients: dict[str, FakeEnvironmentClient]
) -> None:
    result = runner.invoke(app, ["deploy", "run", "dev", "qa"], env=env)

    assert result.exit_code == 1
    assert "Environment 'qa' not found" in result.output


def test_deploy_status_and_rollback(
    runner: CliRunner,
    env: dict[str, str],
    clients: dict[str, FakeEnvironmentClient],
    tmp_path: Path,
) -> None:
    prod = clients["prod"]

    result = runner.invoke(app, ["deploy", "run", "dev", "prod", "--force"], env=env)

    assert result.exit_code == 0, result.output
    assert "Deployment completed." in result.output
    assert prod.mutations == [("update", "p1"), ("create", "Alert")]
    assert prod.workflows["p1"].nodes[1].credentials == {"slackApi": {"id": "42"}}
    record = DeploymentRecordStore(tmp_path / "state").get_latest()
    assert record is not None
    assert record.backup_path is not None

    status = runner.invoke(app, ["deploy", "status"], env=env)
    assert status.exit_code == 0
    assert record.id in status.output

    filtered = runner.invoke(app, ["deploy", "status", "--env", "dev"], env=env)
    assert "No deployments recorded." in filtered.output

    backups = runner.invoke(app, ["backup", "list"], env=env)
    assert backups.exit_code == 0
    assert "prod" in backups.output

    preview = runner.invoke(app, ["deploy", "rollback"], env=env)
    assert preview.exit_code == 0
    assert "Re-run with --yes to restore 2 workflow(s)" in preview.output
    assert len(prod.mutations) == 2

    rollback = runner.invoke(app, ["deploy", "rollback", record.id, "--yes"], env=env)
    assert rollback.exit_code == 0, rollback.output
    assert "Rolled back 1 workflow(s)." in rollback.output
    assert prod.mutations[-1] == ("update", "p1")
    assert prod.workflows["p1"].nodes[1].credentials is None


def test_rollback_without_records(runner: CliRunner, env: dict[str, str]) -> None:
    result = runner.invoke(app, ["deploy", "rollback", "--yes"], env=env)

    assert result.exit_code == 1
    assert "Deployment not found: latest" in result.output


def test_diff_compares_inventories_by_name(
    runner: CliRunner, env: dict[str, str], clients: dict[str, FakeEnvironmentClient]
) -> None:
    result = runner.invoke(app, ["deploy", "diff", "dev", "prod"], env=env)

    assert result.exit_code == 0
    lines = result.output.splitlines()
    alert = next(line for line in lines if "Alert" in line)
    sync = next(line for line in lines if "Sync" in line)
    assert "new" in alert
    assert "both" in sync
    assert "p1" in sync


def test_backup_create_and_restore(
    runner: CliRunner,
    env: dict[str, str],
    clients: dict[str, FakeEnvironmentClient],
    tmp_path: Path,
) -> None:
    prod = clients["prod"]

    created = runner.invoke(app, ["backup", "create", "prod"], env=env)

    assert created.exit_code == 0, created.output
    assert "Backed up 1 workflow(s)" in created.output
    [snapshot] = list_backups(tmp_path / "state" / "backups")
    assert snapshot.environment == "prod"

    preview = runner.invoke(
        app, ["backup", "restore", snapshot.id, "dev", "--dry-run"], env=env
    )
    assert preview.exit_code == 0, preview.output
    assert "(dry run)" in preview.output
    assert clients["dev"].mutations == []

    restored = runner.invoke(
        app, ["backup", "restore", snapshot.id, "dev", "--mode", "skip"], env=env
    )
    assert restored.exit_code == 0, restored.output
    assert "Restored 0, skipped 1, failed 0." in restored.output
    assert clients["dev"].mutations == []

    overwritten = runner.invoke(
        app, ["backup", "restore", snapshot.id, "dev", "-w", "p1"], env=env
    )
    assert overwritten.exit_code == 0, overwritten.output
    assert "Restored 1, skipped 0, failed 0." in overwritten.output
    assert clients["dev"].mutations == [("update", "w1")]
    assert prod.mutations == []


def test_backup_restore_unknown_id(runner: CliRunner, env: dict[str, str]) -> None:
    result = runner.invoke(
        app, ["backup", "restore", "20240101_000000", "prod"], env=env
    )

    assert result.exit_code == 1
    assert "Backup not found: 20240101_000000" in result.output


def test_deploy_keeps_backups_that_records_point_to(
    runner: CliRunner,
    env: dict[str, str],
    clients: dict[str, FakeEnvironmentClient],
    tmp_path: Path,
) -> None:
    retained = {**env, "FLOWPROMOTE_BACKUP_RETENTION": "1"}
    for _ in range(2):
        result = runner.invoke(
            app, ["deploy", "run", "dev", "prod", "--force"], env=retained
        )
        assert result.exit_code == 0, result.output
    backup_dir = tmp_path / "state" / "backups"
    assert len(list_backups(backup_dir)) == 2

    extra = runner.invoke(app, ["backup", "create", "prod"], env=retained)
    assert extra.exit_code == 0, extra.output
    pruned = runner.invoke(app, ["backup", "prune"], env=retained)

    assert pruned.exit_code == 0, pruned.output
    assert "Nothing to prune." in pruned.output
    assert len(list_backups(backup_dir)) == 3

    oldest = DeploymentRecordStore(tmp_path / "state").list()[-1]
    assert oldest.backup_path is not None
    rollback = runner.invoke(
        app, ["deploy", "rollback", oldest.id, "--yes"], env=retained
    )
    assert rollback.exit_code == 0, rollback.output


def test_backup_prune_removes_unreferenced_snapshots(
    runner: CliRunner,
    env: dict[str, str],
    clients: dict[str, FakeEnvironmentClient],
    tmp_path: Path,
) -> None:
    for _ in range(3):
        result = runner.invoke(app, ["backup", "create", "prod"], env=env)
        assert result.exit_code == 0, result.output

    pruned = runner.invoke(app, ["backup", "prune", "--retention", "1"], env=env)

    assert pruned.exit_code == 0, pruned.output
    assert "Pruned 2 old backup(s)." in pruned.output
    assert len(list_backups(tmp_path / "state" / "backups")) == 1
