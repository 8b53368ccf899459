"""Shared fixtures for flowpromote tests."""

from __future__ import annotations
from collections.abc import Iterator
import pytest
from flowpromote import config
from flowpromote.models.environment import CredentialMapping, EnvironmentCatalog
from tests.fakes import make_catalog


@pytest.fixture()
def slack_mapping() -> CredentialMapping:
    return CredentialMapping(
        name="slack-main", type="slackApi", environments={"dev": "11", "prod": "42"}
    )


@pytest.fixture()
def catalog() -> EnvironmentCatalog:
    return make_catalog()


@pytest.fixture()
def mapped_catalog(slack_mapping: CredentialMapping) -> EnvironmentCatalog:
    return make_catalog([slack_mapping])


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for key in (
        "FLOWPROMOTE_CATALOG_PATH",
        "FLOWPROMOTE_STATE_DIR",
        "FLOWPROMOTE_BACKUP_DIR",
        "FLOWPROMOTE_REQUEST_TIMEOUT",
        "FLOWPROMOTE_HEALTH_TIMEOUT",
        "FLOWPROMOTE_PAGE_SIZE",
        "FLOWPROMOTE_BACKUP_RETENTION",
        "FLOWPROMOTE_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    config._load_settings.cache_clear()
    yield
    config._load_settings.cache_clear()
