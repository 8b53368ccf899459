"""Load the environment catalog from a TOML file."""

from __future__ import annotations
import logging
import os
import re
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from pydantic import ValidationError
from flowpromote.credentials import validate_credential_mappings
from flowpromote.models.environment import (
    CredentialMapping,
    Environment,
    EnvironmentCatalog,
    EnvironmentConnection,
)


logger = logging.getLogger(__name__)

_ENV_REF_RE = re.compile(r"\$\{([^}]+)\}")


class CatalogError(ValueError):
    """Raised when the environment catalog cannot be loaded."""


def expand_env_vars(value: str, env: Mapping[str, str] | None = None) -> str:
    """Replace ``${NAME}`` references with values from ``env``."""
    source = os.environ if env is None else env

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        resolved = source.get(name)
        if resolved is None:
            logger.warning("Environment variable %s is not set", name)
            return ""
        return resolved

    return _ENV_REF_RE.sub(_replace, value)


def _parse_environment(
    raw: Any, index: int, env: Mapping[str, str] | None
) -> Environment:
    if not isinstance(raw, Mapping):
        msg = f"environments[{index}] must be a table"
        raise CatalogError(msg)
    url = raw.get("url")
    if not isinstance(url, str) or not url.strip():
        msg = f"environments[{index}] requires a url"
        raise CatalogError(msg)
    api_key = raw.get("api_key", "")
    tags = raw.get("tags") or ()
    try:
        return Environment(
            name=str(raw.get("name", "")).strip(),
            connection=EnvironmentConnection(
                url=expand_env_vars(url, env),
                api_key=expand_env_vars(str(api_key), env),
            ),
            is_default=bool(raw.get("is_default", False)),
            description=raw.get("description"),
            tags=tuple(str(tag) for tag in tags),
        )
    except ValidationError as exc:
        msg = f"environments[{index}] is invalid: {exc}"
        raise CatalogError(msg) from exc


def _parse_mapping(raw: Any, index: int) -> CredentialMapping:
    if not isinstance(raw, Mapping):
        msg = f"credential_mappings[{index}] must be a table"
        raise CatalogError(msg)
    environments = raw.get("environments") or {}
    if not isinstance(environments, Mapping):
        msg = f"credential_mappings[{index}].environments must be a table"
        raise CatalogError(msg)
    return CredentialMapping(
        name=str(raw.get("name", "")),
        type=str(raw.get("type", "")),
        environments={
            str(env_name): str(cred_id)
            for env_name, cred_id in environments.items()
            if cred_id not in (None, "")
        },
    )


def parse_catalog(
    payload: Mapping[str, Any], *, env: Mapping[str, str] | None = None
) -> EnvironmentCatalog:
    """Build an :class:`EnvironmentCatalog` from decoded TOML data."""
    raw_envs = payload.get("environments") or []
    if not isinstance(raw_envs, list) or not raw_envs:
        msg = "Catalog must declare at least one [[environments]] entry"
        raise CatalogError(msg)
    environments = tuple(
        _parse_environment(item, index, env) for index, item in enumerate(raw_envs)
    )

    names = [item.name for item in environments]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        msg = f"Duplicate environment names: {', '.join(duplicates)}"
        raise CatalogError(msg)
    if sum(1 for item in environments if item.is_default) > 1:
        msg = "Only one environment may be marked is_default"
        raise CatalogError(msg)

    mappings: tuple[CredentialMapping, ...] | None = None
    raw_mappings = payload.get("credential_mappings")
    if raw_mappings is not None:
        if not isinstance(raw_mappings, list):
            msg = "credential_mappings must be an array of tables"
            raise CatalogError(msg)
        mappings = tuple(
            _parse_mapping(item, index) for index, item in enumerate(raw_mappings)
        )

    current = payload.get("current_environment")
    if current is not None and current not in names:
        msg = f"current_environment '{current}' is not a declared environment"
        raise CatalogError(msg)

    catalog = EnvironmentCatalog(
        current_environment=current,
        environments=environments,
        credential_mappings=mappings,
    )
    problems = validate_credential_mappings(catalog)
    if problems:
        msg = "Invalid credential mappings:\n" + "\n".join(
            f"  - {problem}" for problem in problems
        )
        raise CatalogError(msg)
    return catalog


def load_catalog(
    path: Path | str, *, env: Mapping[str, str] | None = None
) -> EnvironmentCatalog:
    """Read and validate the catalog stored at ``path``."""
    catalog_path = Path(path)
    if not catalog_path.exists():
        msg = f"Catalog file not found: {catalog_path}"
        raise CatalogError(msg)
    try:
        with catalog_path.open("rb") as handle:
            payload = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid catalog file {catalog_path}: {exc}"
        raise CatalogError(msg) from exc
    return parse_catalog(payload, env=env)


__all__ = [
    "CatalogError",
    "expand_env_vars",
    "load_catalog",
    "parse_catalog",
]
