"""Runtime configuration helpers for flowpromote."""

from __future__ import annotations
from functools import lru_cache
from pathlib import Path
from dynaconf import Dynaconf


_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}

_DEFAULTS: dict[str, object] = {
    "CATALOG_PATH": "flowpromote.toml",
    "STATE_DIR": ".flowpromote",
    "BACKUP_DIR": None,
    "REQUEST_TIMEOUT": 30.0,
    "HEALTH_TIMEOUT": 5.0,
    "PAGE_SIZE": 100,
    "BACKUP_RETENTION": 10,
    "LOG_LEVEL": "WARNING",
}


def _build_loader() -> Dynaconf:
    """Create a Dynaconf loader wired to environment variables only."""
    return Dynaconf(
        envvar_prefix="FLOWPROMOTE",
        settings_files=[],
        load_dotenv=True,
        environments=False,
    )


def _positive_float(source: Dynaconf, key: str) -> float:
    raw = source.get(key, _DEFAULTS[key])
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        msg = f"FLOWPROMOTE_{key} must be a number."
        raise ValueError(msg) from exc
    if value <= 0:
        msg = f"FLOWPROMOTE_{key} must be greater than zero."
        raise ValueError(msg)
    return value


def _bounded_int(source: Dynaconf, key: str, *, minimum: int, maximum: int) -> int:
    raw = source.get(key, _DEFAULTS[key])
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        msg = f"FLOWPROMOTE_{key} must be an integer."
        raise ValueError(msg) from exc
    if not minimum <= value <= maximum:
        msg = f"FLOWPROMOTE_{key} must be between {minimum} and {maximum}."
        raise ValueError(msg)
    return value


def _normalize_settings(source: Dynaconf) -> Dynaconf:
    """Validate and fill defaults on the raw Dynaconf settings."""
    normalized = Dynaconf(
        envvar_prefix="FLOWPROMOTE",
        settings_files=[],
        load_dotenv=False,
        environments=False,
    )

    catalog_path = source.get("CATALOG_PATH") or _DEFAULTS["CATALOG_PATH"]
    normalized.set("CATALOG_PATH", str(catalog_path))

    state_dir = str(source.get("STATE_DIR") or _DEFAULTS["STATE_DIR"])
    normalized.set("STATE_DIR", state_dir)

    backup_dir = source.get("BACKUP_DIR") or str(Path(state_dir) / "backups")
    normalized.set("BACKUP_DIR", str(backup_dir))

    normalized.set("REQUEST_TIMEOUT", _positive_float(source, "REQUEST_TIMEOUT"))
    normalized.set("HEALTH_TIMEOUT", _positive_float(source, "HEALTH_TIMEOUT"))
    normalized.set(
        "PAGE_SIZE", _bounded_int(source, "PAGE_SIZE", minimum=1, maximum=250)
    )
    normalized.set(
        "BACKUP_RETENTION",
        _bounded_int(source, "BACKUP_RETENTION", minimum=1, maximum=10_000),
    )

    log_level = str(source.get("LOG_LEVEL") or _DEFAULTS["LOG_LEVEL"]).upper()
    if log_level not in _LOG_LEVELS:
        msg = (
            "FLOWPROMOTE_LOG_LEVEL must be one of "
            f"{', '.join(sorted(_LOG_LEVELS))}."
        )
        raise ValueError(msg)
    normalized.set("LOG_LEVEL", log_level)

    return normalized


@lru_cache(maxsize=1)
def _load_settings() -> Dynaconf:
    """Load settings once and cache the normalized Dynaconf instance."""
    return _normalize_settings(_build_loader())


def get_settings(*, refresh: bool = False) -> Dynaconf:
    """Return the cached Dynaconf settings, reloading them if requested."""
    if refresh:
        _load_settings.cache_clear()
    return _load_settings()


__all__ = ["get_settings"]
