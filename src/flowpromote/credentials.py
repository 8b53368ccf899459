"""Credential mapping resolution between environment-scoped identifier spaces."""

from __future__ import annotations
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from flowpromote.models.environment import CredentialMapping, EnvironmentCatalog


__all__ = [
    "CredentialIdentifier",
    "CredentialMappingSummary",
    "CredentialTransform",
    "CredentialTranslation",
    "DuplicateCredentialMappingError",
    "build_credential_transform",
    "get_credential_id_for_env",
    "get_credential_mapping",
    "list_credential_mappings",
    "validate_credential_mappings",
]


class DuplicateCredentialMappingError(ValueError):
    """Raised when two logical mappings claim the same source credential id."""

    def __init__(self, duplicates: Mapping[str, list[str]]) -> None:
        """Record the colliding original ids and the mapping names behind them."""
        self.duplicates = dict(duplicates)
        parts = [
            f"'{original_id}' ({', '.join(names)})"
            for original_id, names in self.duplicates.items()
        ]
        super().__init__(
            "Credential id mapped by more than one logical credential: "
            + "; ".join(parts)
        )


@dataclass(frozen=True, slots=True)
class CredentialIdentifier:
    """Credential reference value resolved into an explicit id-or-nothing."""

    has_id: bool
    id: str | None = None

    @classmethod
    def from_value(cls, value: Any) -> CredentialIdentifier:
        """Resolve a raw node credential value.

        Only mappings carrying a string or integer ``id`` resolve to an id.
        Booleans are rejected even though they are integers.
        """
        if not isinstance(value, Mapping):
            return cls(has_id=False)
        raw = value.get("id")
        if isinstance(raw, bool):
            return cls(has_id=False)
        if isinstance(raw, str) and raw:
            return cls(has_id=True, id=raw)
        if isinstance(raw, int):
            return cls(has_id=True, id=str(raw))
        return cls(has_id=False)


@dataclass(frozen=True, slots=True)
class CredentialTranslation:
    """Translation of one logical credential from source to target."""

    original_id: str
    new_id: str
    name: str
    type: str


@dataclass(frozen=True, slots=True)
class CredentialTransform:
    """Translation table for one (source, target) environment pair."""

    source_env: str
    target_env: str
    mappings: tuple[CredentialTranslation, ...] = ()

    @property
    def id_map(self) -> dict[str, str]:
        """Return ``original_id -> new_id`` for quick lookups."""
        return {item.original_id: item.new_id for item in self.mappings}

    def is_empty(self) -> bool:
        """Return whether no credential can be translated."""
        return not self.mappings

    def duplicate_source_ids(self) -> dict[str, list[str]]:
        """Return source ids claimed by more than one logical mapping."""
        claims: dict[str, list[str]] = defaultdict(list)
        for item in self.mappings:
            claims[item.original_id].append(item.name)
        return {key: names for key, names in claims.items() if len(names) > 1}

    def ensure_unique(self) -> CredentialTransform:
        """Return ``self`` or raise when source ids collide."""
        duplicates = self.duplicate_source_ids()
        if duplicates:
            raise DuplicateCredentialMappingError(duplicates)
        return self


def build_credential_transform(
    mappings: Iterable[CredentialMapping] | None,
    source_env: str,
    target_env: str,
) -> CredentialTransform:
    """Build the translation table between ``source_env`` and ``target_env``.

    A mapping contributes a translation only when both environments carry an
    id for it. Mappings missing on either side are left out without error.
    """
    translations: list[CredentialTranslation] = []
    for mapping in mappings or ():
        original_id = mapping.id_for(source_env)
        new_id = mapping.id_for(target_env)
        if original_id and new_id:
            translations.append(
                CredentialTranslation(
                    original_id=original_id,
                    new_id=new_id,
                    name=mapping.name,
                    type=mapping.type,
                )
            )
    return CredentialTransform(
        source_env=source_env,
        target_env=target_env,
        mappings=tuple(translations),
    )


def get_credential_mapping(
    catalog: EnvironmentCatalog, name: str
) -> CredentialMapping | None:
    """Return the logical mapping called ``name``."""
    for mapping in catalog.credential_mappings or ():
        if mapping.name == name:
            return mapping
    return None


def get_credential_id_for_env(
    catalog: EnvironmentCatalog, mapping_name: str, env_name: str
) -> str | None:
    """Return the credential id of ``mapping_name`` inside ``env_name``."""
    mapping = get_credential_mapping(catalog, mapping_name)
    if mapping is None:
        return None
    return mapping.id_for(env_name)


@dataclass(slots=True)
class CredentialMappingSummary:
    """Presence table of one logical credential across all environments."""

    name: str
    type: str
    environment_status: dict[str, bool] = field(default_factory=dict)


def list_credential_mappings(
    catalog: EnvironmentCatalog,
) -> list[CredentialMappingSummary]:
    """Summarize which environments define each logical credential."""
    env_names = catalog.environment_names()
    return [
        CredentialMappingSummary(
            name=mapping.name,
            type=mapping.type,
            environment_status={
                env_name: mapping.id_for(env_name) is not None
                for env_name in env_names
            },
        )
        for mapping in catalog.credential_mappings or ()
    ]


def validate_credential_mappings(catalog: EnvironmentCatalog) -> list[str]:
    """Return human readable problems found in the credential mappings."""
    errors: list[str] = []
    env_names = set(catalog.environment_names())
    seen: set[str] = set()

    for mapping in catalog.credential_mappings or ():
        if not mapping.name.strip():
            errors.append("credential mapping requires a name")
            continue
        if mapping.name in seen:
            errors.append(f"duplicate credential mapping name '{mapping.name}'")
        seen.add(mapping.name)

        if not mapping.type.strip():
            errors.append(f"credential mapping '{mapping.name}' requires a type")

        for env_name in mapping.environments:
            if env_name not in env_names:
                errors.append(
                    f"credential mapping '{mapping.name}' references unknown "
                    f"environment '{env_name}'"
                )

        if not any(mapping.environments.values()):
            errors.append(
                f"credential mapping '{mapping.name}' needs a credential id in "
                "at least one environment"
            )

    return errors
