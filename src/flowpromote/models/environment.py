"""Immutable environment catalog and credential mapping entities."""

from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator


__all__ = [
    "CredentialMapping",
    "Environment",
    "EnvironmentCatalog",
    "EnvironmentConnection",
    "EnvironmentNotFoundError",
]


class EnvironmentNotFoundError(KeyError):
    """Raised when a catalog lookup names an unknown environment."""

    def __init__(self, name: str, available: list[str]) -> None:
        """Store the requested name together with the configured names."""
        self.name = name
        self.available = available
        listed = ", ".join(available) or "(none)"
        super().__init__(f"Environment '{name}' not found. Available: {listed}")

    def __str__(self) -> str:
        """Return the message without KeyError quoting."""
        return str(self.args[0])


class EnvironmentConnection(BaseModel):
    """Connection descriptor for one remote environment."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(min_length=1)
    api_key: str = ""

    @field_validator("url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class Environment(BaseModel):
    """Named, independently addressable deployment target."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    connection: EnvironmentConnection
    is_default: bool = False
    description: str | None = None
    tags: tuple[str, ...] = ()


class CredentialMapping(BaseModel):
    """Logical credential with its identifier in each environment."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    environments: dict[str, str] = Field(default_factory=dict)

    def id_for(self, environment: str) -> str | None:
        """Return the credential id for ``environment`` when one is configured."""
        value = self.environments.get(environment)
        return value or None


class EnvironmentCatalog(BaseModel):
    """Static set of environments and credential mappings."""

    model_config = ConfigDict(frozen=True)

    current_environment: str | None = None
    environments: tuple[Environment, ...] = ()
    credential_mappings: tuple[CredentialMapping, ...] | None = None

    def environment_names(self) -> list[str]:
        """Return environment names in declaration order."""
        return [env.name for env in self.environments]

    def has_environment(self, name: str) -> bool:
        """Return whether ``name`` resolves to a configured environment."""
        return any(env.name == name for env in self.environments)

    def find_environment(self, name: str) -> Environment | None:
        """Return the environment called ``name`` or ``None``."""
        for env in self.environments:
            if env.name == name:
                return env
        return None

    def get_environment(self, name: str) -> Environment:
        """Return the environment called ``name`` or raise."""
        env = self.find_environment(name)
        if env is None:
            raise EnvironmentNotFoundError(name, self.environment_names())
        return env

    def default_environment(self) -> Environment | None:
        """Return the environment flagged as default, if any."""
        for env in self.environments:
            if env.is_default:
                return env
        return None
