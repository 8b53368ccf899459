"""Shared helpers used across CLI command modules."""

from __future__ import annotations
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import NoReturn
import typer
from flowpromote.catalog import CatalogError, load_catalog
from flowpromote.cli.state import CLIContext
from flowpromote.client import RemoteEnvironmentClient
from flowpromote.models.environment import (
    Environment,
    EnvironmentCatalog,
    EnvironmentNotFoundError,
)


def get_context(ctx: typer.Context) -> CLIContext:
    """Return the CLI context stored on the Typer context object."""
    obj = ctx.find_object(CLIContext)
    if not isinstance(obj, CLIContext):  # pragma: no cover
        msg = "CLI context has not been initialised"
        raise RuntimeError(msg)
    return obj


def abort_with_error(context: CLIContext, exc: Exception) -> NoReturn:
    """Print ``exc`` and exit the CLI with a non-zero status code."""
    context.console.print(f"[red]Error:[/red] {exc}")
    raise typer.Exit(code=1)


def load_context_catalog(context: CLIContext) -> EnvironmentCatalog:
    """Load the environment catalog or abort the command."""
    try:
        return load_catalog(context.catalog_path)
    except CatalogError as exc:
        abort_with_error(context, exc)


def resolve_environment(
    context: CLIContext, catalog: EnvironmentCatalog, name: str
) -> Environment:
    """Return the environment called ``name`` or abort the command."""
    try:
        return catalog.get_environment(name)
    except EnvironmentNotFoundError as exc:
        abort_with_error(context, exc)


def parse_ids(raw: str | None) -> tuple[str, ...] | None:
    """Split a comma separated option value into ids."""
    if not raw:
        return None
    ids = tuple(part.strip() for part in raw.split(",") if part.strip())
    return ids or None


@asynccontextmanager
async def open_client(
    context: CLIContext, environment: Environment
) -> AsyncIterator[RemoteEnvironmentClient]:
    """Yield a client for ``environment`` and close it afterwards."""
    client = context.client_factory(environment)
    try:
        yield client
    finally:
        close = getattr(client, "aclose", None)
        if close is not None:
            await close()


__all__ = [
    "abort_with_error",
    "get_context",
    "load_context_catalog",
    "open_client",
    "parse_ids",
    "resolve_environment",
]
