"""HTTP client for a single remote workflow environment."""

from __future__ import annotations
import logging
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable
import httpx
from flowpromote.models.environment import Environment
from flowpromote.models.workflow import WorkflowDefinition, WorkflowSummary


logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
API_KEY_HEADER = "X-API-KEY"
USER_AGENT = "flowpromote/0.1"


class EnvironmentApiError(RuntimeError):
    """Raised when a remote environment request fails."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        payload: Any | None = None,
    ) -> None:
        """Store HTTP error context for later reporting."""
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class WorkflowNotFoundError(EnvironmentApiError):
    """Raised when a workflow id does not exist in the environment."""


@runtime_checkable
class RemoteEnvironmentClient(Protocol):
    """Operations the deployment core consumes from an environment."""

    async def get_all_workflows(self) -> list[WorkflowSummary]:
        """Return the full inventory in listing order."""
        ...  # pragma: no cover

    async def get_workflow(self, workflow_id: str) -> WorkflowDefinition:
        """Return the full body of ``workflow_id``."""
        ...  # pragma: no cover

    async def create_workflow(self, body: Mapping[str, Any]) -> WorkflowDefinition:
        """Create a workflow and return it with its assigned id."""
        ...  # pragma: no cover

    async def update_workflow(
        self, workflow_id: str, body: Mapping[str, Any]
    ) -> WorkflowDefinition:
        """Replace ``workflow_id`` with ``body``."""
        ...  # pragma: no cover

    async def activate_workflow(self, workflow_id: str) -> WorkflowDefinition:
        """Activate ``workflow_id``."""
        ...  # pragma: no cover

    async def health_check(self) -> bool:
        """Return whether the environment is reachable."""
        ...  # pragma: no cover


def _error_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, Mapping):
        for key in ("message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    if isinstance(payload, str) and payload:
        return payload
    return fallback


class HttpEnvironmentClient:
    """Thin wrapper around ``httpx.AsyncClient`` for one environment."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str,
        timeout: float = 30.0,
        health_timeout: float = 5.0,
        page_size: int = 100,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a client bound to ``base_url``."""
        self.base_url = base_url.rstrip("/")
        self._health_timeout = health_timeout
        self._page_size = page_size
        headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
            API_KEY_HEADER: api_key,
        }
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Release the underlying HTTP resources."""
        await self._client.aclose()

    async def __aenter__(self) -> HttpEnvironmentClient:
        """Return the client for ``async with`` usage."""
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Close the client when leaving the context."""
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Issue a request under the API prefix and decode its JSON body."""
        try:
            response = await self._client.request(
                method, f"{API_PREFIX}{path}", **kwargs
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            payload: Any | None
            try:
                payload = exc.response.json()
            except ValueError:
                payload = exc.response.text
            status = exc.response.status_code
            message = _error_message(
                payload, f"Request failed with status {status}"
            )
            error_cls = WorkflowNotFoundError if status == 404 else EnvironmentApiError
            raise error_cls(message, status_code=status, payload=payload) from exc
        except httpx.TimeoutException as exc:
            raise EnvironmentApiError(f"Request timed out: {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise EnvironmentApiError(f"HTTP error: {exc}") from exc

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise EnvironmentApiError("Unexpected response payload") from exc

    async def health_check(self) -> bool:
        """Probe ``/healthz`` and fall back to a one-item listing."""
        try:
            response = await self._client.get(
                "/healthz", timeout=self._health_timeout
            )
            if response.is_success:
                return True
        except httpx.HTTPError as exc:
            logger.debug("Health probe failed for %s: %s", self.base_url, exc)
        try:
            await self._request("GET", "/workflows", params={"limit": 1})
        except EnvironmentApiError:
            return False
        return True

    async def get_all_workflows(self) -> list[WorkflowSummary]:
        """Follow the listing cursor until the inventory is exhausted."""
        workflows: list[WorkflowSummary] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"limit": self._page_size}
            if cursor:
                params["cursor"] = cursor
            payload = await self._request("GET", "/workflows", params=params)
            payload = payload or {}
            workflows.extend(
                WorkflowSummary.model_validate(item)
                for item in payload.get("data", [])
            )
            cursor = payload.get("nextCursor")
            if not cursor:
                return workflows

    async def get_workflow(self, workflow_id: str) -> WorkflowDefinition:
        """Return the full definition of ``workflow_id``."""
        payload = await self._request("GET", f"/workflows/{workflow_id}")
        return WorkflowDefinition.model_validate(payload)

    async def create_workflow(self, body: Mapping[str, Any]) -> WorkflowDefinition:
        """Create a workflow from ``body``."""
        payload = await self._request("POST", "/workflows", json=dict(body))
        return WorkflowDefinition.model_validate(payload)

    async def update_workflow(
        self, workflow_id: str, body: Mapping[str, Any]
    ) -> WorkflowDefinition:
        """Replace the stored definition of ``workflow_id``."""
        payload = await self._request(
            "PUT", f"/workflows/{workflow_id}", json=dict(body)
        )
        return WorkflowDefinition.model_validate(payload)

    async def activate_workflow(self, workflow_id: str) -> WorkflowDefinition:
        """Activate ``workflow_id``."""
        payload = await self._request("POST", f"/workflows/{workflow_id}/activate")
        return WorkflowDefinition.model_validate(payload)


def create_client(
    environment: Environment,
    *,
    timeout: float = 30.0,
    health_timeout: float = 5.0,
    page_size: int = 100,
    transport: httpx.AsyncBaseTransport | None = None,
) -> HttpEnvironmentClient:
    """Return a client for ``environment``."""
    return HttpEnvironmentClient(
        environment.connection.url,
        api_key=environment.connection.api_key,
        timeout=timeout,
        health_timeout=health_timeout,
        page_size=page_size,
        transport=transport,
    )


__all__ = [
    "API_KEY_HEADER",
    "EnvironmentApiError",
    "HttpEnvironmentClient",
    "RemoteEnvironmentClient",
    "WorkflowNotFoundError",
    "create_client",
]
