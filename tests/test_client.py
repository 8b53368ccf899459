"""Tests for the HTTP environment client."""

from __future__ import annotations
import json
import httpx
import pytest
import respx
from flowpromote.client import (
    API_KEY_HEADER,
    EnvironmentApiError,
    HttpEnvironmentClient,
    RemoteEnvironmentClient,
    WorkflowNotFoundError,
    create_client,
)
from tests.fakes import make_catalog


BASE_URL = "http://dev.test"
API_URL = f"{BASE_URL}/api/v1"


def _client() -> HttpEnvironmentClient:
    return create_client(make_catalog().get_environment("dev"), page_size=2)


def test_client_satisfies_protocol() -> None:
    assert isinstance(_client(), RemoteEnvironmentClient)


@pytest.mark.asyncio
async def test_get_all_workflows_follows_cursor() -> None:
    with respx.mock(assert_all_called=True) as router:
        route = router.get(f"{API_URL}/workflows").mock(
            side_effect=[
                httpx.Response(
                    200,
                    json={
                        "data": [
                            {"id": "w1", "name": "Sync", "active": True},
                            {"id": "w2", "name": "Alert"},
                        ],
                        "nextCursor": "abc",
                    },
                ),
                httpx.Response(
                    200,
                    json={"data": [{"id": "w3", "name": "Report"}], "nextCursor": None},
                ),
            ]
        )
        async with _client() as client:
            workflows = await client.get_all_workflows()

    assert [workflow.id for workflow in workflows] == ["w1", "w2", "w3"]
    assert workflows[0].active
    assert route.call_count == 2
    first, second = (call.request for call in route.calls)
    assert first.url.params["limit"] == "2"
    assert "cursor" not in first.url.params
    assert second.url.params["cursor"] == "abc"
    assert first.headers[API_KEY_HEADER] == "dev-key"


@pytest.mark.asyncio
async def test_get_workflow_maps_404() -> None:
    with respx.mock(assert_all_called=True) as router:
        router.get(f"{API_URL}/workflows/missing").mock(
            return_value=httpx.Response(404, json={"message": "Not found"})
        )
        async with _client() as client:
            with pytest.raises(WorkflowNotFoundError) as excinfo:
                await client.get_workflow("missing")

    assert excinfo.value.status_code == 404
    assert str(excinfo.value) == "Not found"


@pytest.mark.asyncio
async def test_server_error_carries_status() -> None:
    with respx.mock(assert_all_called=True) as router:
        router.post(f"{API_URL}/workflows").mock(
            return_value=httpx.Response(500, text="boom")
        )
        async with _client() as client:
            with pytest.raises(EnvironmentApiError) as excinfo:
                await client.create_workflow({"name": "Sync"})

    assert not isinstance(excinfo.value, WorkflowNotFoundError)
    assert excinfo.value.status_code == 500
    assert excinfo.value.payload == "boom"


@pytest.mark.asyncio
async def test_transport_errors_are_wrapped() -> None:
    with respx.mock(assert_all_called=True) as router:
        router.get(f"{API_URL}/workflows/w1").mock(
            side_effect=httpx.ConnectError("refused")
        )
        async with _client() as client:
            with pytest.raises(EnvironmentApiError, match="HTTP error"):
                await client.get_workflow("w1")


@pytest.mark.asyncio
async def test_update_and_activate_requests() -> None:
    body = {"id": "w1", "name": "Sync", "active": False, "nodes": []}
    with respx.mock(assert_all_called=True) as router:
        update = router.put(f"{API_URL}/workflows/w1").mock(
            return_value=httpx.Response(200, json=body)
        )
        router.post(f"{API_URL}/workflows/w1/activate").mock(
            return_value=httpx.Response(200, json={**body, "active": True})
        )
        async with _client() as client:
            updated = await client.update_workflow("w1", {"name": "Sync"})
            activated = await client.activate_workflow("w1")

    assert updated.name == "Sync"
    assert activated.active
    assert json.loads(update.calls.last.request.content) == {"name": "Sync"}


@pytest.mark.asyncio
async def test_health_check_uses_healthz() -> None:
    with respx.mock(assert_all_called=True) as router:
        router.get(f"{BASE_URL}/healthz").mock(return_value=httpx.Response(200))
        async with _client() as client:
            assert await client.health_check()


@pytest.mark.asyncio
async def test_health_check_falls_back_to_listing() -> None:
    with respx.mock(assert_all_called=True) as router:
        router.get(f"{BASE_URL}/healthz").mock(return_value=httpx.Response(404))
        listing = router.get(f"{API_URL}/workflows").mock(
            return_value=httpx.Response(200, json={"data": []})
        )
        async with _client() as client:
            assert await client.health_check()

    assert listing.calls.last.request.url.params["limit"] == "1"


@pytest.mark.asyncio
async def test_health_check_reports_unreachable() -> None:
    with respx.mock(assert_all_called=True) as router:
        router.get(f"{BASE_URL}/healthz").mock(
            side_effect=httpx.ConnectError("refused")
        )
        router.get(f"{API_URL}/workflows").mock(
            side_effect=httpx.ConnectError("refused")
        )
        async with _client() as client:
            assert not await client.health_check()
