"""Integration tests for API endpoints."""

import pytest
from httpx import AsyncClient, ASGITransport

from src.api.dependencies import (
    get_call_session_service,
    get_export_service,
    get_flow_graph,
)
from src.services.call_session_service import CallSessionService


@pytest.fixture
def app():
    """App serving the shipped default flow with a fresh call registry."""
    from src.main import app

    service = CallSessionService(get_flow_graph(), export_service=get_export_service())
    app.dependency_overrides[get_call_session_service] = lambda: service

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _start_call(client, **body):
    response = await client.post("/calls", json=body)
    assert response.status_code == 201
    return response.json()


async def _navigate(client, call_id, node_id, operation="navigate"):
    response = await client.post(f"/calls/{call_id}/{operation}", json={"node_id": node_id})
    assert response.status_code == 200
    return response.json()


def _path(state):
    return [entry["node_id"] for entry in state["conversation_path"]]


# ============ SYSTEM ============


@pytest.mark.asyncio
async def test_root_endpoint(client):
    """Root endpoint returns basic info."""
    response = await client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Call Navigator"
    assert data["status"] == "running"
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_health_endpoint(client):
    """Health endpoint reports the flow graph."""
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["components"]["flow_graph"]["node_count"] > 0
    assert data["components"]["flow_graph"]["integrity_errors"] == 0


@pytest.mark.asyncio
async def test_liveness_endpoint(client):
    response = await client.get("/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "alive"


@pytest.mark.asyncio
async def test_readiness_endpoint(client):
    response = await client.get("/health/ready")
    assert response.status_code == 200
    assert response.json()["status"] == "ready"


@pytest.mark.asyncio
async def test_readiness_unhealthy(app, client):
    from src.api.routes.health import check_flow_health

    app.dependency_overrides[check_flow_health] = lambda: {
        "status": "unhealthy",
        "error": "Flow graph not found",
    }

    response = await client.get("/health/ready")

    assert response.status_code == 503


# ============ FLOW ============


@pytest.mark.asyncio
async def test_get_flow(client):
    response = await client.get("/flow")

    assert response.status_code == 200
    data = response.json()
    assert data["node_count"] == len(data["nodes"])
    assert any(g["id"] == "objections" for g in data["topic_groups"])


@pytest.mark.asyncio
async def test_get_node(client):
    response = await client.get("/flow/nodes/pitch_onbase")

    assert response.status_code == 200
    data = response.json()
    assert data["type"] == "pitch"
    assert "OnBase Strengths" in data["competitor_info"]
    assert all(r["available"] for r in data["responses"])


@pytest.mark.asyncio
async def test_get_unknown_node(client):
    response = await client.get("/flow/nodes/ghost")

    assert response.status_code == 404
    error = response.json()["error"]
    assert error["type"] == "NodeNotFoundError"
    assert "flow" not in error


@pytest.mark.asyncio
async def test_flow_issues(client):
    response = await client.get("/flow/issues")

    assert response.status_code == 200
    assert response.json()["error_count"] == 0


@pytest.mark.asyncio
async def test_flow_search(client):
    response = await client.get("/flow/search", params={"q": "GALLERY"})

    assert response.status_code == 200
    ids = [n["id"] for n in response.json()["results"]]
    assert "disc_gallery" in ids
    assert "pitch_gallery" in ids

    response = await client.get("/flow/search", params={"q": ""})
    assert response.json()["results"] == []


# ============ CALLS ============


@pytest.mark.asyncio
async def test_start_call(client):
    state = await _start_call(client)

    assert state["current_node"]["id"] == "opening_general"
    assert _path(state) == ["opening_general"]
    assert state["topic"]["id"] == "opening"
    assert state["outcome"] is None


@pytest.mark.asyncio
async def test_start_call_on_chosen_opening(client):
    state = await _start_call(client, opening_id="opening_referral")
    assert state["current_node"]["id"] == "opening_referral"


@pytest.mark.asyncio
async def test_list_and_get_calls(client):
    first = await _start_call(client)
    await _start_call(client)

    response = await client.get("/calls")
    assert response.json()["total"] == 2

    response = await client.get(f"/calls/{first['call_id']}")
    assert response.status_code == 200
    assert response.json()["call_id"] == first["call_id"]


@pytest.mark.asyncio
async def test_unknown_call_is_404(client):
    response = await client.get("/calls/missing")

    assert response.status_code == 404
    error = response.json()["error"]
    assert error["type"] == "CallNotFoundError"
    assert error["call_id"] == "missing"


@pytest.mark.asyncio
async def test_broken_flow_is_500_naming_flow(app, client):
    from src.core.config import settings
    from src.core.exceptions import FlowGraphError

    def broken_flow():
        raise FlowGraphError("Flow graph has no opening node")

    app.dependency_overrides[get_flow_graph] = broken_flow

    response = await client.get("/flow")

    assert response.status_code == 500
    error = response.json()["error"]
    assert error["type"] == "FlowGraphError"
    assert error["message"] == "Flow graph has no opening node"
    assert error["flow"] == settings.flow_name


@pytest.mark.asyncio
async def test_navigation_derives_metadata(client):
    call_id = (await _start_call(client))["call_id"]

    for node_id in ("disc_mostly_manual", "disc_ehr_followup", "disc_ehr_epic", "disc_gallery"):
        result = await _navigate(client, call_id, node_id)
        assert result["applied"]

    metadata = result["state"]["metadata"]
    assert metadata["ehr"] == "Epic"
    assert metadata["dms"] == "Epic Gallery"
    assert metadata["competitors"] == ["Epic Gallery"]
    assert metadata["environment_triggers"] == {"document_volume": "High"}


@pytest.mark.asyncio
async def test_unknown_target_not_applied(client):
    call_id = (await _start_call(client))["call_id"]

    result = await _navigate(client, call_id, "ghost")

    assert result["applied"] is False
    assert result["reason"] == "unknown_node"
    assert _path(result["state"]) == ["opening_general"]


@pytest.mark.asyncio
async def test_objection_detour_and_return(client):
    call_id = (await _start_call(client))["call_id"]
    await _navigate(client, call_id, "disc_mostly_manual")
    await _navigate(client, call_id, "obj_timing")
    result = await _navigate(client, call_id, "obj_not_interested")
    assert result["state"]["previous_non_objection_node"] == "disc_mostly_manual"

    response = await client.post(f"/calls/{call_id}/return")

    data = response.json()
    assert data["applied"]
    assert data["state"]["current_node"]["id"] == "disc_mostly_manual"
    assert data["state"]["previous_non_objection_node"] is None


@pytest.mark.asyncio
async def test_back_rewind_remove(client):
    call_id = (await _start_call(client))["call_id"]
    for node_id in ("disc_mostly_manual", "disc_ehr_followup", "disc_ehr_epic", "disc_onbase"):
        await _navigate(client, call_id, node_id)

    data = (await client.post(f"/calls/{call_id}/back")).json()
    assert _path(data["state"])[-1] == "disc_ehr_epic"

    data = await _navigate(client, call_id, "disc_mostly_manual", operation="rewind")
    assert _path(data["state"]) == ["opening_general", "disc_mostly_manual"]

    data = await _navigate(client, call_id, "disc_mostly_manual", operation="remove")
    assert _path(data["state"]) == ["opening_general"]

    data = (await client.post(f"/calls/{call_id}/back")).json()
    assert data["applied"] is False
    assert data["reason"] == "at_start"


@pytest.mark.asyncio
async def test_opening_resets_path(client):
    call_id = (await _start_call(client))["call_id"]
    await _navigate(client, call_id, "disc_mostly_manual")

    result = await _navigate(client, call_id, "opening_referral")

    assert _path(result["state"]) == ["opening_referral"]


@pytest.mark.asyncio
async def test_edit_metadata_notes_outcome(client):
    call_id = (await _start_call(client))["call_id"]

    response = await client.patch(
        f"/calls/{call_id}/metadata",
        json={"prospect_name": "Dana", "organization": "General Hospital", "ehr": None},
    )
    assert response.status_code == 200
    assert response.json()["metadata"]["prospect_name"] == "Dana"

    await client.post(f"/calls/{call_id}/pain-points", json={"value": "Indexing backlog"})
    await client.post(f"/calls/{call_id}/objections", json={"value": "Budget"})
    await client.put(f"/calls/{call_id}/notes", json={"notes": "Call back Friday"})
    response = await client.put(f"/calls/{call_id}/outcome", json={"outcome": "follow_up"})

    state = response.json()
    assert state["metadata"]["pain_points"] == ["Indexing backlog"]
    assert state["metadata"]["objections"] == ["Budget"]
    assert state["notes"] == "Call back Friday"
    assert state["outcome"] == "follow_up"


@pytest.mark.asyncio
async def test_invalid_outcome_rejected(client):
    call_id = (await _start_call(client))["call_id"]
    response = await client.put(f"/calls/{call_id}/outcome", json={"outcome": "maybe"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_call_search(client):
    call_id = (await _start_call(client))["call_id"]

    response = await client.get(f"/calls/{call_id}/search", params={"q": "brainware"})
    assert response.status_code == 200
    assert response.json()["results"]

    state = (await client.get(f"/calls/{call_id}")).json()
    assert state["search_query"] == "brainware"
    assert "disc_onbase_brainware" in state["search_results"]

    await client.get(f"/calls/{call_id}/search", params={"q": ""})
    state = (await client.get(f"/calls/{call_id}")).json()
    assert state["search_results"] == []


@pytest.mark.asyncio
async def test_export_formats(client):
    call_id = (await _start_call(client))["call_id"]
    await client.patch(f"/calls/{call_id}/metadata", json={"prospect_name": "Dana"})
    await _navigate(client, call_id, "disc_mostly_manual")

    response = await client.get(f"/calls/{call_id}/export")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text.startswith("Contact: Dana")
    assert "Document Volume: High" in response.text

    response = await client.get(f"/calls/{call_id}/export", params={"format": "scripts"})
    assert response.text.startswith("1. Opening Script")

    response = await client.get(f"/calls/{call_id}/export", params={"format": "json"})
    assert response.headers["content-type"].startswith("application/json")
    assert response.json()["call_id"] == call_id

    response = await client.get(f"/calls/{call_id}/export", params={"format": "pdf"})
    assert response.status_code == 400
    assert response.json()["error"]["type"] == "ValidationError"


@pytest.mark.asyncio
async def test_end_call(client):
    call_id = (await _start_call(client))["call_id"]
    for node_id in ("close_ask_main", "success_meeting_set"):
        await _navigate(client, call_id, node_id)

    response = await client.delete(f"/calls/{call_id}")

    assert response.status_code == 200
    data = response.json()
    assert data["outcome"] == "meeting_set"
    assert "Outcome: Meeting Scheduled" in data["summary"]
    assert (await client.get(f"/calls/{call_id}")).status_code == 404


@pytest.mark.asyncio
async def test_reset_call(client):
    call_id = (await _start_call(client))["call_id"]
    await _navigate(client, call_id, "disc_mostly_manual")

    response = await client.post(f"/calls/{call_id}/reset")

    assert _path(response.json()) == ["opening_general"]
