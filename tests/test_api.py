"""Test suite for the API endpoints."""

from contextlib import asynccontextmanager

import pytest
from httpx import ASGITransport, AsyncClient

from customer_care_chat.api.app import create_app
from customer_care_chat.domain.models import ComplaintFilter
from customer_care_chat.repositories.memory import InMemoryComplaintRepository


@asynccontextmanager
async def api_client(app):
    """Client bound to the app; stops queue workers afterwards."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    await app.state.request_queue.cleanup()


@pytest.fixture
def app(settings, complaints):
    return create_app(settings=settings, complaints=complaints)


async def open_session(client, user_id, **extra):
    response = await client.post("/sessions", json={"user_id": user_id, **extra})
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_open_session(app, user_id):
    async with api_client(app) as client:
        data = await open_session(client, user_id)

    assert data["state"] == "idle"
    assert data["is_complaint_mode"] is False
    assert len(data["messages"]) == 1
    assert data["messages"][0]["origin"] == "bot"


@pytest.mark.asyncio
async def test_open_session_requires_user(app):
    async with api_client(app) as client:
        response = await client.post("/sessions", json={})
        assert response.status_code == 422


@pytest.mark.asyncio
async def test_complaint_conversation(app, complaints, user_id):
    """Full complaint flow over HTTP."""
    async with api_client(app) as client:
        session_id = (await open_session(client, user_id))["id"]
        url = f"/sessions/{session_id}/messages"

        response = await client.post(url, json={"content": "I have an issue with my leave"})
        assert response.status_code == 200
        assert response.json()["intent"] == "complaint_keyword_detected"

        response = await client.post(url, json={"content": "yes"})
        assert response.json()["is_complaint_mode"] is True

        response = await client.post(url, json={"content": "My annual leave request got lost"})
        assert response.json()["intent"] == "general_fallback"

        response = await client.post(url, json={"content": "submit"})
        data = response.json()
        assert data["intent"] == "submit_complaint"
        assert data["state"] == "idle"
        assert data["reply"]["origin"] == "bot"
        assert "CC-" in data["reply"]["text"]

        response = await client.get(url)
        assert response.status_code == 200
        assert len(response.json()) == 9

        response = await client.get(f"{url}?limit=2&offset=1")
        assert [m["origin"] for m in response.json()] == ["user", "bot"]

    assert len(complaints.reminders) == 0
    stored = (await complaints.list_complaints(ComplaintFilter(submitted_by=user_id))).data
    assert [c.title for c in stored] == ["My annual leave request got lost"]
    assert stored[0].category.value == "hr"


@pytest.mark.asyncio
async def test_waiting_for_choice_over_http(settings, make_complaint, user_id):
    active = make_complaint(title="Broken chair", hours_ago=2)
    app = create_app(settings=settings, complaints=InMemoryComplaintRepository([active]))

    async with api_client(app) as client:
        data = await open_session(client, user_id)
        assert data["state"] == "waiting_for_choice"
        assert "Broken chair" in data["messages"][0]["text"]

        response = await client.post(f"/sessions/{data['id']}/messages", json={"content": "yes please continue"})
        assert response.json()["intent"] == "continue_existing_complaint"
        assert response.json()["state"] == "complaint_mode"


@pytest.mark.asyncio
async def test_message_validation(app, user_id):
    async with api_client(app) as client:
        session_id = (await open_session(client, user_id))["id"]
        url = f"/sessions/{session_id}/messages"

        response = await client.post(url, json={})
        assert response.status_code == 422

        response = await client.post(url, json={"content": "   "})
        assert response.status_code == 422

        response = await client.get("/sessions/not-a-uuid")
        assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_session(app):
    missing = "00000000-0000-0000-0000-000000000000"
    async with api_client(app) as client:
        assert (await client.get(f"/sessions/{missing}")).status_code == 404
        assert (await client.get(f"/sessions/{missing}/messages")).status_code == 404
        response = await client.post(f"/sessions/{missing}/messages", json={"content": "hi"})
        assert response.status_code == 404
        assert (await client.post(f"/sessions/{missing}/reset")).status_code == 404
        assert (await client.delete(f"/sessions/{missing}")).status_code == 404


@pytest.mark.asyncio
async def test_reset_and_close(app, user_id):
    async with api_client(app) as client:
        session_id = (await open_session(client, user_id))["id"]
        await client.post(f"/sessions/{session_id}/messages", json={"content": "okay"})

        response = await client.post(f"/sessions/{session_id}/reset")
        assert response.status_code == 200
        assert response.json()["is_complaint_mode"] is False
        assert len(response.json()["messages"]) == 1

        response = await client.delete(f"/sessions/{session_id}")
        assert response.status_code == 204
        assert (await client.get(f"/sessions/{session_id}")).status_code == 404


@pytest.mark.asyncio
async def test_list_sessions(app, user_id):
    async with api_client(app) as client:
        for _ in range(3):
            await open_session(client, user_id)

        response = await client.get("/sessions?limit=2")
        assert response.status_code == 200
        assert len(response.json()) == 2


@pytest.mark.asyncio
async def test_classify_endpoint(app):
    async with api_client(app) as client:
        response = await client.post(
            "/classify",
            json={"message": "yes please continue", "state": "waiting_for_choice"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["intent"] == "continue_existing_complaint"
        assert data["next_state"] == "complaint_mode"
        assert data["matched_rule"] == "continue_choice"

        response = await client.post("/classify", json={"message": "test test test test"})
        assert response.json()["intent"] == "rejected_abusive"

        response = await client.post("/classify", json={"message": " "})
        assert response.status_code == 422


@pytest.mark.asyncio
async def test_metrics(app, user_id):
    async with api_client(app) as client:
        session_id = (await open_session(client, user_id))["id"]
        await client.post(f"/sessions/{session_id}/messages", json={"content": "thanks"})

        response = await client.get("/metrics")
        assert response.status_code == 200
        assert 'intents_total{intent="acknowledged_thanks"}' in response.text
