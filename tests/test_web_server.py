"""Tests for the chat HTTP API."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiohttp.test_utils import TestClient, TestServer

from src.chat.errors import PersistenceError, UpstreamError
from src.chat.orchestrator import ConversationOrchestrator
from src.web.server import create_app

HEADERS = {"X-User-Id": "u1"}


# -- Helpers -----------------------------------------------------------------


class _FakeSettings:
    def __init__(self, allowed_user_ids: str = "") -> None:
        self.user_id_header = "X-User-Id"
        self.allowed_user_ids = allowed_user_ids

    def get_allowed_user_ids(self) -> set[str]:
        return {u for u in self.allowed_user_ids.split(",") if u}


async def _make_client(orchestrator) -> TestClient:
    client = TestClient(TestServer(create_app(orchestrator)))
    await client.start_server()
    return client


@pytest.fixture
async def client(orchestrator: ConversationOrchestrator):
    with patch("src.web.auth.settings", _FakeSettings()):
        c = await _make_client(orchestrator)
        yield c
        await c.close()


# -- Health ------------------------------------------------------------------


async def test_health_check(client: TestClient) -> None:
    resp = await client.get("/health")
    assert resp.status == 200
    assert (await resp.json())["status"] == "ok"


# -- Auth --------------------------------------------------------------------


async def test_missing_identity_is_unauthorized(client: TestClient, model: MagicMock) -> None:
    resp = await client.post("/api/conversation", json={"message": "hi"})

    assert resp.status == 401
    assert (await resp.json())["error"] == "unauthorized"
    model.send.assert_not_called()


async def test_list_without_identity_is_unauthorized(client: TestClient) -> None:
    resp = await client.get("/api/conversation")
    assert resp.status == 401


async def test_allowlist_rejects_other_users(orchestrator: ConversationOrchestrator) -> None:
    with patch("src.web.auth.settings", _FakeSettings(allowed_user_ids="admin")):
        client = await _make_client(orchestrator)
        try:
            resp = await client.get("/api/conversation", headers=HEADERS)
            assert resp.status == 401
            resp = await client.get("/api/conversation", headers={"X-User-Id": "admin"})
            assert resp.status == 200
        finally:
            await client.close()


# -- Turns -------------------------------------------------------------------


async def test_post_creates_conversation(client: TestClient) -> None:
    resp = await client.post("/api/conversation", json={"message": "hello"}, headers=HEADERS)

    assert resp.status == 200
    data = await resp.json()
    assert data["id"]
    assert data["userId"] == "u1"
    assert [m["role"] for m in data["messages"]] == ["user", "assistant"]
    assert data["messages"][0]["content"] == "hello"
    assert data["messages"][1]["content"] == "reply"


async def test_post_continues_conversation(client: TestClient, model: MagicMock) -> None:
    first = await (
        await client.post("/api/conversation", json={"message": "hello"}, headers=HEADERS)
    ).json()

    resp = await client.post(
        "/api/conversation",
        json={"message": "more", "conversationId": first["id"]},
        headers=HEADERS,
    )

    assert resp.status == 200
    data = await resp.json()
    assert data["id"] == first["id"]
    assert len(data["messages"]) == 4
    assert model.send.await_args.args[1] == "more"


async def test_post_unknown_conversation_is_404(client: TestClient) -> None:
    resp = await client.post(
        "/api/conversation", json={"message": "hi", "conversationId": "abc"}, headers=HEADERS
    )

    assert resp.status == 404
    assert (await resp.json())["error"] == "not_found"


async def test_post_invalid_json_is_400(client: TestClient) -> None:
    resp = await client.post(
        "/api/conversation",
        data=b"not json",
        headers={**HEADERS, "Content-Type": "application/json"},
    )
    assert resp.status == 400


@pytest.mark.parametrize(
    "payload",
    [{}, {"message": ""}, {"message": "   "}, {"message": 5}, {"message": "hi", "conversationId": 3}],
)
async def test_post_bad_payload_is_400(client: TestClient, payload: dict) -> None:
    resp = await client.post("/api/conversation", json=payload, headers=HEADERS)
    assert resp.status == 400
    assert (await resp.json())["error"] == "bad_request"


async def test_post_unencodable_message_is_400(client: TestClient, model: MagicMock) -> None:
    resp = await client.post("/api/conversation", json={"message": "hi \ud800"}, headers=HEADERS)

    assert resp.status == 400
    assert (await resp.json())["error"] == "bad_request"
    model.send.assert_not_called()


async def test_upstream_error_is_502(client: TestClient, model: MagicMock) -> None:
    model.send.side_effect = UpstreamError("quota exceeded")

    resp = await client.post("/api/conversation", json={"message": "hi"}, headers=HEADERS)

    assert resp.status == 502
    data = await resp.json()
    assert data == {"error": "upstream_error", "detail": "quota exceeded"}


async def test_persistence_error_is_distinct(orchestrator: ConversationOrchestrator) -> None:
    orchestrator.store = MagicMock()
    orchestrator.store.save = AsyncMock(side_effect=PersistenceError("disk full"))
    with patch("src.web.auth.settings", _FakeSettings()):
        client = await _make_client(orchestrator)
        try:
            resp = await client.post("/api/conversation", json={"message": "hi"}, headers=HEADERS)
            assert resp.status == 500
            assert (await resp.json())["error"] == "persistence_error"
        finally:
            await client.close()


# -- Reads -------------------------------------------------------------------


async def test_list_and_get_conversations(client: TestClient) -> None:
    created = await (
        await client.post("/api/conversation", json={"message": "hello"}, headers=HEADERS)
    ).json()

    listed = await (await client.get("/api/conversation", headers=HEADERS)).json()
    assert [c["id"] for c in listed] == [created["id"]]

    resp = await client.get(f"/api/conversation/{created['id']}", headers=HEADERS)
    assert resp.status == 200
    assert (await resp.json())["messages"] == created["messages"]


async def test_get_other_users_conversation_is_404(client: TestClient) -> None:
    created = await (
        await client.post("/api/conversation", json={"message": "hello"}, headers=HEADERS)
    ).json()

    resp = await client.get(f"/api/conversation/{created['id']}", headers={"X-User-Id": "u2"})
    assert resp.status == 404
    listed = await (await client.get("/api/conversation", headers={"X-User-Id": "u2"})).json()
    assert listed == []
