"""Tests for switchboard.client.api_client.InboxClient."""

import json

import httpx
import pytest

from switchboard.api.auth import get_identity_resolver
from switchboard.client.api_client import InboxClient, TransportFailure, Unauthorized
from switchboard.client.session import AuthSession
from switchboard.database import get_db
from switchboard.main import app

from conftest import ALICE_TOKEN

_SOURCE = {
    "id": "src_1",
    "name": "Team",
    "type": "slack",
    "ownerUserId": "u1",
    "isOnline": True,
    "unreadCount": 0,
    "lastMessage": "",
    "createdAt": "2026-10-19T08:00:00+00:00",
}

_MESSAGE = {
    "id": "msg_1",
    "content": "hi",
    "sourceId": "src_1",
    "senderId": "u1",
    "senderName": "Alice",
    "senderAvatar": "",
    "platform": "slack",
    "timestamp": "2026-10-19T08:01:00+00:00",
    "isOwn": True,
}


def _signed_in() -> AuthSession:
    session = AuthSession()
    session.set("tok-1", "u1")
    return session


def _client(handler, session: AuthSession | None = None) -> InboxClient:
    return InboxClient(
        "http://api.test/",
        session=session if session is not None else _signed_in(),
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_list_sources_sends_bearer_and_parses():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["authorization"]
        seen["path"] = request.url.path
        return httpx.Response(200, json={"sources": [_SOURCE]})

    async with _client(handler) as client:
        sources = await client.list_sources()

    assert seen == {"auth": "Bearer tok-1", "path": "/sources"}
    assert sources[0].id == "src_1"
    assert sources[0].owner_user_id == "u1"


@pytest.mark.asyncio
async def test_post_message_sends_camel_case_body():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"message": _MESSAGE})

    async with _client(handler) as client:
        message = await client.post_message("hi", "src_1", "slack")

    assert bodies == [{"content": "hi", "sourceId": "src_1", "platform": "slack"}]
    assert message.is_own is True
    assert message.source_id == "src_1"


@pytest.mark.asyncio
async def test_create_source_body():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"source": _SOURCE})

    async with _client(handler) as client:
        source = await client.create_source("Team", "slack", "secret")

    assert bodies == [{"name": "Team", "type": "slack", "token": "secret"}]
    assert source.name == "Team"


@pytest.mark.asyncio
async def test_no_session_raises_without_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"sources": []})

    async with _client(handler, session=AuthSession()) as client:
        with pytest.raises(Unauthorized):
            await client.list_sources()

    assert calls == []


@pytest.mark.asyncio
async def test_health_needs_no_session():
    def handler(request):
        assert "authorization" not in request.headers
        return httpx.Response(200, json={"status": "ok", "timestamp": "2026-10-19T08:00:00+00:00"})

    async with _client(handler, session=AuthSession()) as client:
        assert (await client.health())["status"] == "ok"


@pytest.mark.asyncio
async def test_401_raises_unauthorized():
    async with _client(lambda r: httpx.Response(401, json={"detail": "Unauthorized"})) as client:
        with pytest.raises(Unauthorized):
            await client.list_messages("src_1")


@pytest.mark.asyncio
async def test_server_error_carries_detail():
    handler = lambda r: httpx.Response(500, json={"detail": "Failed to fetch messages"})

    async with _client(handler) as client:
        with pytest.raises(TransportFailure) as exc_info:
            await client.list_messages("src_1")

    assert exc_info.value.status_code == 500
    assert str(exc_info.value) == "Failed to fetch messages"


@pytest.mark.asyncio
async def test_network_error_uses_generic_message():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(TransportFailure) as exc_info:
            await client.post_message("hi", "src_1", "slack")

    assert exc_info.value.status_code is None
    assert str(exc_info.value) == "Failed to send message"


@pytest.mark.asyncio
async def test_against_live_app(db_session, resolver):
    """Full round trip through the FastAPI app over an in-process transport."""

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_identity_resolver] = lambda: resolver
    session = AuthSession()
    session.set(ALICE_TOKEN, "user-alice")
    try:
        async with InboxClient(
            "http://switchboard.test", session=session, transport=httpx.ASGITransport(app=app)
        ) as client:
            source = await client.create_source("Team", "discord", "t1")
            await client.post_message("hello", source.id, "discord")
            messages = await client.list_messages(source.id)
            sources = await client.list_sources()
    finally:
        app.dependency_overrides.clear()

    assert [m.content for m in messages] == ["hello"]
    assert messages[0].is_own is True
    assert [s.id for s in sources] == [source.id]
    assert sources[0].last_message == "hello"
