from __future__ import annotations

import logging
from typing import Any

import httpx

from switchboard.client.session import AuthSession, current_session
from switchboard.schemas.messages import MessageSchema
from switchboard.schemas.sources import SourceSchema

logger = logging.getLogger(__name__)


# ── Exceptions ────────────────────────────────────────────────────────────────


class ClientError(Exception):
    """Base class for failures surfaced to the sync engine's error slot."""


class Unauthorized(ClientError):
    """No session, or the server rejected the bearer token."""


class TransportFailure(ClientError):
    """Network error or a non-2xx answer from the server."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(message)


# ── Client ────────────────────────────────────────────────────────────────────


class InboxClient:
    """Async HTTP client for the Switchboard API.

    The bearer token is read from the session when each request is built.
    Use as an async context manager, or call ``aclose()`` when done.
    """

    def __init__(
        self,
        base_url: str,
        session: AuthSession | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._session = session if session is not None else current_session
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "InboxClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Endpoints ────────────────────────────────────────────────────────

    async def list_sources(self) -> list[SourceSchema]:
        data = await self._request("GET", "/sources", failure="Failed to fetch sources")
        return [SourceSchema.model_validate(s) for s in data.get("sources") or []]

    async def create_source(self, name: str, type: str, token: str) -> SourceSchema:
        data = await self._request(
            "POST",
            "/sources",
            json={"name": name, "type": type, "token": token},
            failure="Failed to add source",
        )
        return SourceSchema.model_validate(data["source"])

    async def list_messages(self, source_id: str) -> list[MessageSchema]:
        data = await self._request(
            "GET", f"/messages/{source_id}", failure="Failed to fetch messages"
        )
        return [MessageSchema.model_validate(m) for m in data.get("messages") or []]

    async def post_message(self, content: str, source_id: str, platform: str) -> MessageSchema:
        data = await self._request(
            "POST",
            "/messages",
            json={"content": content, "sourceId": source_id, "platform": platform},
            failure="Failed to send message",
        )
        return MessageSchema.model_validate(data["message"])

    async def health(self) -> dict:
        return await self._request("GET", "/health", failure="Health check failed", auth=False)

    # ── Transport ────────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        failure: str,
        json: dict | None = None,
        auth: bool = True,
    ) -> dict:
        headers: dict[str, str] = {}
        if auth:
            token = self._session.token
            if token is None:
                raise Unauthorized("Not signed in")
            headers["Authorization"] = f"Bearer {token}"

        try:
            resp = await self._client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportFailure(failure) from exc

        if resp.status_code == 401:
            raise Unauthorized(_detail(resp) or "Unauthorized")
        if resp.is_error:
            logger.warning("%s %s returned %d", method, path, resp.status_code)
            raise TransportFailure(_detail(resp) or failure, status_code=resp.status_code)

        try:
            return resp.json()
        except ValueError as exc:
            raise TransportFailure(failure, status_code=resp.status_code) from exc


def _detail(resp: httpx.Response) -> str | None:
    try:
        body = resp.json()
    except ValueError:
        return None
    detail = body.get("detail") if isinstance(body, dict) else None
    return detail if isinstance(detail, str) else None
