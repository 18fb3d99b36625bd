from __future__ import annotations

import dataclasses
import logging
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)


# ── Exceptions ────────────────────────────────────────────────────────────────


class Unauthorized(Exception):
    """Raised when a bearer token is missing or does not resolve to a user."""


class IdentityServiceError(Exception):
    """Raised when the identity service cannot be reached."""


# ── Data structures ───────────────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class Identity:
    user_id: str
    display_name: str
    avatar: str


def parse_bearer(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) < 2:
        return None
    return parts[1]


# ── Resolvers ─────────────────────────────────────────────────────────────────


class IdentityResolver(Protocol):
    def resolve(self, token: str) -> Identity: ...


class HTTPIdentityResolver:
    """Resolves tokens against the external identity service's ``/user`` endpoint.

    The service answers ``{"id": ..., "user_metadata": {"name": ..., "avatar": ...}}``
    for a valid token and a non-2xx status otherwise.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"apikey": api_key} if api_key else {}
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def resolve(self, token: str) -> Identity:
        try:
            resp = self._client.get("/user", headers={"Authorization": f"Bearer {token}"})
        except httpx.HTTPError as exc:
            raise IdentityServiceError(str(exc)) from exc

        if resp.status_code != 200:
            logger.info("auth_gate: identity service rejected token (status=%d)", resp.status_code)
            raise Unauthorized("Unauthorized")

        try:
            data = resp.json()
        except ValueError:
            raise Unauthorized("Unauthorized")
        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            raise Unauthorized("Unauthorized")

        metadata = data.get("user_metadata") or {}
        return Identity(
            user_id=str(user_id),
            display_name=metadata.get("name") or "Unknown User",
            avatar=metadata.get("avatar") or "",
        )

    def close(self) -> None:
        self._client.close()


def authenticate(authorization: str | None, resolver: IdentityResolver) -> Identity:
    token = parse_bearer(authorization)
    if not token:
        raise Unauthorized("Authorization required")
    return resolver.resolve(token)
