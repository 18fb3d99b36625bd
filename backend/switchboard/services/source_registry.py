from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from cryptography.fernet import Fernet

from switchboard.config import settings
from switchboard.services.kv_store import KVStore, KVStoreError

logger = logging.getLogger(__name__)

_fernet = Fernet(settings.ENCRYPTION_KEY.encode())


# ── Exceptions ────────────────────────────────────────────────────────────────


class SourceNotFound(Exception):
    """Raised when a source does not exist or is not visible to the caller."""

    def __init__(self, source_id: str) -> None:
        self.source_id = source_id
        super().__init__(f"Source {source_id!r} not found")


# ── Data structures ───────────────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class Source:
    id: str
    name: str
    type: str
    owner_user_id: str
    is_online: bool
    unread_count: int
    last_message: str
    created_at: datetime
    secret_token: str | None = None

    def without_secret(self) -> "Source":
        return dataclasses.replace(self, secret_token=None)


def source_key(source_id: str) -> str:
    return f"source:{source_id}"


def user_sources_key(user_id: str) -> str:
    return f"user:{user_id}:sources"


def _to_record(source: Source) -> dict[str, Any]:
    return {
        "id": source.id,
        "name": source.name,
        "type": source.type,
        "ownerUserId": source.owner_user_id,
        "secretToken": (
            _fernet.encrypt(source.secret_token.encode()).decode()
            if source.secret_token is not None
            else None
        ),
        "isOnline": source.is_online,
        "unreadCount": source.unread_count,
        "lastMessage": source.last_message,
        "createdAt": source.created_at.isoformat(),
    }


def _from_record(record: dict[str, Any], *, with_secret: bool) -> Source:
    secret = None
    if with_secret and record.get("secretToken"):
        secret = _fernet.decrypt(record["secretToken"].encode()).decode()
    return Source(
        id=record["id"],
        name=record["name"],
        type=record["type"],
        owner_user_id=record["ownerUserId"],
        is_online=record.get("isOnline", True),
        unread_count=record.get("unreadCount", 0),
        last_message=record.get("lastMessage", ""),
        created_at=datetime.fromisoformat(record["createdAt"]),
        secret_token=secret,
    )


# ── Service ───────────────────────────────────────────────────────────────────


class SourceRegistry:
    """Per-user source lists and source records in the key-value store."""

    def __init__(self, kv: KVStore) -> None:
        self._kv = kv

    def create_source(
        self, owner_user_id: str, name: str, type: str, secret_token: str
    ) -> Source:
        """Persist a new source, then append it to the owner's index.

        The two writes are separate; a crash between them leaves an unindexed
        record, which no listing ever returns.
        """
        source = Source(
            id=f"src_{uuid.uuid4().hex}",
            name=name,
            type=type,
            owner_user_id=owner_user_id,
            is_online=True,
            unread_count=0,
            last_message="",
            created_at=datetime.now(timezone.utc),
            secret_token=secret_token,
        )
        self._kv.set(source_key(source.id), _to_record(source))

        index_key = user_sources_key(owner_user_id)
        existing = self._kv.get(index_key) or []
        self._kv.set(index_key, [*existing, source.id])

        logger.info("source_registry: created %s (%s) for user %s", source.id, type, owner_user_id)
        return source

    def list_sources(self, owner_user_id: str) -> list[Source]:
        """Return the owner's sources in creation order, secrets stripped.

        Ids whose record is missing or unreadable are skipped.
        """
        source_ids = self._kv.get(user_sources_key(owner_user_id)) or []

        sources: list[Source] = []
        for source_id in source_ids:
            try:
                record = self._kv.get(source_key(source_id))
            except KVStoreError as exc:
                logger.warning("source_registry: skipping %s: %s", source_id, exc)
                continue
            if record is None:
                continue
            sources.append(_from_record(record, with_secret=False))
        return sources

    def get_source(self, source_id: str, *, with_secret: bool = False) -> Source | None:
        """Load one source. The secret is decrypted only when asked for."""
        record = self._kv.get(source_key(source_id))
        if record is None:
            return None
        return _from_record(record, with_secret=with_secret)

    def require_owned(self, user_id: str, source_id: str) -> Source:
        source = self.get_source(source_id)
        if source is None or source.owner_user_id != user_id:
            raise SourceNotFound(source_id)
        return source

    def record_last_message(self, source_id: str, content: str) -> None:
        key = source_key(source_id)
        record = self._kv.get(key)
        if record is None:
            return
        self._kv.set(key, {**record, "lastMessage": content})
