from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from switchboard.services.kv_store import KVStore, KVStoreError
from switchboard.services.source_registry import SourceNotFound, SourceRegistry

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100


@dataclasses.dataclass(frozen=True)
class Message:
    id: str
    content: str
    source_id: str
    sender_id: str
    sender_name: str
    sender_avatar: str
    platform: str
    timestamp: datetime
    is_own: bool | None = None   # viewer-relative, never persisted


def message_key(message_id: str) -> str:
    return f"message:{message_id}"


def source_messages_key(source_id: str) -> str:
    return f"source:{source_id}:messages"


def _to_record(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "content": message.content,
        "sourceId": message.source_id,
        "senderId": message.sender_id,
        "senderName": message.sender_name,
        "senderAvatar": message.sender_avatar,
        "platform": message.platform,
        "timestamp": message.timestamp.isoformat(),
    }


def _from_record(record: dict[str, Any], *, viewer_id: str) -> Message:
    return Message(
        id=record["id"],
        content=record["content"],
        source_id=record["sourceId"],
        sender_id=record["senderId"],
        sender_name=record.get("senderName", ""),
        sender_avatar=record.get("senderAvatar", ""),
        platform=record["platform"],
        timestamp=datetime.fromisoformat(record["timestamp"]),
        is_own=record["senderId"] == viewer_id,
    )


class MessageLog:
    """Bounded per-source message index plus immutable message records.

    The index keeps only the most recent ``limit`` ids; evicted ids leave their
    records in place.
    """

    def __init__(self, kv: KVStore, registry: SourceRegistry, limit: int = DEFAULT_LIMIT) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self._kv = kv
        self._registry = registry
        self._limit = limit

    @property
    def registry(self) -> SourceRegistry:
        return self._registry

    def append_message(
        self,
        *,
        author_id: str,
        author_name: str,
        author_avatar: str,
        source_id: str,
        platform: str,
        content: str,
    ) -> Message:
        if self._registry.get_source(source_id) is None:
            raise SourceNotFound(source_id)

        message = Message(
            id=f"msg_{uuid.uuid4().hex}",
            content=content,
            source_id=source_id,
            sender_id=author_id,
            sender_name=author_name,
            sender_avatar=author_avatar,
            platform=platform,
            timestamp=datetime.now(timezone.utc),
        )
        self._kv.set(message_key(message.id), _to_record(message))

        # Read-modify-write; concurrent appenders to one source may lose an id
        index_key = source_messages_key(source_id)
        existing = self._kv.get(index_key) or []
        self._kv.set(index_key, [*existing, message.id][-self._limit:])

        self._registry.record_last_message(source_id, content)

        logger.debug("message_log: appended %s to %s", message.id, source_id)
        return dataclasses.replace(message, is_own=True)

    def list_messages(self, viewer_id: str, source_id: str) -> list[Message]:
        """Return the source's messages in index order, ``is_own`` set for the viewer."""
        message_ids = self._kv.get(source_messages_key(source_id)) or []

        messages: list[Message] = []
        for message_id in message_ids:
            try:
                record = self._kv.get(message_key(message_id))
            except KVStoreError as exc:
                logger.warning("message_log: skipping %s: %s", message_id, exc)
                continue
            if record is None:
                continue
            messages.append(_from_record(record, viewer_id=viewer_id))
        return messages
