from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from switchboard.api.auth import get_current_identity
from switchboard.config import settings
from switchboard.database import get_db
from switchboard.schemas.messages import (
    MessageCreateResponseSchema,
    MessageCreateSchema,
    MessageListResponseSchema,
    MessageSchema,
)
from switchboard.services.auth_gate import Identity
from switchboard.services.kv_store import KVStore
from switchboard.services.message_log import MessageLog
from switchboard.services.source_registry import SourceNotFound, SourceRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


def get_message_log(db: Session = Depends(get_db)) -> MessageLog:
    kv = KVStore(db)
    return MessageLog(kv, SourceRegistry(kv), limit=settings.MESSAGE_LOG_LIMIT)


def _check_access(log: MessageLog, user_id: str, source_id: str) -> None:
    if settings.ENFORCE_SOURCE_OWNERSHIP:
        log.registry.require_owned(user_id, source_id)


@router.get("/{source_id}", response_model=MessageListResponseSchema)
def list_messages(
    source_id: str,
    identity: Identity = Depends(get_current_identity),
    log: MessageLog = Depends(get_message_log),
):
    """Return the source's retained messages, oldest first, ``isOwn`` relative to the caller."""
    try:
        _check_access(log, identity.user_id, source_id)
        messages = log.list_messages(identity.user_id, source_id)
    except SourceNotFound:
        raise HTTPException(status_code=404, detail="Source not found")
    except Exception:
        logger.exception("failed to list messages for source %s", source_id)
        raise HTTPException(status_code=500, detail="Failed to fetch messages")

    return MessageListResponseSchema(
        messages=[MessageSchema.model_validate(m) for m in messages],
    )


@router.post("", response_model=MessageCreateResponseSchema)
def post_message(
    body: MessageCreateSchema,
    identity: Identity = Depends(get_current_identity),
    log: MessageLog = Depends(get_message_log),
):
    """Append a message authored by the caller to one of their sources."""
    try:
        _check_access(log, identity.user_id, body.source_id)
        message = log.append_message(
            author_id=identity.user_id,
            author_name=identity.display_name,
            author_avatar=identity.avatar,
            source_id=body.source_id,
            platform=body.platform,
            content=body.content,
        )
    except SourceNotFound:
        raise HTTPException(status_code=404, detail="Source not found")
    except Exception:
        logger.exception("failed to post message to source %s", body.source_id)
        raise HTTPException(status_code=500, detail="Failed to post message")

    return MessageCreateResponseSchema(message=MessageSchema.model_validate(message))
