from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from switchboard.api.auth import get_current_identity
from switchboard.database import get_db
from switchboard.schemas.sources import (
    SourceCreateResponseSchema,
    SourceCreateSchema,
    SourceListResponseSchema,
    SourceSchema,
)
from switchboard.services.auth_gate import Identity
from switchboard.services.kv_store import KVStore
from switchboard.services.source_registry import SourceRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sources", tags=["sources"])


def get_source_registry(db: Session = Depends(get_db)) -> SourceRegistry:
    return SourceRegistry(KVStore(db))


@router.get("", response_model=SourceListResponseSchema)
def list_sources(
    identity: Identity = Depends(get_current_identity),
    registry: SourceRegistry = Depends(get_source_registry),
):
    """Return the caller's sources in creation order, without secret tokens."""
    try:
        sources = registry.list_sources(identity.user_id)
    except Exception:
        logger.exception("failed to list sources for user %s", identity.user_id)
        raise HTTPException(status_code=500, detail="Failed to fetch sources")

    return SourceListResponseSchema(
        sources=[SourceSchema.model_validate(s) for s in sources],
    )


@router.post("", response_model=SourceCreateResponseSchema)
def create_source(
    body: SourceCreateSchema,
    identity: Identity = Depends(get_current_identity),
    registry: SourceRegistry = Depends(get_source_registry),
):
    """Register a new integration for the caller."""
    try:
        source = registry.create_source(identity.user_id, body.name, body.type, body.token)
    except Exception:
        logger.exception("failed to create source for user %s", identity.user_id)
        raise HTTPException(status_code=500, detail="Failed to create source")

    return SourceCreateResponseSchema(source=SourceSchema.model_validate(source.without_secret()))
