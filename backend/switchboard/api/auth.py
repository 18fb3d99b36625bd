from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status

from switchboard.config import settings
from switchboard.services.auth_gate import (
    HTTPIdentityResolver,
    Identity,
    IdentityResolver,
    IdentityServiceError,
    Unauthorized,
    authenticate,
)

logger = logging.getLogger(__name__)


@lru_cache
def get_identity_resolver() -> IdentityResolver:
    return HTTPIdentityResolver(
        base_url=settings.AUTH_URL,
        api_key=settings.AUTH_API_KEY,
        timeout=settings.AUTH_TIMEOUT_SECONDS,
    )


def get_current_identity(
    authorization: str | None = Header(default=None),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> Identity:
    """Resolve the caller's bearer token; every store-touching route depends on this."""
    try:
        return authenticate(authorization, resolver)
    except Unauthorized as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    except IdentityServiceError as exc:
        logger.error("identity service unavailable: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication service unavailable",
        )
