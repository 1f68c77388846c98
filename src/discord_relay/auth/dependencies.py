"""FastAPI auth dependencies.

Learn: Used as Depends() in route handlers to extract and validate
the caller's Principal from the Authorization header.
"""

from typing import Optional

import structlog
from fastapi import Header, HTTPException

from discord_relay.auth.session import Principal, authenticate, bearer_token
from discord_relay.errors import AuthenticationError

logger = structlog.get_logger()


async def get_current_principal(
    authorization: Optional[str] = Header(None),
) -> Principal:
    """Resolve the caller (required — 401 if missing or invalid)."""
    try:
        return authenticate(bearer_token(authorization))
    except AuthenticationError as e:
        logger.info("relay.http_auth_failed", kind=type(e).__name__, reason=e.reason)
        raise HTTPException(
            status_code=401,
            detail=e.reason,
            headers={"WWW-Authenticate": "Bearer"},
        )
