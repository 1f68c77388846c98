"""Relay session tokens (HS256 JWT).

Learn: Tokens are issued by whatever front end logs users in with
Discord; the relay only needs the shared secret. Claims:
  discord_id, username   — identity (required, checked in auth.session)
  display_name, is_bot   — optional
  exp, iat               — exp is mandatory here
create_access_token() exists for development and tests (see the CLI's
`token` command).
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from discord_relay.config import settings


class TokenError(Exception):
    """Token could not be decoded: bad signature, expired, or garbage."""


def create_access_token(
    discord_id: str,
    username: str,
    display_name: Optional[str] = None,
    is_bot: bool = False,
    expires_minutes: Optional[int] = None,
) -> str:
    """Sign a token for a Discord identity. Negative lifetimes give an expired token."""
    issued = datetime.now(timezone.utc)
    lifetime = settings.access_token_expire_minutes if expires_minutes is None else expires_minutes
    claims = {
        "discord_id": discord_id,
        "username": username,
        "is_bot": is_bot,
        "iat": issued,
        "exp": issued + timedelta(minutes=lifetime),
    }
    if display_name:
        claims["display_name"] = display_name
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict:
    """Decode a token and return its claims, or raise TokenError."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.PyJWTError as e:
        raise TokenError(f"Invalid token: {e}")
