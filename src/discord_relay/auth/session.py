"""Session authenticator — bearer credential → Principal.

Learn: Two distinct failure kinds, both fatal for the connection:
- InvalidCredential: no token, bad signature, expired, garbage
- InvalidClaims: token is genuine but lacks discord_id or username

Nothing is allocated for a connection until this returns a Principal,
so a failed handshake leaves no partial session behind.
"""

from dataclasses import dataclass
from typing import Optional

from discord_relay.auth.jwt import TokenError, verify_token
from discord_relay.errors import InvalidClaims, InvalidCredential


@dataclass(frozen=True)
class Principal:
    """Authenticated identity attached to a session. Read-only."""

    id: str
    username: str
    display_name: str
    is_bot: bool = False

    def public(self) -> dict:
        """The identity as shown to other users."""
        return {"id": self.id, "username": self.username}


def authenticate(token: Optional[str]) -> Principal:
    """Validate a bearer token and build the Principal it names."""
    if not token:
        raise InvalidCredential("Authentication token required")

    try:
        claims = verify_token(token)
    except TokenError as e:
        raise InvalidCredential(str(e)) from e

    discord_id = claims.get("discord_id")
    username = claims.get("username")
    if not discord_id or not username:
        raise InvalidClaims("Invalid token payload")

    return Principal(
        id=str(discord_id),
        username=str(username),
        display_name=str(claims.get("display_name") or username),
        is_bot=bool(claims.get("is_bot", False)),
    )


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer ...`` header."""
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None
