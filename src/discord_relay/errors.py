"""Relay error taxonomy.

Learn: Every failure the relay can contain has a type here. Errors are
caught where they originate (one connection, one upstream event) and turned
into structured notices — clients never see a stack trace.

  AuthenticationError  → connection never becomes active
  UpstreamUnavailable  → operation fails, state untouched
  ChannelNotFound      → same handling as UpstreamUnavailable
  MalformedEvent       → upstream event dropped, nobody notified
"""

from typing import Literal

from pydantic import BaseModel

Severity = Literal["LOW", "MEDIUM", "HIGH"]


class RelayError(Exception):
    """Base class for errors contained inside the relay."""

    code = "INTERNAL_ERROR"
    severity: Severity = "MEDIUM"


class AuthenticationError(RelayError):
    """Credential missing, invalid or incomplete."""

    code = "UNAUTHENTICATED"
    severity = "HIGH"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class InvalidCredential(AuthenticationError):
    """Token absent, malformed, badly signed or expired."""


class InvalidClaims(AuthenticationError):
    """Token verified but lacks a required claim."""


class UpstreamUnavailable(RelayError):
    """A call to the chat platform failed."""

    code = "UPSTREAM_UNAVAILABLE"


class ChannelNotFound(RelayError):
    """Channel id is unknown or not a text channel."""

    code = "CHANNEL_NOT_FOUND"
    severity = "LOW"


class MalformedEvent(RelayError):
    """Upstream payload could not be normalized."""

    code = "MALFORMED_EVENT"
    severity = "LOW"


class ErrorNotice(BaseModel):
    """Payload of the server → client ``error`` event."""

    code: str
    message: str
    severity: Severity = "MEDIUM"
