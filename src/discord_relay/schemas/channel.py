"""Pydantic schemas for channels and upstream results."""

from typing import Literal, Optional

from discord_relay.schemas.message import WireModel


class ChannelPermissions(WireModel):
    can_read: bool = True
    can_write: bool = False
    can_manage: bool = False


class ChannelDescriptor(WireModel):
    """A channel as listed to a client."""

    id: str
    name: str = ""
    type: Literal["text", "voice", "category"] = "text"
    server_id: str = ""
    server_name: str = ""
    position: int = 0
    unread_count: int = 0
    is_active: bool = False
    permissions: ChannelPermissions = ChannelPermissions()


class ChannelInfo(WireModel):
    """Result of a single-channel lookup on the platform."""

    id: str
    name: str = ""
    type: str = "text"
    server_id: str = ""
    server_name: str = ""

    def joined_descriptor(self) -> ChannelDescriptor:
        """Descriptor sent back to a session that just joined this channel."""
        return ChannelDescriptor(
            id=self.id,
            name=self.name,
            type="text",
            server_id=self.server_id,
            server_name=self.server_name,
            is_active=True,
            permissions=ChannelPermissions(can_read=True, can_write=True),
        )


class SentMessage(WireModel):
    id: str
    content: str = ""
    timestamp: str = ""


class ApiResult(WireModel):
    """Envelope returned by the HTTP API."""

    status: Literal["succeed", "failed"]
    data: Optional[list] = None
    message: Optional[str] = None
