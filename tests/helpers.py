"""Shared test doubles: an in-memory ChatPlatform and outbox helpers."""

import asyncio
from typing import Optional

from discord_relay.errors import ChannelNotFound, UpstreamUnavailable
from discord_relay.realtime.hub import Connection
from discord_relay.schemas.channel import (
    ChannelDescriptor,
    ChannelInfo,
    ChannelPermissions,
    SentMessage,
)


class FakePlatform:
    """In-memory ChatPlatform.

    fail_lookups / fail_listing make the matching calls raise
    UpstreamUnavailable; lookup_gate makes fetch_channel block until set.
    """

    def __init__(self):
        self.channels: dict[str, ChannelInfo] = {}
        self.sent: list[tuple[str, str]] = []
        self.fail_lookups = False
        self.fail_listing = False
        self.lookup_gate: Optional[asyncio.Event] = None
        self.listing_calls = 0

    def add_channel(self, channel_id: str, name: str = "general",
                    server_id: str = "G1", server_name: str = "Guild One") -> ChannelInfo:
        info = ChannelInfo(id=channel_id, name=name, server_id=server_id, server_name=server_name)
        self.channels[channel_id] = info
        return info

    async def fetch_channel(self, channel_id: str) -> ChannelInfo:
        if self.lookup_gate is not None:
            await self.lookup_gate.wait()
        if self.fail_lookups:
            raise UpstreamUnavailable("discord is down")
        if channel_id not in self.channels:
            raise ChannelNotFound(f"Channel {channel_id} not found")
        return self.channels[channel_id]

    async def fetch_accessible_channels(self, principal_id: str) -> list[ChannelDescriptor]:
        self.listing_calls += 1
        if self.fail_listing:
            raise UpstreamUnavailable("discord is down")
        return [
            ChannelDescriptor(
                id=c.id,
                name=c.name,
                server_id=c.server_id,
                server_name=c.server_name,
                permissions=ChannelPermissions(can_read=True, can_write=True),
            )
            for c in self.channels.values()
        ]

    async def send_message(self, channel_id: str, content: str) -> SentMessage:
        if self.fail_lookups:
            raise UpstreamUnavailable("discord is down")
        self.sent.append((channel_id, content))
        return SentMessage(
            id=f"sent-{len(self.sent)}",
            content=content,
            timestamp="2024-05-01T12:00:00.000Z",
        )


def drain(connection: Connection) -> list:
    """Pop every queued frame from a connection's outbox."""
    frames = []
    while not connection.outbox.empty():
        frames.append(connection.outbox.get_nowait())
    return frames


def events(connection: Connection) -> list[str]:
    """Event names of every queued frame (drains the outbox)."""
    return [f.event for f in drain(connection)]
