"""The chat-platform collaborator as the relay sees it.

Learn: Connection handlers and the HTTP API depend on this Protocol,
not on discord.py. The production implementation is DiscordGateway;
tests use an in-memory fake with the same three coroutines.
"""

from typing import Protocol

from discord_relay.schemas.channel import ChannelDescriptor, ChannelInfo, SentMessage


class ChatPlatform(Protocol):
    async def fetch_channel(self, channel_id: str) -> ChannelInfo:
        """Look up one text channel.

        Raises ChannelNotFound or UpstreamUnavailable.
        """
        ...

    async def fetch_accessible_channels(self, principal_id: str) -> list[ChannelDescriptor]:
        """Text channels the user can view, across every guild. Never cached."""
        ...

    async def send_message(self, channel_id: str, content: str) -> SentMessage:
        """Post a message as the bot. Raises ChannelNotFound or UpstreamUnavailable."""
        ...
