"""Discord gateway — the discord.py client behind the relay.

Learn: A thin discord.Client subclass forwards the three message events
to whatever sink is bound (the RelayDispatcher). DiscordGateway wraps it
and implements ChatPlatform, translating discord.py exceptions into the
relay's ChannelNotFound / UpstreamUnavailable.

Accessible channels are recomputed on every call: each guild's member
record is fetched live, then text channels are filtered by permissions.
Nothing is cached, so results are never stale.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Protocol

import discord
import structlog

from discord_relay.errors import ChannelNotFound, UpstreamUnavailable
from discord_relay.relay.normalizer import iso_timestamp
from discord_relay.schemas.channel import (
    ChannelDescriptor,
    ChannelInfo,
    ChannelPermissions,
    SentMessage,
)

logger = structlog.get_logger()


class EventSink(Protocol):
    def on_message_created(self, raw: Any) -> None: ...

    def on_message_updated(self, raw: Any) -> None: ...

    def on_message_deleted(self, raw: Any) -> None: ...


class _GatewayClient(discord.Client):
    """discord.Client that forwards message events to a sink."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.sink: Optional[EventSink] = None

    async def on_ready(self) -> None:
        logger.info(
            "relay.discord_ready",
            user=str(self.user),
            guilds=len(self.guilds),
        )

    async def on_message(self, message: discord.Message) -> None:
        if self.sink is not None:
            self.sink.on_message_created(message)

    async def on_message_edit(self, before: discord.Message, after: discord.Message) -> None:
        if self.sink is not None:
            self.sink.on_message_updated(after)

    async def on_raw_message_delete(self, payload: discord.RawMessageDeleteEvent) -> None:
        if self.sink is not None:
            self.sink.on_message_deleted(payload)

    async def on_disconnect(self) -> None:
        logger.warning("relay.discord_disconnected")

    async def on_resumed(self) -> None:
        logger.info("relay.discord_resumed")


def _snowflake(channel_id: str) -> int:
    try:
        return int(channel_id)
    except (TypeError, ValueError):
        raise ChannelNotFound(f"Invalid channel id: {channel_id!r}")


class DiscordGateway:
    """ChatPlatform backed by a logged-in Discord bot."""

    def __init__(self, client: Optional[discord.Client] = None):
        if client is None:
            intents = discord.Intents.default()
            intents.guilds = True
            intents.guild_messages = True
            intents.message_content = True
            intents.members = True
            client = _GatewayClient(intents=intents)
        self.client = client
        self._task: Optional[asyncio.Task] = None

    def bind(self, sink: EventSink) -> None:
        """Route upstream message events to the sink."""
        self.client.sink = sink

    async def start(self, token: str) -> None:
        """Log in and start the gateway connection in the background.

        Login failure propagates — the relay is useless without Discord.
        """
        if not token:
            raise RuntimeError("RELAY_DISCORD_BOT_TOKEN is not set")
        await self.client.login(token)
        self._task = asyncio.create_task(self.client.connect(reconnect=True))
        logger.info("relay.discord_connecting")

    async def close(self) -> None:
        await self.client.close()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except (asyncio.CancelledError, discord.DiscordException):
                pass
            self._task = None

    async def _text_channel(self, channel_id: str) -> Any:
        cid = _snowflake(channel_id)
        try:
            channel = self.client.get_channel(cid) or await self.client.fetch_channel(cid)
        except (discord.NotFound, discord.Forbidden, discord.InvalidData):
            raise ChannelNotFound(f"Channel {channel_id} not found")
        except discord.HTTPException as e:
            raise UpstreamUnavailable(f"Discord lookup failed: {e}") from e

        if not isinstance(channel, discord.abc.Messageable):
            raise ChannelNotFound(f"Channel {channel_id} is not text-based")
        return channel

    async def fetch_channel(self, channel_id: str) -> ChannelInfo:
        channel = await self._text_channel(channel_id)
        guild = getattr(channel, "guild", None)
        return ChannelInfo(
            id=str(channel.id),
            name=getattr(channel, "name", "") or "",
            type=str(getattr(channel, "type", "text")),
            server_id=str(guild.id) if guild else "",
            server_name=guild.name if guild else "",
        )

    async def fetch_accessible_channels(self, principal_id: str) -> list[ChannelDescriptor]:
        try:
            user_id = int(principal_id)
        except (TypeError, ValueError):
            return []

        channels: list[ChannelDescriptor] = []
        for guild in self.client.guilds:
            try:
                member = await guild.fetch_member(user_id)
            except discord.HTTPException:
                continue  # not a member (404) or not visible to the bot

            for channel in guild.text_channels:
                perms = channel.permissions_for(member)
                if not perms.view_channel:
                    continue
                channels.append(
                    ChannelDescriptor(
                        id=str(channel.id),
                        name=channel.name,
                        type="text",
                        server_id=str(guild.id),
                        server_name=guild.name,
                        position=channel.position,
                        permissions=ChannelPermissions(
                            can_read=perms.view_channel,
                            can_write=perms.send_messages,
                            can_manage=perms.manage_channels,
                        ),
                    )
                )
        return channels

    async def send_message(self, channel_id: str, content: str) -> SentMessage:
        channel = await self._text_channel(channel_id)
        try:
            message = await channel.send(content)
        except discord.Forbidden:
            raise UpstreamUnavailable(f"Bot may not post in channel {channel_id}")
        except discord.HTTPException as e:
            raise UpstreamUnavailable(f"Discord send failed: {e}") from e
        return SentMessage(
            id=str(message.id),
            content=message.content,
            timestamp=iso_timestamp(message.created_at),
        )
