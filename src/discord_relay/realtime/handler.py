"""Connection handler — one per authenticated WebSocket.

Learn: The handler owns its session (principal + joined channels) and
moves through four states:

  CONNECTING → AUTHENTICATED → ACTIVE → DISCONNECTED

CONNECTING is the handshake in the WebSocket route; a handler only exists
once authentication succeeded. activate() sends the initial snapshot and
makes the session ACTIVE. disconnect() is terminal and is the one path
that always unwinds registry subscriptions, whatever closed the socket.

Frames are handled as separate tasks, so a join waiting on Discord can
overlap a leave or a disconnect. Every mutation after an await therefore
re-checks the state it depends on.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import structlog

from discord_relay.auth.session import Principal
from discord_relay.errors import ChannelNotFound, ErrorNotice, RelayError
from discord_relay.events import types as ev
from discord_relay.realtime.hub import Connection, Hub, channel_group
from discord_relay.relay.registry import SubscriptionRegistry
from discord_relay.upstream.base import ChatPlatform

logger = structlog.get_logger()

Callback = Optional[Callable[[dict], None]]


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


@dataclass
class Session:
    id: str
    principal: Principal
    joined: set[str] = field(default_factory=set)


def _reply(callback: Callback, response: dict) -> None:
    if callback is not None:
        callback(response)


def _channel_id(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    channel_id = data.get("channelId")
    if channel_id is None or channel_id == "":
        return None
    return str(channel_id)


class ConnectionHandler:
    """Per-connection orchestrator between client, registry and Discord."""

    def __init__(
        self,
        connection: Connection,
        principal: Principal,
        hub: Hub,
        registry: SubscriptionRegistry,
        platform: ChatPlatform,
    ):
        self.connection = connection
        self.session = Session(id=connection.id, principal=principal)
        self.hub = hub
        self.registry = registry
        self.platform = platform
        self.state = ConnectionState.AUTHENTICATED
        self._tasks: set[asyncio.Task] = set()
        self._log = logger.bind(
            session_id=connection.id,
            principal_id=principal.id,
            username=principal.username,
        )
        self._listeners: dict[str, Callable[[Any, Callback], Awaitable[None]]] = {
            ev.GET_CHANNELS: lambda data, cb: self.get_channels(cb),
            ev.JOIN_CHANNEL: self.join_channel,
            ev.LEAVE_CHANNEL: self.leave_channel,
            ev.SEND_MESSAGE: self.send_message,
            ev.TYPING: lambda data, cb: self.typing(data),
        }

    @property
    def principal(self) -> Principal:
        return self.session.principal

    @property
    def joined(self) -> frozenset[str]:
        return frozenset(self.session.joined)

    # ── Lifecycle ───────────────────────────────────────────

    async def activate(self) -> None:
        """Attach to the hub and send the initial snapshot."""
        if self.state is not ConnectionState.AUTHENTICATED:
            return
        self.hub.attach(self.connection)
        self.state = ConnectionState.ACTIVE
        self._log.info("relay.session_active")

        self.connection.emit(ev.USER_INFO, {
            "userId": self.principal.id,
            "username": self.principal.username,
            "displayName": self.principal.display_name,
            "permissions": [],
        })
        try:
            channels = await self.platform.fetch_accessible_channels(self.principal.id)
        except Exception:
            self._log.exception("relay.initial_snapshot_failed")
            self._notify("INITIALIZATION_FAILED", "Failed to load initial data", "HIGH")
            return
        self.connection.emit(ev.CHANNELS_LIST, [c.wire() for c in channels])

    async def disconnect(self, reason: str = "client disconnect") -> None:
        """Unwind every subscription this session holds. Idempotent."""
        if self.state is ConnectionState.DISCONNECTED:
            return
        self.state = ConnectionState.DISCONNECTED

        for task in list(self._tasks):
            task.cancel()

        user = self.principal.public()
        for channel_id in list(self.session.joined):
            tag = channel_group(channel_id)
            self._release(channel_id)
            if not self.hub.holds(tag, self.principal.id):
                self.hub.broadcast(tag, ev.USER_LEFT, {"channelId": channel_id, "user": user})
        left = len(self.session.joined)
        self.session.joined.clear()
        self.hub.detach(self.connection)

        self._log.info("relay.session_closed", reason=reason, channels_left=left)

    # ── Inbound frames ──────────────────────────────────────

    def spawn(self, event: str, data: Any = None, callback: Callback = None) -> Optional[asyncio.Task]:
        """Handle a client frame as its own task."""
        if self.state is not ConnectionState.ACTIVE:
            return None
        task = asyncio.create_task(self.handle(event, data, callback))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def handle(self, event: str, data: Any = None, callback: Callback = None) -> None:
        """Route one client event to its listener, containing any error."""
        listener = self._listeners.get(event)
        if listener is None:
            self._log.debug("relay.unknown_event", client_event=event)
            _reply(callback, {"success": False, "error": f"Unknown event: {event}"})
            return
        try:
            await listener(data, callback)
        except asyncio.CancelledError:
            raise
        except Exception:
            self._log.exception("relay.listener_failed", client_event=event)
            self._notify("CLIENT_ERROR", "An error occurred", "MEDIUM")

    def _release(self, channel_id: str) -> None:
        """Leave the channel group; drop the subscription unless another
        connection of the same principal is still in it."""
        tag = channel_group(channel_id)
        self.hub.leave(self.connection, tag)
        if not self.hub.holds(tag, self.principal.id):
            self.registry.unsubscribe(channel_id, self.principal.id)

    def _notify(self, code: str, message: str, severity: str = "MEDIUM") -> None:
        notice = ErrorNotice(code=code, message=message, severity=severity)
        self.connection.emit(ev.ERROR, notice.model_dump())

    # ── Operations ──────────────────────────────────────────

    async def get_channels(self, callback: Callback = None) -> None:
        try:
            channels = await self.platform.fetch_accessible_channels(self.principal.id)
        except Exception:
            self._log.exception("relay.channels_fetch_failed")
            _reply(callback, {
                "success": False,
                "error": "Failed to fetch channels",
                "channels": [],
            })
            self._notify("CHANNELS_FETCH_FAILED", "Unable to fetch channels", "MEDIUM")
            return

        payload = [c.wire() for c in channels]
        self.connection.emit(ev.CHANNELS_LIST, payload)
        _reply(callback, {"success": True, "channels": payload})
        self._log.debug("relay.channels_listed", count=len(payload))

    async def join_channel(self, data: Any, callback: Callback = None) -> None:
        channel_id = _channel_id(data)
        if channel_id is None:
            _reply(callback, {"success": False, "error": "channelId is required"})
            return

        if channel_id in self.session.joined:
            _reply(callback, {"success": True, "channelId": channel_id, "alreadyJoined": True})
            return

        try:
            info = await self.platform.fetch_channel(channel_id)
        except ChannelNotFound as e:
            self._log.info("relay.join_unknown_channel", channel_id=channel_id, error=str(e))
            _reply(callback, {"success": False, "error": "Channel not found"})
            return
        except Exception as e:
            self._log.warning(
                "relay.join_failed",
                channel_id=channel_id,
                error=str(e),
                exc_info=not isinstance(e, RelayError),
            )
            _reply(callback, {"success": False, "error": "Failed to join channel"})
            return

        # The lookup suspended us; another task may have joined or disconnected.
        if self.state is not ConnectionState.ACTIVE:
            _reply(callback, {"success": False, "error": "Connection closed"})
            return
        if channel_id in self.session.joined:
            _reply(callback, {"success": True, "channelId": channel_id, "alreadyJoined": True})
            return

        tag = channel_group(channel_id)
        was_subscribed = self.registry.is_subscribed(channel_id, self.principal.id)
        try:
            self.hub.join(self.connection, tag)
            self.session.joined.add(channel_id)
            self.registry.subscribe(channel_id, self.principal.id)
            self.connection.emit(ev.CHANNEL_UPDATE, info.joined_descriptor().wire())
        except Exception:
            self.hub.leave(self.connection, tag)
            self.session.joined.discard(channel_id)
            if not was_subscribed:
                self.registry.unsubscribe(channel_id, self.principal.id)
            self._log.exception("relay.join_rolled_back", channel_id=channel_id)
            _reply(callback, {"success": False, "error": "Failed to join channel"})
            return

        self.hub.broadcast(
            tag,
            ev.USER_JOINED,
            {"channelId": channel_id, "user": self.principal.public()},
            exclude=self.connection,
        )
        _reply(callback, {"success": True, "channelId": channel_id})
        self._log.info("relay.channel_joined", channel_id=channel_id)

    async def leave_channel(self, data: Any, callback: Callback = None) -> None:
        channel_id = _channel_id(data)
        if channel_id is None:
            _reply(callback, {"success": False, "error": "channelId is required"})
            return

        was_joined = channel_id in self.session.joined
        self.session.joined.discard(channel_id)
        self._release(channel_id)

        _reply(callback, {"success": True, "channelId": channel_id})
        if was_joined:
            self._log.info("relay.channel_left", channel_id=channel_id)

    async def send_message(self, data: Any, callback: Callback = None) -> None:
        channel_id = _channel_id(data)
        content = data.get("content") if isinstance(data, dict) else None
        if channel_id is None or not isinstance(content, str) or not content.strip():
            _reply(callback, {"success": False, "error": "channelId and content are required"})
            return
        if channel_id not in self.session.joined:
            _reply(callback, {"success": False, "error": "Join the channel before sending"})
            return

        try:
            sent = await self.platform.send_message(channel_id, content)
        except Exception as e:
            self._log.warning(
                "relay.send_failed",
                channel_id=channel_id,
                error=str(e),
                exc_info=not isinstance(e, RelayError),
            )
            _reply(callback, {"success": False, "error": "Failed to send message"})
            return

        _reply(callback, {"success": True, "message": sent.wire()})
        self._log.info("relay.message_sent", channel_id=channel_id, message_id=sent.id)

    async def typing(self, data: Any) -> None:
        channel_id = _channel_id(data)
        if channel_id is None or channel_id not in self.session.joined:
            return
        self.hub.broadcast(
            channel_group(channel_id),
            ev.TYPING_START,
            {
                "channelId": channel_id,
                "userId": self.principal.id,
                "username": self.principal.username,
            },
            exclude=self.connection,
        )
