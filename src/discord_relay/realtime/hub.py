"""Hub — connections, channel-scoped delivery groups, broadcast.

Learn: The hub is the transport seen from the relay's side:
- emit(event, data) on a Connection → one client
- join/leave(connection, tag) → group membership
- broadcast(tag, event, data) → every member's outbox

Group tags are "channel:<id>". One Hub serves one namespace, so relay
traffic never mixes with anything else on the same server.

Delivery is at-most-once: when an outbox is full the frame is dropped
and counted, never retried.
"""

import asyncio
import json
import uuid
from dataclasses import dataclass
from typing import Any, Optional

import structlog

logger = structlog.get_logger()


def channel_group(channel_id: str) -> str:
    """Delivery-group tag for a channel."""
    return f"channel:{channel_id}"


@dataclass(frozen=True)
class Envelope:
    """One server → client frame."""

    event: str
    data: Any = None
    ack: Optional[int] = None

    def to_json(self) -> str:
        frame: dict[str, Any] = {"event": self.event, "data": self.data}
        if self.ack is not None:
            frame["ack"] = self.ack
        return json.dumps(frame, default=str)


class Connection:
    """One client's delivery target."""

    def __init__(
        self,
        session_id: Optional[str] = None,
        owner: Optional[str] = None,
        outbox_size: int = 256,
    ):
        self.id = session_id or uuid.uuid4().hex
        self.owner = owner
        self.outbox: asyncio.Queue[Envelope] = asyncio.Queue(maxsize=outbox_size)
        self.groups: set[str] = set()
        self.dropped = 0

    def emit(self, event: str, data: Any = None, ack: Optional[int] = None) -> bool:
        """Queue a frame for this client. Returns False if it was dropped."""
        try:
            self.outbox.put_nowait(Envelope(event=event, data=data, ack=ack))
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "relay.outbox_full",
                session_id=self.id,
                dropped_event=event,
                dropped_total=self.dropped,
            )
            return False

    async def next_frame(self) -> Envelope:
        return await self.outbox.get()

    def __repr__(self) -> str:
        return f"<Connection {self.id} groups={len(self.groups)}>"


class Hub:
    """Connections and group membership for a single namespace."""

    def __init__(self, namespace: str = "discord"):
        self.namespace = namespace
        self._connections: dict[str, Connection] = {}
        self._groups: dict[str, set[Connection]] = {}

    # ── Connections ─────────────────────────────────────────

    def attach(self, connection: Connection) -> None:
        self._connections[connection.id] = connection

    def detach(self, connection: Connection) -> None:
        """Forget a connection and drop it from every group."""
        for tag in list(connection.groups):
            self.leave(connection, tag)
        self._connections.pop(connection.id, None)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # ── Groups ──────────────────────────────────────────────

    def join(self, connection: Connection, tag: str) -> None:
        self._groups.setdefault(tag, set()).add(connection)
        connection.groups.add(tag)

    def leave(self, connection: Connection, tag: str) -> None:
        connection.groups.discard(tag)
        members = self._groups.get(tag)
        if members is None:
            return
        members.discard(connection)
        if not members:
            del self._groups[tag]

    def members(self, tag: str) -> frozenset[Connection]:
        return frozenset(self._groups.get(tag, ()))

    def holds(self, tag: str, owner: str) -> bool:
        """True if any member of the group belongs to owner."""
        return any(c.owner == owner for c in self._groups.get(tag, ()))

    def group_sizes(self) -> dict[str, int]:
        return {tag: len(members) for tag, members in self._groups.items()}

    # ── Fan-out ─────────────────────────────────────────────

    def broadcast(
        self,
        tag: str,
        event: str,
        data: Any = None,
        exclude: Optional[Connection] = None,
    ) -> int:
        """Queue a frame for every member of a group. Returns outboxes reached."""
        delivered = 0
        for connection in list(self._groups.get(tag, ())):
            if connection is exclude:
                continue
            if connection.emit(event, data):
                delivered += 1
        return delivered
