"""Relay dispatcher — fan normalized events out to joined sessions.

Learn: Upstream callbacks never touch sockets. They normalize the raw
object and submit() the typed event to a queue; run_loop() drains the
queue and dispatch()es each event:

  registry empty for channel → drop (O(1), no transport call)
  otherwise                  → hub.broadcast("channel:<id>", ...)

A payload that fails normalization is logged and dropped right at the
callback, so one bad event cannot stall delivery for other channels.

This runs as a background task in the FastAPI lifespan.
"""

import asyncio
from typing import Any, Callable, Optional

import structlog

from discord_relay.errors import MalformedEvent
from discord_relay.realtime.hub import Hub, channel_group
from discord_relay.relay.normalizer import (
    RelayEvent,
    normalize_created,
    normalize_deleted,
    normalize_updated,
)
from discord_relay.relay.registry import SubscriptionRegistry

logger = structlog.get_logger()


class RelayDispatcher:
    """Consumes relay events and broadcasts them to channel groups."""

    def __init__(
        self,
        registry: SubscriptionRegistry,
        hub: Hub,
        queue_size: int = 1000,
    ):
        self.registry = registry
        self.hub = hub
        self.queue: asyncio.Queue[RelayEvent] = asyncio.Queue(maxsize=queue_size)
        self._running = False
        self.dispatched = 0
        self.dropped = 0

    # ── Upstream callbacks ──────────────────────────────────

    def on_message_created(self, raw: Any) -> None:
        self._accept(normalize_created, raw, "created")

    def on_message_updated(self, raw: Any) -> None:
        self._accept(normalize_updated, raw, "updated")

    def on_message_deleted(self, raw: Any) -> None:
        self._accept(normalize_deleted, raw, "deleted")

    def _accept(self, normalize: Callable[[Any], Optional[RelayEvent]], raw: Any, kind: str) -> None:
        try:
            event = normalize(raw)
        except MalformedEvent as e:
            logger.warning("relay.malformed_event", kind=kind, error=str(e))
            return
        if event is None:
            return  # bot-authored
        self.submit(event)

    # ── Queue ───────────────────────────────────────────────

    def submit(self, event: RelayEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "relay.dispatch_queue_full",
                event_name=event.event_name,
                channel_id=event.channel_id,
            )

    async def run_loop(self) -> None:
        """Drain the queue until stop() is called or the task is cancelled."""
        self._running = True
        logger.info("relay.dispatcher_started")
        while self._running:
            event = await self.queue.get()
            try:
                self.dispatch(event)
            except Exception:
                logger.exception(
                    "relay.dispatch_failed",
                    event_name=event.event_name,
                    channel_id=event.channel_id,
                )
            finally:
                self.queue.task_done()

    def stop(self) -> None:
        self._running = False

    # ── Fan-out ─────────────────────────────────────────────

    def dispatch(self, event: RelayEvent) -> int:
        """Deliver one event to its channel group. Returns outboxes reached."""
        channel_id = event.channel_id
        if not self.registry.has_subscribers(channel_id):
            return 0

        delivered = self.hub.broadcast(
            channel_group(channel_id), event.event_name, event.payload()
        )
        self.dispatched += 1
        logger.debug(
            "relay.dispatched",
            event_name=event.event_name,
            channel_id=channel_id,
            delivered=delivered,
        )
        return delivered
