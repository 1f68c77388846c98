"""Subscription registry — channel id → subscriber ids.

Learn: One instance per process, created by the app lifespan and passed
to the dispatcher and every connection handler. It holds no locks: all
callers run on the same event loop and every method here is synchronous,
so no read-modify-write can be interleaved.

Invariant: a channel id is a key iff its subscriber set is non-empty.
"""

from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class ChannelStats:
    channel_id: str
    subscriber_count: int


@dataclass(frozen=True)
class SubscriptionStats:
    total_channels: int
    total_subscribers: int
    channels: list[ChannelStats] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalChannels": self.total_channels,
            "totalSubscribers": self.total_subscribers,
            "channelDetails": [
                {"channelId": c.channel_id, "subscriberCount": c.subscriber_count}
                for c in self.channels
            ],
        }


class SubscriptionRegistry:
    """Idempotent channel → subscriber map."""

    def __init__(self) -> None:
        self._channels: dict[str, set[str]] = {}

    def subscribe(self, channel_id: str, subscriber_id: str) -> None:
        subscribers = self._channels.setdefault(channel_id, set())
        if subscriber_id in subscribers:
            return
        subscribers.add(subscriber_id)
        logger.debug(
            "relay.subscribed", channel_id=channel_id, subscriber_id=subscriber_id
        )

    def unsubscribe(self, channel_id: str, subscriber_id: str) -> None:
        subscribers = self._channels.get(channel_id)
        if subscribers is None or subscriber_id not in subscribers:
            return
        subscribers.discard(subscriber_id)
        if not subscribers:
            del self._channels[channel_id]
        logger.debug(
            "relay.unsubscribed", channel_id=channel_id, subscriber_id=subscriber_id
        )

    def list_subscribers(self, channel_id: str) -> frozenset[str]:
        return frozenset(self._channels.get(channel_id, ()))

    def has_subscribers(self, channel_id: str) -> bool:
        """O(1) emptiness check used on the hot dispatch path."""
        return channel_id in self._channels

    def is_subscribed(self, channel_id: str, subscriber_id: str) -> bool:
        return subscriber_id in self._channels.get(channel_id, ())

    def stats(self) -> SubscriptionStats:
        channels = [
            ChannelStats(channel_id=cid, subscriber_count=len(subs))
            for cid, subs in self._channels.items()
        ]
        return SubscriptionStats(
            total_channels=len(channels),
            total_subscribers=sum(c.subscriber_count for c in channels),
            channels=channels,
        )

    def __len__(self) -> int:
        return len(self._channels)

    def __contains__(self, channel_id: object) -> bool:
        return channel_id in self._channels
