"""Subscription registry tests.

Learn: Covers the registry invariants:
1. No channel key ever maps to an empty set
2. subscribe / unsubscribe are idempotent
3. stats() counts a subscriber once per channel
"""

import random

from discord_relay.relay.registry import SubscriptionRegistry


def test_subscribe_creates_channel_entry(registry):
    registry.subscribe("C1", "U1")
    assert registry.list_subscribers("C1") == {"U1"}
    assert "C1" in registry
    assert registry.has_subscribers("C1")


def test_subscribe_twice_is_idempotent(registry):
    registry.subscribe("C1", "U1")
    registry.subscribe("C1", "U1")
    assert registry.list_subscribers("C1") == {"U1"}
    assert registry.stats().total_subscribers == 1


def test_unsubscribe_last_member_removes_channel(registry):
    registry.subscribe("C1", "U1")
    registry.unsubscribe("C1", "U1")
    assert "C1" not in registry
    assert len(registry) == 0
    assert registry.list_subscribers("C1") == frozenset()


def test_unsubscribe_non_member_is_noop(registry):
    registry.subscribe("C1", "U1")

    registry.unsubscribe("C1", "U2")
    registry.unsubscribe("C9", "U1")

    assert registry.list_subscribers("C1") == {"U1"}
    assert len(registry) == 1


def test_list_subscribers_is_a_snapshot(registry):
    registry.subscribe("C1", "U1")
    snapshot = registry.list_subscribers("C1")
    registry.subscribe("C1", "U2")
    assert snapshot == {"U1"}


def test_list_subscribers_unknown_channel_does_not_create_entry(registry):
    assert registry.list_subscribers("C1") == frozenset()
    assert not registry.has_subscribers("C1")
    assert len(registry) == 0


def test_stats_counts_subscriber_once_per_channel(registry):
    registry.subscribe("C1", "U1")
    registry.subscribe("C2", "U1")
    registry.subscribe("C2", "U2")

    stats = registry.stats()
    assert stats.total_channels == 2
    assert stats.total_subscribers == 3
    counts = {c.channel_id: c.subscriber_count for c in stats.channels}
    assert counts == {"C1": 1, "C2": 2}


def test_stats_to_dict_wire_shape(registry):
    registry.subscribe("C1", "U1")
    assert registry.stats().to_dict() == {
        "totalChannels": 1,
        "totalSubscribers": 1,
        "channelDetails": [{"channelId": "C1", "subscriberCount": 1}],
    }


def test_random_churn_never_leaves_empty_entries():
    """Arbitrary interleavings keep keys == channels with members."""
    rng = random.Random(1234)
    registry = SubscriptionRegistry()
    model: dict[str, set[str]] = {}

    for _ in range(2000):
        channel = f"C{rng.randrange(8)}"
        user = f"U{rng.randrange(5)}"
        if rng.random() < 0.5:
            registry.subscribe(channel, user)
            model.setdefault(channel, set()).add(user)
        else:
            registry.unsubscribe(channel, user)
            model.get(channel, set()).discard(user)

        for detail in registry.stats().channels:
            assert detail.subscriber_count > 0

    expected = {c: users for c, users in model.items() if users}
    assert {c.channel_id for c in registry.stats().channels} == set(expected)
    for channel, users in expected.items():
        assert registry.list_subscribers(channel) == users
