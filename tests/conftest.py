"""Test fixtures — relay components wired to an in-memory chat platform.

Learn: Nothing here talks to Discord or Redis. FakePlatform implements the
ChatPlatform protocol from a dict of channels, and can be told to fail or
to block lookups on an asyncio.Event (to interleave a join with other
operations). Raw upstream messages are SimpleNamespace objects with the
same attribute names discord.py uses.
"""

import os

os.environ.setdefault("RELAY_REDIS_URL", "")
os.environ.setdefault("RELAY_ENVIRONMENT", "development")

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from discord_relay.auth.jwt import create_access_token
from discord_relay.auth.session import Principal
from discord_relay.main import create_app
from discord_relay.realtime.handler import ConnectionHandler
from discord_relay.realtime.hub import Connection, Hub
from discord_relay.relay.dispatcher import RelayDispatcher
from discord_relay.relay.registry import SubscriptionRegistry
from helpers import FakePlatform, drain


# ═══════════════════════════════════════════════════════════
# Raw upstream objects
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def make_message():
    """Factory for discord.Message-shaped objects."""

    def _make(
        message_id="M1",
        content="hi",
        channel_id="C1",
        guild_id="G1",
        author_id="A1",
        author_name="alice",
        bot=False,
        **extra,
    ):
        fields = dict(
            id=message_id,
            content=content,
            author=SimpleNamespace(
                id=author_id,
                name=author_name,
                display_name=author_name.title(),
                display_avatar=SimpleNamespace(url=f"https://cdn.example/{author_id}.png"),
                bot=bot,
            ),
            created_at=datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc),
            edited_at=None,
            channel=SimpleNamespace(id=channel_id),
            guild=SimpleNamespace(id=guild_id) if guild_id else None,
            attachments=[],
            embeds=[],
            reactions=[],
        )
        fields.update(extra)
        return SimpleNamespace(**fields)

    return _make


# ═══════════════════════════════════════════════════════════
# Relay components
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def platform():
    fake = FakePlatform()
    fake.add_channel("C1", name="general")
    fake.add_channel("C2", name="random")
    return fake


@pytest.fixture
def registry():
    return SubscriptionRegistry()


@pytest.fixture
def hub():
    return Hub(namespace="discord")


@pytest.fixture
def dispatcher(registry, hub):
    return RelayDispatcher(registry, hub, queue_size=10)


@pytest.fixture
def principal():
    return Principal(id="U1", username="user1", display_name="User One")


@pytest.fixture
def make_handler(hub, registry, platform):
    """Factory for active-able handlers sharing one hub/registry/platform."""

    def _make(user_id="U1", username="user1"):
        connection = Connection(owner=user_id, outbox_size=64)
        principal = Principal(id=user_id, username=username, display_name=username.title())
        return ConnectionHandler(connection, principal, hub=hub, registry=registry, platform=platform)

    return _make


@pytest_asyncio.fixture()
async def handler(make_handler):
    """An ACTIVE handler for U1 with its snapshot frames already drained."""
    h = make_handler()
    await h.activate()
    drain(h.connection)
    return h


# ═══════════════════════════════════════════════════════════
# Application
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def token():
    return create_access_token("U1", "user1", display_name="User One")


@pytest_asyncio.fixture()
async def app(platform):
    """App with lifespan running and the fake platform injected."""
    application = create_app(platform=platform)
    async with application.router.lifespan_context(application):
        yield application


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client against the in-process app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
