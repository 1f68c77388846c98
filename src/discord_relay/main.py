"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. The lifespan is the composition root: it builds the one
SubscriptionRegistry, the Hub for the relay namespace, the
RelayDispatcher, and the Discord gateway, wires them together, and
tears them down in reverse on shutdown.

Tests pass their own ChatPlatform to create_app() so no Discord login
happens.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from discord_relay import __version__
from discord_relay.api import api_router
from discord_relay.config import settings
from discord_relay.logging_config import configure_logging
from discord_relay.realtime.hub import Hub
from discord_relay.relay.dispatcher import RelayDispatcher
from discord_relay.relay.registry import SubscriptionRegistry
from discord_relay.upstream.base import ChatPlatform

logger = structlog.get_logger()


@dataclass
class RelayContext:
    """Process-wide relay components, reachable as app.state.relay."""

    registry: SubscriptionRegistry
    hub: Hub
    dispatcher: RelayDispatcher
    platform: ChatPlatform


def _lifespan(platform_override: Optional[ChatPlatform]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown lifecycle.

        Learn: Anything before `yield` runs at startup, after `yield`
        runs at shutdown. A Discord login failure aborts startup — it is
        the only process-fatal condition.
        """
        logger.info(
            "relay.starting",
            version=__version__,
            environment=settings.environment,
            namespace=settings.namespace,
            port=settings.port,
        )

        registry = SubscriptionRegistry()
        hub = Hub(namespace=settings.namespace)
        dispatcher = RelayDispatcher(registry, hub, queue_size=settings.dispatch_queue_size)

        gateway = None
        if platform_override is not None:
            platform = platform_override
        else:
            from discord_relay.upstream.discord_gateway import DiscordGateway

            gateway = DiscordGateway()
            gateway.bind(dispatcher)
            await gateway.start(settings.discord_bot_token)
            platform = gateway

        app.state.relay = RelayContext(
            registry=registry,
            hub=hub,
            dispatcher=dispatcher,
            platform=platform,
        )
        dispatch_task = asyncio.create_task(dispatcher.run_loop())

        # Redis is optional — only the rate limiter uses it
        from discord_relay.redis_pool import close_redis, init_redis
        try:
            await init_redis()
            logger.info("relay.redis_connected", url=settings.redis_url)
        except Exception as e:
            logger.warning("relay.redis_unavailable", error=str(e))

        yield

        # Shutdown
        logger.info("relay.shutdown", connections=hub.connection_count)

        dispatcher.stop()
        dispatch_task.cancel()
        try:
            await dispatch_task
        except asyncio.CancelledError:
            pass

        if gateway is not None:
            await gateway.close()

        await close_redis()

    return lifespan


def create_app(platform: Optional[ChatPlatform] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Discord Relay",
        description="Real-time relay of Discord channel events to WebSocket clients",
        version=__version__,
        lifespan=_lifespan(platform),
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from discord_relay.middleware.rate_limit import RateLimitMiddleware
    from discord_relay.middleware.request_id import RequestIdMiddleware
    from discord_relay.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RateLimitMiddleware, rpm=settings.rate_limit_rpm)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount API routes
    app.include_router(api_router)

    # Mount the relay WebSocket namespace
    from discord_relay.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: discord_relay.main:app)
app = create_app()
