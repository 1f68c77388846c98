"""Health and metrics endpoints.

Learn: /health answers "is the relay up, and is Redis reachable";
/metrics exposes the subscription registry and delivery-group sizes
for dashboards. Neither requires authentication.
"""

import time

from fastapi import APIRouter, Request

from discord_relay import __version__
from discord_relay.config import settings

router = APIRouter()

_started = time.monotonic()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    relay = request.app.state.relay
    checks = {
        "server": "ok",
        "version": __version__,
        "environment": settings.environment,
        "uptime": round(time.monotonic() - _started, 1),
        "connections": {
            "total": relay.hub.connection_count,
            settings.namespace: relay.hub.connection_count,
        },
    }

    try:
        from discord_relay.redis_pool import get_redis

        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"unavailable: {e}"

    return {"status": "healthy", **checks}


@router.get("/metrics")
async def metrics(request: Request):
    """Subscription registry and delivery-group statistics."""
    relay = request.app.state.relay
    groups = relay.hub.group_sizes()
    return {
        "connections": {"total": relay.hub.connection_count},
        "subscriptions": relay.registry.stats().to_dict(),
        "rooms": {
            "total": len(groups),
            "activeChannels": [
                {"channelId": tag.split(":", 1)[1], "userCount": size}
                for tag, size in groups.items()
            ],
        },
        "dispatcher": {
            "dispatched": relay.dispatcher.dispatched,
            "dropped": relay.dispatcher.dropped,
            "queued": relay.dispatcher.queue.qsize(),
        },
    }
