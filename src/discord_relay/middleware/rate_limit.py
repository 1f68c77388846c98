"""Per-IP request limit for the HTTP API, counted in Redis.

Learn: Fixed one-minute windows. The counter key is
"relay:rl:<ip>:<epoch-minute>" and expires after two windows. Only
/api/ routes count; health checks and the WebSocket handshake never do.

No Redis (tests, local dev) or a Redis error means no limiting; the
request always goes through.
"""

import time
from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger()

LIMITED_PREFIX = "/api/"
UNLIMITED_PATHS = frozenset({"/api/v1/health"})
WINDOW_SECONDS = 60


def _limited(path: str) -> bool:
    return path.startswith(LIMITED_PREFIX) and path not in UNLIMITED_PATHS


async def _hit(client_ip: str) -> Optional[int]:
    """Count one request in the current window; None when Redis is unusable."""
    from discord_relay.redis_pool import get_redis

    try:
        redis = get_redis()
    except RuntimeError:
        return None

    key = f"relay:rl:{client_ip}:{int(time.time() // WINDOW_SECONDS)}"
    try:
        count = await redis.incr(key)
        if count == 1:
            await redis.expire(key, WINDOW_SECONDS * 2)
    except Exception as e:
        logger.warning("relay.rate_limit_unavailable", error=str(e))
        return None
    return count


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, rpm: int = 100):
        super().__init__(app)
        self.rpm = rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        if not _limited(request.url.path):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        count = await _hit(client_ip)
        if count is None:
            return await call_next(request)

        if count > self.rpm:
            logger.info("relay.rate_limited", client_ip=client_ip, count=count)
            return JSONResponse(
                status_code=429,
                content={"status": "failed", "data": [], "message": "Too many requests"},
                headers={"Retry-After": str(WINDOW_SECONDS)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.rpm - count))
        return response
