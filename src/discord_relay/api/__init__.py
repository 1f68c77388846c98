"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. Health and metrics are open; everything under
/discord requires a Bearer token.
"""

from fastapi import APIRouter, Depends

from discord_relay.api.channels import router as channels_router
from discord_relay.api.health import router as health_router
from discord_relay.auth.dependencies import get_current_principal

_auth = [Depends(get_current_principal)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])

# Protected routes — require a valid JWT
api_router.include_router(channels_router, tags=["discord"], dependencies=_auth)
