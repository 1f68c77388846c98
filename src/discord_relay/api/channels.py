"""Discord channel routes.

GET /api/v1/discord/channels — channels the caller can see, as
{status: succeed|failed, data, message}. Upstream failures are reported
in the envelope with HTTP 200, matching what WebSocket clients get.
"""

import structlog
from fastapi import APIRouter, Depends, Request

from discord_relay.auth.dependencies import get_current_principal
from discord_relay.auth.session import Principal
from discord_relay.schemas.channel import ApiResult

logger = structlog.get_logger()
router = APIRouter(prefix="/discord")


@router.get("/channels", response_model=ApiResult)
async def list_channels(
    request: Request,
    principal: Principal = Depends(get_current_principal),
):
    """All accessible Discord text channels for the authenticated user."""
    platform = request.app.state.relay.platform
    try:
        channels = await platform.fetch_accessible_channels(principal.id)
    except Exception:
        logger.exception("relay.http_channels_failed", principal_id=principal.id)
        return ApiResult(status="failed", data=[], message="Failed to fetch channels")

    return ApiResult(
        status="succeed",
        data=[c.wire() for c in channels],
        message="Fetched accessible channels",
    )
