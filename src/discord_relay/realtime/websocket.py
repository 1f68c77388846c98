"""WebSocket endpoint — the relay namespace clients connect to.

Learn: Each client connects to /discord?token=JWT (or sends an
Authorization: Bearer header). The handler:
1. Authenticates before accepting — failures close with code 4001
2. Creates a Connection + ConnectionHandler and sends the snapshot
3. Runs a reader (client frames → handler) and a writer (outbox → socket)
4. On any exit path, runs the handler's disconnect cleanup

Frame format, both directions:
    {"event": "join_channel", "data": {"channelId": "123"}, "ack": 7}
A frame with "ack" gets exactly one {"event": "ack", "ack": 7, "data": ...}.
"""

import asyncio
import json
from typing import Any, Optional

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from discord_relay.auth.session import authenticate, bearer_token
from discord_relay.config import settings
from discord_relay.errors import AuthenticationError, ErrorNotice
from discord_relay.events import types as ev
from discord_relay.realtime.handler import ConnectionHandler
from discord_relay.realtime.hub import Connection

logger = structlog.get_logger()
router = APIRouter()

AUTH_FAILED_CLOSE_CODE = 4001


def _ack_callback(connection: Connection, ack: Any):
    if not isinstance(ack, int) or isinstance(ack, bool):
        return None
    return lambda response: connection.emit(ev.ACK, response, ack=ack)


def _parse_frame(text: str) -> Optional[dict]:
    try:
        frame = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        return None
    return frame


@router.websocket(f"/{settings.namespace}")
async def relay_websocket(websocket: WebSocket):
    """Relay namespace endpoint.

    Learn: Two concurrent tasks run per connection:
    1. Writer — drains the connection's outbox to the socket
    2. Reader — parses client frames and hands them to the handler

    When either side finishes (usually client disconnect), the other
    is cancelled and disconnect() unwinds registry state.
    """
    # ── Authentication ──────────────────────────────────────
    token = websocket.query_params.get("token") or bearer_token(
        websocket.headers.get("authorization")
    )
    try:
        principal = authenticate(token)
    except AuthenticationError as e:
        logger.warning("relay.ws_auth_failed", kind=type(e).__name__, reason=e.reason)
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE, reason=e.reason)
        return

    # ── Connection accepted ─────────────────────────────────
    relay = websocket.app.state.relay
    await websocket.accept()

    connection = Connection(owner=principal.id, outbox_size=settings.outbox_size)
    handler = ConnectionHandler(
        connection,
        principal,
        hub=relay.hub,
        registry=relay.registry,
        platform=relay.platform,
    )
    reason = "client disconnect"

    async def writer():
        """Forward outbox frames to the WebSocket client."""
        while True:
            envelope = await connection.next_frame()
            await websocket.send_text(envelope.to_json())

    async def reader():
        """Parse client frames and route them to the handler."""
        nonlocal reason
        try:
            while True:
                frame = _parse_frame(await websocket.receive_text())
                if frame is None:
                    notice = ErrorNotice(
                        code="BAD_FRAME", message="Malformed frame", severity="LOW"
                    )
                    connection.emit(ev.ERROR, notice.model_dump())
                    continue
                if frame["event"] == ev.PING:
                    connection.emit(ev.PONG)
                    continue
                handler.spawn(
                    frame["event"],
                    frame.get("data"),
                    _ack_callback(connection, frame.get("ack")),
                )
        except WebSocketDisconnect as e:
            reason = f"client disconnect ({e.code})"

    writer_task = asyncio.create_task(writer())
    reader_task = asyncio.create_task(reader())

    try:
        await handler.activate()
        done, _ = await asyncio.wait(
            [writer_task, reader_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                reason = f"transport error: {task.exception()!r}"
    finally:
        for task in (writer_task, reader_task):
            task.cancel()
        await handler.disconnect(reason)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
