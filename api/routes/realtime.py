"""
api/routes/realtime.py -- WebSocket endpoint feeding the fanout hub.

Route:
  WS /ws[?token=<jwt>]

Handshake:
  - A browser Origin header must be in CORS_ORIGINS; connections without an
    Origin header (native clients, tests) are accepted.
  - The token is optional. Without one the socket is anonymous and, under
    the broadcast policy, still receives every event. A token that is present
    but invalid or expired is refused (close code 1008), never downgraded to
    anonymous.

After the handshake each text frame is decoded as JSON and handed to
ConnectionHub.dispatch(). Binary frames and text that is not JSON are logged
and skipped.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from auth.dependencies import bearer_token, try_get_user_id
from core.config import get_settings
from realtime.fanout import ConnectionHub

logger = logging.getLogger("metricboard.realtime")

router = APIRouter()


def _origin_allowed(origin: str | None) -> bool:
    if not origin:
        return True
    return origin.rstrip("/") in get_settings().cors_origin_list


@router.websocket("/ws")
async def events(websocket: WebSocket, token: str | None = None) -> None:
    """Register the socket with the hub and relay client frames until it closes."""
    if not _origin_allowed(websocket.headers.get("origin")):
        logger.warning("Refused WebSocket from origin %s", websocket.headers.get("origin"))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    raw_token = token or bearer_token(websocket.headers.get("authorization"))
    user_id = try_get_user_id(raw_token)
    if raw_token and user_id is None:
        logger.info("Refused WebSocket with invalid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    hub: ConnectionHub = websocket.app.state.hub
    subscriber = await hub.connect(websocket, user_id)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
            text = message.get("text")
            if text is None:
                logger.warning("Ignored binary frame from client (user=%s)", user_id or "anonymous")
                continue
            try:
                frame = json.loads(text)
            except json.JSONDecodeError:
                logger.warning("Ignored non-JSON frame from client (user=%s)", user_id or "anonymous")
                continue
            await hub.dispatch(subscriber, frame)
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(subscriber)
