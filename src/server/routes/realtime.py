"""WebSocket endpoint feeding task change notifications to dashboards."""

from __future__ import annotations

import json
import logging

from fastapi import Depends, FastAPI, WebSocket, WebSocketDisconnect

from src.sync.broadcaster import WebSocketConnection
from src.sync.messages import PING, connected_message, pong_message

from ..context import AppContext
from ..dependencies import get_ws_context

logger = logging.getLogger(__name__)


def register_realtime_routes(app: FastAPI) -> None:
    """Register the /ws endpoint."""

    @app.websocket("/ws")
    async def realtime(websocket: WebSocket, context: AppContext = Depends(get_ws_context)) -> None:
        await websocket.accept()
        connection = WebSocketConnection(websocket)
        broadcaster = context.broadcaster
        broadcaster.register(connection)
        try:
            await connection.send_json(connected_message())
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                # Any inbound frame proves the client is alive.
                broadcaster.mark_alive(connection)
                raw = frame.get("text")
                if raw is None:
                    raw = frame.get("bytes") or b""
                try:
                    message = json.loads(raw)
                except ValueError:
                    logger.warning("Ignoring non-JSON WebSocket frame")
                    continue
                if isinstance(message, dict) and message.get("type") == PING:
                    await connection.send_json(pong_message())
        except WebSocketDisconnect:
            logger.debug("WebSocket client went away")
        finally:
            broadcaster.unregister(connection)
