import json
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from rescue_app.api.dependencies import decode_access_token
from rescue_app.core.errors import AppError
from rescue_app.realtime.websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["realtime"])

WS_UNAUTHORIZED = 4401


def _is_ping(data: str) -> bool:
    if data.strip().lower() == "ping":
        return True
    try:
        obj = json.loads(data)
    except json.JSONDecodeError:
        return False
    return isinstance(obj, dict) and obj.get("type") == "ping"


@router.websocket("/ws")
async def realtime_ws(websocket: WebSocket) -> None:
    """Incident event stream.

    Auth: `token` query parameter (JWT). Every incident event is pushed as
    ``{"event", "data", "ts"}``; a client ``ping`` is answered with ``pong``.
    """
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=WS_UNAUTHORIZED)
        return
    try:
        current = decode_access_token(token)
    except AppError:
        await websocket.close(code=WS_UNAUTHORIZED)
        return

    manager: WebSocketManager = websocket.app.state.ws_manager
    await manager.connect(websocket)
    await websocket.send_json(
        {"type": "connected", "user_id": current.user_id, "ts": datetime.now(UTC).isoformat()}
    )
    try:
        while True:
            data = await websocket.receive_text()
            if _is_ping(data):
                await websocket.send_json({"type": "pong", "ts": datetime.now(UTC).isoformat()})
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket)
        logger.info("realtime.ws.disconnected", extra={"user_id": current.user_id})
