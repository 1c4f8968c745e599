import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)
        logger.info("realtime.ws.connected", extra={"connections": len(self._connections)})

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)

    async def broadcast(self, message: dict[str, Any]) -> int:
        delivered = 0
        for ws in list(self._connections):
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception as exc:
                # Dead sockets are dropped; the event is not retried.
                logger.warning(
                    "realtime.ws.send failed",
                    extra={"event": message.get("event"), "error": str(exc)},
                )
                self.disconnect(ws)
        return delivered
