from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

import redis.asyncio as redis_async

from rescue_app.realtime.websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)


class RedisEventRelay:
    """Forwards envelopes published on the Redis channel to this worker's sockets."""

    def __init__(self, redis_url: str, channel: str, manager: WebSocketManager, client: Any | None = None) -> None:
        self._redis_url = redis_url
        self.channel = channel
        self.manager = manager
        self._client = client
        self._task: asyncio.Task | None = None

    async def run(self) -> None:
        if self._client is None:
            self._client = redis_async.from_url(self._redis_url, decode_responses=True)
        pubsub = self._client.pubsub()
        await pubsub.subscribe(self.channel)
        try:
            while True:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None:
                    continue
                await self.forward(message.get("data"))
        finally:
            await pubsub.aclose()

    async def forward(self, raw: Any) -> None:
        try:
            envelope = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        except json.JSONDecodeError:
            logger.warning("realtime.relay.bad_payload", extra={"channel": self.channel})
            return
        if not isinstance(envelope, dict):
            logger.warning("realtime.relay.bad_payload", extra={"channel": self.channel})
            return
        await self.manager.broadcast(envelope)

    def start(self) -> None:
        self._task = asyncio.create_task(self.run(), name="redis-event-relay")
        self._task.add_done_callback(self._log_exit)

    def _log_exit(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "realtime.relay.stopped",
                extra={"channel": self.channel, "error": str(exc)},
                exc_info=exc,
            )

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if self._client is not None:
            await self._client.aclose()
            self._client = None
