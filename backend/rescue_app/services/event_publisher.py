from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

import redis.asyncio as redis_async

from rescue_app.core.config import Settings
from rescue_app.realtime.websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)


class IncidentEvents:
    NEW = "incident:new"
    UPDATED = "incident:updated"
    STATUS_UPDATED = "incident:status_updated"
    ASSIGNED = "incident:assigned"
    DELETED = "incident:deleted"


def build_envelope(event_name: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "event": event_name,
        "data": payload,
        "ts": datetime.now(UTC).isoformat(),
    }


class EventPublisher(ABC):
    """Best-effort, at-most-once fan-out. Implementations never raise."""

    @abstractmethod
    async def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class NoOpEventPublisher(EventPublisher):
    async def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        logger.warning(
            "event_publisher.noop: event dropped, no publisher configured",
            extra={"event_name": event_name},
        )


class WebSocketEventPublisher(EventPublisher):
    def __init__(self, manager: WebSocketManager) -> None:
        self.manager = manager

    async def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        try:
            delivered = await self.manager.broadcast(build_envelope(event_name, payload))
        except Exception as exc:
            logger.error(
                "event_publisher.ws.publish failed",
                extra={"event_name": event_name, "error": str(exc)},
                exc_info=exc,
            )
            return
        logger.debug("event_publisher.ws.published", extra={"event_name": event_name, "delivered": delivered})


class RedisEventPublisher(EventPublisher):
    def __init__(self, redis_url: str, channel: str, client: Any | None = None) -> None:
        self._redis_url = redis_url
        self.channel = channel
        self._client = client

    async def _get_client(self):
        if self._client is None:
            self._client = redis_async.from_url(self._redis_url, decode_responses=True)
        return self._client

    async def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        envelope = build_envelope(event_name, payload)
        try:
            client = await self._get_client()
            await client.publish(self.channel, json.dumps(envelope, default=str))
        except Exception as exc:
            logger.error(
                "event_publisher.redis.publish failed",
                extra={"event_name": event_name, "channel": self.channel, "error": str(exc)},
                exc_info=exc,
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def build_event_publisher(settings: Settings, manager: WebSocketManager) -> EventPublisher:
    if settings.redis_url:
        logger.info("event_publisher.redis", extra={"channel": settings.realtime_channel})
        return RedisEventPublisher(settings.redis_url, settings.realtime_channel)
    logger.info("event_publisher.in_process")
    return WebSocketEventPublisher(manager)
