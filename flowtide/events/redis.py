"""Redis pub/sub event bus for cross-process delivery."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from ..contracts import WorkflowEvent
from .base import WILDCARD_TOPIC, BaseEventBus, EventCallback, Subscription

logger = logging.getLogger(__name__)


class RedisEventBus(BaseEventBus):
    """Publishes events on Redis channels and keeps a capped recent-events list."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        url: Optional[str] = None,
        channel_prefix: str = "flowtide:",
        history_size: int = 100,
    ) -> None:
        if redis is None:
            raise ImportError("redis package is required for RedisEventBus")

        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.url = url
        self.channel_prefix = channel_prefix
        self.history_size = history_size
        self._redis: Optional[Any] = None
        self._listeners: Dict[Subscription, asyncio.Task] = {}

    @property
    def history_key(self) -> str:
        return f"{self.channel_prefix}events"

    def _channel(self, topic: str) -> str:
        return f"{self.channel_prefix}{topic}"

    async def connect(self) -> None:
        """Connect to Redis."""
        if self.url:
            self._redis = redis.from_url(self.url, decode_responses=True)
        else:
            self._redis = redis.Redis(
                host=self.host,
                port=self.port,
                db=self.db,
                password=self.password,
                decode_responses=True,
            )
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Cancel listeners and disconnect from Redis."""
        for subscription in list(self._listeners):
            await subscription.cancel()
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def publish(self, topic: str, payload: Dict[str, Any]) -> WorkflowEvent:
        if not self._redis:
            await self.connect()

        event = WorkflowEvent(type=topic, payload=dict(payload or {}))
        message = event.to_json()
        await self._redis.publish(self._channel(topic), message)
        if self.history_size:
            await self._redis.lpush(self.history_key, message)
            await self._redis.ltrim(self.history_key, 0, self.history_size - 1)
        return event

    async def subscribe(self, topic: str, callback: EventCallback) -> Subscription:
        if not self._redis:
            await self.connect()

        pubsub = self._redis.pubsub()
        if topic == WILDCARD_TOPIC:
            await pubsub.psubscribe(self._channel("*"))
        else:
            await pubsub.subscribe(self._channel(topic))

        subscription = Subscription(topic, callback, on_cancel=self._stop_listener)
        self._listeners[subscription] = asyncio.create_task(
            self._listen(pubsub, subscription)
        )
        return subscription

    async def _listen(self, pubsub: Any, subscription: Subscription) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") not in ("message", "pmessage"):
                    continue
                try:
                    event = WorkflowEvent.from_json(message["data"])
                except ValueError as e:
                    logger.warning(f"Failed to parse event on {subscription.topic}: {e}")
                    continue
                await subscription.deliver(event)
        finally:
            await pubsub.aclose()

    async def _stop_listener(self, subscription: Subscription) -> None:
        task = self._listeners.pop(subscription, None)
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def get_recent_events(self, limit: int = 50) -> List[WorkflowEvent]:
        if limit <= 0:
            return []
        if not self._redis:
            await self.connect()
        raw = await self._redis.lrange(self.history_key, 0, limit - 1)
        return [WorkflowEvent.from_json(item) for item in reversed(raw)]
