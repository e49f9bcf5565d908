"""In-process event bus."""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Set

from ..contracts import WorkflowEvent
from .base import WILDCARD_TOPIC, BaseEventBus, EventCallback, Subscription


class InMemoryEventBus(BaseEventBus):
    """Delivers events to subscribers of the same process.

    ``publish`` schedules one delivery task per subscriber and returns without
    waiting for them. Deliveries start in publish order; ``drain`` waits until
    every scheduled delivery has finished. A failing subscriber is logged and
    does not affect the others.
    """

    def __init__(self, history_size: int = 100) -> None:
        self._subscriptions: Dict[str, List[Subscription]] = defaultdict(list)
        self._recent: Deque[WorkflowEvent] = deque(maxlen=history_size or None)
        self._history_size = history_size
        self._pending: Set[asyncio.Task] = set()
        self._lock = asyncio.Lock()

    async def publish(self, topic: str, payload: Dict[str, Any]) -> WorkflowEvent:
        """Publish event to every subscriber of ``topic``."""
        event = WorkflowEvent(type=topic, payload=dict(payload or {}))
        async with self._lock:
            if self._history_size:
                self._recent.append(event)
            targets = list(self._subscriptions.get(topic, ())) + list(
                self._subscriptions.get(WILDCARD_TOPIC, ())
            )

        for subscription in targets:
            task = asyncio.create_task(subscription.deliver(event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return event

    async def drain(self) -> None:
        """Wait for scheduled deliveries, including ones they publish in turn."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def disconnect(self) -> None:
        await self.drain()

    async def subscribe(self, topic: str, callback: EventCallback) -> Subscription:
        subscription = Subscription(topic, callback, on_cancel=self._remove)
        async with self._lock:
            self._subscriptions[topic].append(subscription)
        return subscription

    async def _remove(self, subscription: Subscription) -> None:
        async with self._lock:
            subs = self._subscriptions.get(subscription.topic, [])
            if subscription in subs:
                subs.remove(subscription)

    async def get_recent_events(self, limit: int = 50) -> List[WorkflowEvent]:
        async with self._lock:
            events = list(self._recent)
        return events[-limit:] if limit > 0 else []

    @property
    def pending_deliveries(self) -> int:
        return len(self._pending)

    def subscriber_count(self, topic: str) -> int:
        """Number of active subscriptions on ``topic``."""
        return len(self._subscriptions.get(topic, ()))
