"""Base event bus interface for flowtide lifecycle and trigger events."""

from __future__ import annotations

import abc
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..contracts import WorkflowEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[WorkflowEvent], Union[Awaitable[None], None]]

WILDCARD_TOPIC = "*"


class Subscription:
    """Handle returned by ``subscribe``; ``cancel`` stops delivery."""

    def __init__(
        self,
        topic: str,
        callback: EventCallback,
        on_cancel: Optional[Callable[["Subscription"], Awaitable[None]]] = None,
    ) -> None:
        self.topic = topic
        self.callback = callback
        self.active = True
        self._on_cancel = on_cancel

    async def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._on_cancel is not None:
            await self._on_cancel(self)

    async def deliver(self, event: WorkflowEvent) -> None:
        """Invoke the callback, logging instead of raising on failure."""
        if not self.active:
            return
        try:
            result = self.callback(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(
                f"Subscriber for topic {self.topic} failed on event {event.type} ({event.id})"
            )


class BaseEventBus(metaclass=abc.ABCMeta):
    """Abstract topic-based publish/subscribe bus."""

    async def connect(self) -> None:
        """Open connection to broker (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to broker (no-op by default)."""
        pass

    async def drain(self) -> None:
        """Wait for in-flight local deliveries (no-op by default)."""
        pass

    @abc.abstractmethod
    async def publish(self, topic: str, payload: Dict[str, Any]) -> WorkflowEvent:
        """Publish ``payload`` on ``topic`` and return the delivered envelope."""
        raise NotImplementedError

    @abc.abstractmethod
    async def subscribe(self, topic: str, callback: EventCallback) -> Subscription:
        """Register ``callback`` for every event published on ``topic``.

        ``"*"`` subscribes to every topic.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def get_recent_events(self, limit: int = 50) -> List[WorkflowEvent]:
        """Return up to ``limit`` most recently published events, newest last."""
        raise NotImplementedError
