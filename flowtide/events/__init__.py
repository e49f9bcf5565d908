"""Event bus factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import FlowtideConfig, load_config
from .base import WILDCARD_TOPIC, BaseEventBus, EventCallback, Subscription
from .inmemory import InMemoryEventBus


def get_event_bus(
    backend: Optional[str] = None, config: Optional[FlowtideConfig] = None
) -> BaseEventBus:
    """Factory function to get the configured event bus."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("FLOWTIDE_EVENT_BUS")
        or config.event_bus.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryEventBus(history_size=config.event_bus.history_size)
    elif backend == "redis":
        from .redis import RedisEventBus

        redis_conf = config.event_bus.redis
        return RedisEventBus(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
            url=redis_conf.url,
            channel_prefix=redis_conf.channel_prefix,
            history_size=config.event_bus.history_size,
        )
    else:
        raise ValueError(f"Unsupported event bus backend: {backend}")


__all__ = [
    "BaseEventBus",
    "EventCallback",
    "InMemoryEventBus",
    "Subscription",
    "WILDCARD_TOPIC",
    "get_event_bus",
]
