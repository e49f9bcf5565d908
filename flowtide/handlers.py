"""Named step handlers supplied by the host application."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .constants import PLACEHOLDER_HANDLER_DELAY_S

logger = logging.getLogger(__name__)

StepHandler = Callable[[Dict[str, Any]], Union[Awaitable[Any], Any]]


class HandlerRegistry:
    """Map of handler name to callable.

    Handlers may be registered before or after the workflows that reference
    them; lookups happen when a step runs.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, StepHandler] = {}

    def register(self, name: str, handler: StepHandler) -> None:
        if not callable(handler):
            raise TypeError(f"Handler {name} must be callable")
        if name in self._handlers:
            logger.warning(f"Replacing handler already registered as {name}")
        self._handlers[name] = handler
        logger.info(f"Handler registered: {name}")

    def handler(self, name: Optional[str] = None) -> Callable[[StepHandler], StepHandler]:
        """Decorator form of ``register``; defaults to the function name."""

        def decorator(fn: StepHandler) -> StepHandler:
            self.register(name or fn.__name__, fn)
            return fn

        return decorator

    def unregister(self, name: str) -> None:
        self._handlers.pop(name, None)

    def get(self, name: str) -> Optional[StepHandler]:
        return self._handlers.get(name)

    def names(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


def make_placeholder_handler(handler_name: str) -> StepHandler:
    """Return a stand-in for a handler that has not been registered yet.

    It reports success with a synthetic payload so workflows can be wired
    and scheduled before their real implementations exist.
    """

    async def _placeholder(step_input: Dict[str, Any]) -> Dict[str, Any]:
        await asyncio.sleep(PLACEHOLDER_HANDLER_DELAY_S)
        return {
            "handler": handler_name,
            "executedAt": datetime.now(timezone.utc).isoformat(),
            "success": True,
            "processed": True,
            "data": {
                "processed": True,
                "note": "Default handler - register custom implementation",
            },
        }

    return _placeholder
