"""Binds event bus topics to workflow triggers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List

from .contracts import WorkflowEvent
from .events import BaseEventBus, Subscription
from .exceptions import WorkflowNotFound

if TYPE_CHECKING:
    from .contracts import WorkflowRun
    from .registry import WorkflowRegistry

logger = logging.getLogger(__name__)

TriggerFn = Callable[[str, Dict[str, Any]], Awaitable["WorkflowRun"]]


class EventTriggerBinder:
    """Subscribes to each workflow's ``trigger_events`` topics.

    One workflow may listen on several topics and one topic may start several
    workflows; every (workflow, topic) pair gets its own subscription.
    """

    def __init__(
        self, event_bus: BaseEventBus, registry: "WorkflowRegistry", trigger: TriggerFn
    ) -> None:
        self._event_bus = event_bus
        self._registry = registry
        self._trigger = trigger
        self._subscriptions: List[Subscription] = []

    @property
    def subscriptions(self) -> List[Subscription]:
        return list(self._subscriptions)

    @property
    def bound(self) -> bool:
        return bool(self._subscriptions)

    async def bind(self) -> int:
        """Subscribe every event-triggered workflow; returns subscriptions made."""
        if self._subscriptions:
            logger.warning("Event triggers already bound")
            return 0

        for workflow_id in self._registry.list_registered_workflow_ids():
            definition = self._registry.get(workflow_id)
            if definition is None:
                continue
            for topic in definition.trigger_events:
                subscription = await self._event_bus.subscribe(
                    topic, self._make_callback(workflow_id)
                )
                self._subscriptions.append(subscription)
                logger.info(f"Workflow {workflow_id} bound to event {topic}")
        return len(self._subscriptions)

    async def unbind(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            await subscription.cancel()

    def _make_callback(self, workflow_id: str) -> Callable[[WorkflowEvent], Awaitable[None]]:
        async def _on_event(event: WorkflowEvent) -> None:
            logger.info(
                f"Event {event.type} ({event.id}) triggered workflow {workflow_id}"
            )
            try:
                await self._trigger(
                    workflow_id, {"triggerEvent": event.model_dump(mode="json")}
                )
            except WorkflowNotFound:
                logger.warning(
                    f"Event {event.type} targets unregistered workflow {workflow_id}"
                )

        return _on_event
