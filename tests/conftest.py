"""Shared fixtures for flowtide tests."""

from typing import List

import pytest

from flowtide.contracts import WorkflowEvent
from flowtide.events import InMemoryEventBus
from flowtide.handlers import HandlerRegistry
from flowtide.orchestrator import WorkflowOrchestrator
from flowtide.registry import WorkflowRegistry


class EventRecorder:
    """Collects every event delivered to it."""

    def __init__(self) -> None:
        self.events: List[WorkflowEvent] = []

    async def __call__(self, event: WorkflowEvent) -> None:
        self.events.append(event)

    def topics(self, run_id: str = None) -> List[str]:
        return [
            e.type
            for e in self.events
            if run_id is None or e.payload.get("runId") == run_id
        ]

    def of_type(self, topic: str) -> List[WorkflowEvent]:
        return [e for e in self.events if e.type == topic]


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def registry() -> WorkflowRegistry:
    return WorkflowRegistry()


@pytest.fixture
def handlers() -> HandlerRegistry:
    return HandlerRegistry()


@pytest.fixture
def orchestrator(event_bus, registry, handlers) -> WorkflowOrchestrator:
    return WorkflowOrchestrator(event_bus, registry, handlers)


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    """Keep a developer's flowtide.yaml or env out of the tests."""
    monkeypatch.setenv("FLOWTIDE_CONFIG", str(tmp_path / "missing-flowtide.yaml"))
    monkeypatch.delenv("FLOWTIDE_EVENT_BUS", raising=False)
    monkeypatch.delenv("FLOWTIDE_REDIS_URL", raising=False)
    monkeypatch.delenv("REDIS_URL", raising=False)
