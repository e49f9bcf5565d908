"""flowtide: cron and event triggered workflow orchestration."""

from .config import FlowtideConfig, load_config
from .contracts import (
    RetryConfig,
    RunStatus,
    WorkflowDefinition,
    WorkflowEvent,
    WorkflowRun,
    WorkflowStats,
    WorkflowStatus,
    WorkflowStep,
)
from .events import BaseEventBus, InMemoryEventBus, get_event_bus
from .exceptions import (
    FlowtideError,
    HandlerNotRegistered,
    HandlerTimeout,
    InvalidCronExpression,
    RunNotFound,
    StepExecutionError,
    WorkflowNotFound,
)
from .handlers import HandlerRegistry
from .orchestrator import WorkflowOrchestrator
from .registry import WorkflowRegistry
from .runtime import create_orchestrator
from .scheduler import WorkflowScheduler
from .triggers import EventTriggerBinder

__version__ = "0.1.0"
__all__ = [
    "BaseEventBus",
    "EventTriggerBinder",
    "FlowtideConfig",
    "FlowtideError",
    "HandlerNotRegistered",
    "HandlerRegistry",
    "HandlerTimeout",
    "InMemoryEventBus",
    "InvalidCronExpression",
    "RetryConfig",
    "RunNotFound",
    "RunStatus",
    "StepExecutionError",
    "WorkflowDefinition",
    "WorkflowEvent",
    "WorkflowNotFound",
    "WorkflowOrchestrator",
    "WorkflowRegistry",
    "WorkflowRun",
    "WorkflowScheduler",
    "WorkflowStats",
    "WorkflowStatus",
    "WorkflowStep",
    "create_orchestrator",
    "get_event_bus",
    "load_config",
]
