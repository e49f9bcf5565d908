"""Wiring helpers that build a ready-to-start orchestrator from configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from .config import FlowtideConfig, load_config
from .events import BaseEventBus, get_event_bus
from .handlers import HandlerRegistry
from .orchestrator import WorkflowOrchestrator
from .registry import WorkflowRegistry, register_builtin_workflows

logger = logging.getLogger(__name__)


def create_orchestrator(
    config: Optional[FlowtideConfig] = None,
    workflows_file: Optional[Union[str, Path]] = None,
    builtin: bool = False,
    event_bus: Optional[BaseEventBus] = None,
    handlers: Optional[HandlerRegistry] = None,
    registry: Optional[WorkflowRegistry] = None,
) -> WorkflowOrchestrator:
    """Build an orchestrator with its registry, event bus and handlers.

    Workflows are loaded from ``workflows_file`` (or ``config.workflows_file``)
    and, when ``builtin`` is set, from the bundled operations catalogue.
    """
    config = config or load_config()
    registry = registry if registry is not None else WorkflowRegistry()

    if builtin:
        loaded = register_builtin_workflows(registry)
        logger.info(f"Built-in workflows registered: {len(loaded)}")

    source = workflows_file or config.workflows_file
    if source:
        loaded = registry.load_file(source, replace=True)
        logger.info(f"Loaded {len(loaded)} workflows from {source}")

    return WorkflowOrchestrator(
        event_bus or get_event_bus(config=config),
        registry,
        handlers=handlers,
        config=config.orchestrator,
        scheduler_config=config.scheduler,
    )


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
