"""In-memory workflow registry."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..contracts import ScheduleEntry, WorkflowDefinition, WorkflowSummary
from ..exceptions import DuplicateWorkflowError

logger = logging.getLogger(__name__)


class WorkflowRegistry:
    """Holds registered workflow definitions keyed by id.

    Definitions are frozen pydantic models, so callers can hand out the
    stored instances without copying them.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, WorkflowDefinition] = {}

    def register(
        self,
        workflow: Union[WorkflowDefinition, Dict[str, Any]],
        replace: bool = False,
    ) -> WorkflowDefinition:
        """Add ``workflow`` to the registry.

        Raises:
            DuplicateWorkflowError: If the id is taken and ``replace`` is False.
        """
        if not isinstance(workflow, WorkflowDefinition):
            workflow = WorkflowDefinition.model_validate(workflow)
        if workflow.id in self._workflows and not replace:
            raise DuplicateWorkflowError(workflow.id)
        self._workflows[workflow.id] = workflow
        logger.info(f"Workflow registered: {workflow.id} ({workflow.name})")
        return workflow

    def get(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        return self._workflows.get(workflow_id)

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._workflows

    def __len__(self) -> int:
        return len(self._workflows)

    def list_registered_workflow_ids(self) -> List[str]:
        return list(self._workflows)

    def list_registered_workflows(self) -> List[WorkflowSummary]:
        return [
            WorkflowSummary(
                id=wf.id,
                name=wf.name,
                schedule=wf.schedule,
                steps_count=len(wf.steps),
            )
            for wf in self._workflows.values()
        ]

    def list_schedules(self) -> List[ScheduleEntry]:
        """Return ``(workflow_id, schedule)`` pairs for time-triggered workflows."""
        return [
            ScheduleEntry(workflow_id=wf.id, schedule=wf.schedule)
            for wf in self._workflows.values()
            if wf.schedule
        ]

    def list_trigger_events(self) -> Dict[str, List[str]]:
        """Map each trigger topic to the workflow ids it starts."""
        mapping: Dict[str, List[str]] = {}
        for wf in self._workflows.values():
            for topic in wf.trigger_events:
                mapping.setdefault(topic, []).append(wf.id)
        return mapping

    def load_file(self, path: Union[str, Path], replace: bool = False) -> List[WorkflowDefinition]:
        """Register every workflow declared in the YAML file at ``path``."""
        from .loader import load_workflow_definitions

        definitions = load_workflow_definitions(Path(path))
        return [self.register(wf, replace=replace) for wf in definitions]

    def load_workflows(self, data: Any, replace: bool = False) -> List[WorkflowDefinition]:
        """Register workflows from an already parsed document.

        ``data`` is either a mapping with a ``workflows`` list or the list
        itself, as produced by ``yaml.safe_load``.
        """
        from .loader import parse_workflow_definitions

        definitions = parse_workflow_definitions(data)
        return [self.register(wf, replace=replace) for wf in definitions]
