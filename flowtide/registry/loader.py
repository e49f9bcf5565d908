"""YAML loading of workflow definitions."""

from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Union

import yaml

from ..contracts import WorkflowDefinition

if TYPE_CHECKING:
    from .registry import WorkflowRegistry

BUILTIN_WORKFLOWS = "builtin.yaml"


def parse_workflow_definitions(data: Any) -> List[WorkflowDefinition]:
    """Validate a parsed YAML document with a top-level ``workflows`` list."""
    if not data:
        return []
    if isinstance(data, dict):
        items = data.get("workflows") or []
    elif isinstance(data, list):
        items = data
    else:
        raise ValueError("Workflow document must be a mapping or a list")
    return [WorkflowDefinition.model_validate(item) for item in items]


def load_workflow_definitions(source: Union[str, Path]) -> List[WorkflowDefinition]:
    """Load definitions from a YAML file path or a YAML string."""
    if isinstance(source, Path):
        text = source.read_text()
    else:
        text = source
    return parse_workflow_definitions(yaml.safe_load(text))


def register_builtin_workflows(registry: "WorkflowRegistry") -> List[WorkflowDefinition]:
    """Register the bundled operations workflows into ``registry``."""
    text = (
        resources.files("flowtide.workflows")
        .joinpath(BUILTIN_WORKFLOWS)
        .read_text()
    )
    return [registry.register(wf, replace=True) for wf in load_workflow_definitions(text)]
