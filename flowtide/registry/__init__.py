"""Workflow registry: immutable definitions looked up by id."""

from __future__ import annotations

from .loader import load_workflow_definitions, register_builtin_workflows
from .registry import WorkflowRegistry

__all__ = [
    "WorkflowRegistry",
    "load_workflow_definitions",
    "register_builtin_workflows",
]
