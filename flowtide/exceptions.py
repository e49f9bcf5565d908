"""Exception hierarchy for flowtide."""

from __future__ import annotations

from typing import Optional


class FlowtideError(Exception):
    """Base class for all flowtide errors."""


class WorkflowNotFound(FlowtideError, LookupError):
    """Raised when a workflow id is not present in the registry."""

    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class RunNotFound(FlowtideError, LookupError):
    """Raised when a run id is unknown to the orchestrator."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Run not found: {run_id}")


class DuplicateWorkflowError(FlowtideError):
    """Raised when registering a workflow id that already exists."""

    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow already registered: {workflow_id}")


class InvalidCronExpression(FlowtideError, ValueError):
    """Raised when a cron schedule cannot be parsed."""

    def __init__(self, expression: str, reason: Optional[str] = None) -> None:
        self.expression = expression
        message = f"Invalid cron expression: {expression!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class StepExecutionError(FlowtideError):
    """A step handler failed after all configured attempts."""

    def __init__(
        self,
        message: str,
        step_id: Optional[str] = None,
        attempts: int = 1,
    ) -> None:
        self.step_id = step_id
        self.attempts = attempts
        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)


class HandlerTimeout(StepExecutionError):
    """A handler did not settle before its deadline."""

    def __init__(self, handler_name: str, timeout_ms: int, step_id: Optional[str] = None) -> None:
        self.handler_name = handler_name
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Handler {handler_name} timed out after {timeout_ms}ms", step_id=step_id
        )


class HandlerNotRegistered(StepExecutionError):
    """No handler is registered under the requested name."""

    def __init__(self, handler_name: str, step_id: Optional[str] = None) -> None:
        self.handler_name = handler_name
        super().__init__(f"Handler not registered: {handler_name}", step_id=step_id)


__all__ = [
    "FlowtideError",
    "WorkflowNotFound",
    "RunNotFound",
    "DuplicateWorkflowError",
    "InvalidCronExpression",
    "StepExecutionError",
    "HandlerTimeout",
    "HandlerNotRegistered",
]
