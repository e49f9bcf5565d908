"""Shared defaults for flowtide."""

DEFAULT_STEP_TIMEOUT_MS = 30_000
DEFAULT_HISTORY_LIMIT = 1000
DEFAULT_HISTORY_QUERY_LIMIT = 50
RECENT_RUNS_LIMIT = 10
PLACEHOLDER_HANDLER_DELAY_S = 0.05

# Lifecycle topics published on the event bus
WORKFLOW_STARTED = "workflow.started"
STEP_STARTED = "workflow.step.started"
STEP_COMPLETED = "workflow.step.completed"
STEP_FAILED = "workflow.step.failed"
WORKFLOW_COMPLETED = "workflow.completed"
WORKFLOW_FAILED = "workflow.failed"
