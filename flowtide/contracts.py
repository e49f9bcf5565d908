"""Core data contracts for the flowtide orchestration engine."""

from __future__ import annotations

import random
import string
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_RUN_ID_ALPHABET = string.digits + string.ascii_lowercase


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_run_id() -> str:
    """Return ``run_<epoch ms>_<9 base36 chars>``.

    Uniqueness is best effort; two runs started in the same millisecond only
    collide if the random suffixes collide as well.
    """
    suffix = "".join(random.choices(_RUN_ID_ALPHABET, k=9))
    return f"run_{int(time.time() * 1000)}_{suffix}"


class _CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, dumps camelCase with ``by_alias``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class RetryConfig(_CamelModel):
    """Retry policy applied uniformly to every step of a workflow."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    attempts: int = Field(default=1, ge=1)
    backoff_ms: int = Field(default=0, ge=0)


class WorkflowStep(_CamelModel):
    """One unit of work within a workflow, dispatched to a named handler."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    id: str
    name: str
    handler: str
    timeout_ms: Optional[int] = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("timeout_ms", "timeoutMs", "timeout"),
        serialization_alias="timeoutMs",
    )


class WorkflowDefinition(_CamelModel):
    """Immutable description of a registered workflow."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    id: str
    name: str
    description: str = ""
    steps: List[WorkflowStep] = Field(default_factory=list)
    schedule: Optional[str] = None
    trigger_events: List[str] = Field(default_factory=list)
    retry_config: Optional[RetryConfig] = None

    @field_validator("schedule")
    @classmethod
    def _blank_schedule_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("trigger_events", mode="before")
    @classmethod
    def _none_trigger_events(cls, value: Any) -> Any:
        return [] if value is None else value


class WorkflowRun(_CamelModel):
    """One execution instance of a workflow."""

    run_id: str = Field(default_factory=generate_run_id)
    workflow_id: str
    status: RunStatus = RunStatus.PENDING
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    current_step: Optional[str] = None
    step_results: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None

    @property
    def duration_ms(self) -> Optional[float]:
        """Wall time between start and completion, if the run has finished."""
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds() * 1000

    def snapshot(self) -> "WorkflowRun":
        """Return a deep copy that later execution will not mutate."""
        return self.model_copy(deep=True)


class WorkflowStats(_CamelModel):
    """Aggregate statistics for all runs of a single workflow."""

    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    average_duration_ms: float = 0.0
    last_run_at: Optional[datetime] = None
    last_status: Optional[RunStatus] = None

    def record(self, run: WorkflowRun) -> None:
        """Fold a finished run into the counters and running average."""
        self.total_runs += 1
        if run.status == RunStatus.COMPLETED:
            self.successful_runs += 1
        elif run.status == RunStatus.FAILED:
            self.failed_runs += 1

        duration = run.duration_ms
        if duration is not None:
            self.average_duration_ms = (
                self.average_duration_ms * (self.total_runs - 1) + duration
            ) / self.total_runs

        self.last_run_at = run.completed_at or run.started_at
        self.last_status = run.status


class WorkflowSummary(_CamelModel):
    id: str
    name: str
    schedule: Optional[str] = None
    steps_count: int = 0


class WorkflowStatus(_CamelModel):
    """Status view returned by ``WorkflowOrchestrator.get_workflow_status``."""

    workflow: WorkflowSummary
    recent_runs: List[WorkflowRun] = Field(default_factory=list)
    is_scheduled: bool = False


class ScheduleEntry(_CamelModel):
    workflow_id: str
    schedule: str


class WorkflowEvent(BaseModel):
    """Envelope delivered to event bus subscribers."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)
    source: str = "flowtide"

    def to_json(self) -> str:
        """Serialize event to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "WorkflowEvent":
        """Deserialize event from JSON."""
        return cls.model_validate_json(data)


__all__ = [
    "RunStatus",
    "RetryConfig",
    "WorkflowStep",
    "WorkflowDefinition",
    "WorkflowRun",
    "WorkflowStats",
    "WorkflowSummary",
    "WorkflowStatus",
    "ScheduleEntry",
    "WorkflowEvent",
    "generate_run_id",
    "utc_now",
]
