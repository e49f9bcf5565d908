"""Tests for run, stats and definition models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from flowtide.contracts import (
    RetryConfig,
    RunStatus,
    WorkflowDefinition,
    WorkflowRun,
    WorkflowStats,
    generate_run_id,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _finished_run(status: RunStatus, duration_ms: int) -> WorkflowRun:
    return WorkflowRun(
        workflow_id="W1",
        status=status,
        started_at=T0,
        completed_at=T0 + timedelta(milliseconds=duration_ms),
    )


def test_run_id_format_and_uniqueness():
    ids = {generate_run_id() for _ in range(200)}
    assert len(ids) == 200
    sample = next(iter(ids))
    prefix, millis, suffix = sample.split("_")
    assert prefix == "run"
    assert millis.isdigit()
    assert len(suffix) == 9


def test_new_run_defaults_to_pending():
    run = WorkflowRun(workflow_id="W1")
    assert run.status == RunStatus.PENDING
    assert run.step_results == {}
    assert run.completed_at is None
    assert run.duration_ms is None


def test_average_duration_matches_batch_mean_for_two_runs():
    stats = WorkflowStats()
    stats.record(_finished_run(RunStatus.COMPLETED, 100))
    stats.record(_finished_run(RunStatus.COMPLETED, 300))
    assert stats.average_duration_ms == pytest.approx(200)


def test_stats_counters_stay_consistent():
    stats = WorkflowStats()
    outcomes = [RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.FAILED]
    for status in outcomes:
        stats.record(_finished_run(status, 50))
        assert stats.total_runs == stats.successful_runs + stats.failed_runs

    assert stats.total_runs == 5
    assert stats.successful_runs == 2
    assert stats.failed_runs == 3
    assert stats.last_status == RunStatus.FAILED
    assert stats.last_run_at == T0 + timedelta(milliseconds=50)


def test_definition_accepts_camel_case_and_is_frozen():
    wf = WorkflowDefinition.model_validate(
        {
            "id": "W1",
            "name": "Workflow 1",
            "triggerEvents": ["a.b"],
            "retryConfig": {"attempts": 3, "backoffMs": 100},
            "steps": [{"id": "A", "name": "Step A", "handler": "h", "timeoutMs": 10}],
        }
    )
    assert wf.trigger_events == ["a.b"]
    assert wf.retry_config == RetryConfig(attempts=3, backoff_ms=100)
    assert wf.steps[0].timeout_ms == 10

    with pytest.raises(ValidationError):
        wf.name = "changed"


def test_blank_schedule_means_not_scheduled():
    wf = WorkflowDefinition(id="W1", name="W", schedule="  ", trigger_events=None)
    assert wf.schedule is None
    assert wf.trigger_events == []


def test_retry_config_rejects_zero_attempts():
    with pytest.raises(ValidationError):
        RetryConfig(attempts=0)


def test_run_dumps_wire_names():
    run = _finished_run(RunStatus.COMPLETED, 10)
    data = run.model_dump(mode="json", by_alias=True)
    assert data["runId"] == run.run_id
    assert data["workflowId"] == "W1"
    assert data["status"] == "completed"
    assert "stepResults" in data
