"""Prometheus text rendering of workflow statistics."""

from __future__ import annotations

from typing import Dict, List

from .contracts import WorkflowStats


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.3f}"


def render_metrics(
    stats: Dict[str, WorkflowStats],
    workflows_registered: int,
    uptime_seconds: float,
) -> str:
    """Render run counters and gauges in the Prometheus exposition format."""
    lines: List[str] = [
        "# HELP workflow_runs_total Total number of workflow runs",
        "# TYPE workflow_runs_total counter",
    ]
    for workflow_id, stat in stats.items():
        lines.append(
            f'workflow_runs_total{{workflow="{workflow_id}",status="success"}} {stat.successful_runs}'
        )
        lines.append(
            f'workflow_runs_total{{workflow="{workflow_id}",status="failed"}} {stat.failed_runs}'
        )

    lines += [
        "",
        "# HELP workflow_duration_ms_avg Average workflow execution duration in milliseconds",
        "# TYPE workflow_duration_ms_avg gauge",
    ]
    for workflow_id, stat in stats.items():
        lines.append(
            f'workflow_duration_ms_avg{{workflow="{workflow_id}"}} {_fmt(stat.average_duration_ms)}'
        )

    lines += [
        "",
        "# HELP workflow_orchestrator_uptime_seconds Uptime of the workflow orchestrator",
        "# TYPE workflow_orchestrator_uptime_seconds gauge",
        f"workflow_orchestrator_uptime_seconds {round(uptime_seconds)}",
        "",
        "# HELP workflows_registered_total Total number of registered workflows",
        "# TYPE workflows_registered_total gauge",
        f"workflows_registered_total {workflows_registered}",
    ]
    return "\n".join(lines) + "\n"
