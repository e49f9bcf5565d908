"""Workflow orchestration engine."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Deque, Dict, List, Mapping, Optional

from .config import OrchestratorConfig, SchedulerConfig
from .constants import (
    DEFAULT_HISTORY_QUERY_LIMIT,
    RECENT_RUNS_LIMIT,
    STEP_COMPLETED,
    STEP_FAILED,
    STEP_STARTED,
    WORKFLOW_COMPLETED,
    WORKFLOW_FAILED,
    WORKFLOW_STARTED,
)
from .contracts import (
    RunStatus,
    WorkflowDefinition,
    WorkflowRun,
    WorkflowStats,
    WorkflowStatus,
    WorkflowSummary,
    utc_now,
)
from .events import BaseEventBus
from .exceptions import RunNotFound, StepExecutionError, WorkflowNotFound
from .execute import StepExecutor
from .handlers import HandlerRegistry, StepHandler
from .metrics import render_metrics
from .registry import WorkflowRegistry
from .scheduler import WorkflowScheduler
from .triggers import EventTriggerBinder

logger = logging.getLogger(__name__)


class WorkflowOrchestrator:
    """Triggers workflows and runs their steps in the background.

    ``trigger`` returns as soon as the run is created; the outcome of a run is
    only observable through lifecycle events on the bus or by polling
    ``get_run``, ``get_execution_history`` and ``get_workflow_stats``.
    """

    def __init__(
        self,
        event_bus: BaseEventBus,
        registry: WorkflowRegistry,
        handlers: Optional[HandlerRegistry] = None,
        config: Optional[OrchestratorConfig] = None,
        scheduler_config: Optional[SchedulerConfig] = None,
        clock=None,
    ) -> None:
        self._event_bus = event_bus
        self._registry = registry
        self._handlers = handlers if handlers is not None else HandlerRegistry()
        self._config = config or OrchestratorConfig()
        self._executor = StepExecutor(
            self._handlers,
            default_timeout_ms=self._config.default_step_timeout_ms,
            allow_placeholder_handlers=self._config.allow_placeholder_handlers,
        )

        self._active_runs: Dict[str, WorkflowRun] = {}
        self._execution_history: Deque[WorkflowRun] = deque(
            maxlen=self._config.history_limit
        )
        self._workflow_stats: Dict[str, WorkflowStats] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._slots: Dict[str, asyncio.Semaphore] = {}
        self._lock = asyncio.Lock()
        self._started_at = time.monotonic()

        self.scheduler = WorkflowScheduler(
            registry, self.trigger, config=scheduler_config, clock=clock
        )
        self.trigger_binder = EventTriggerBinder(event_bus, registry, self.trigger)

    @property
    def event_bus(self) -> BaseEventBus:
        return self._event_bus

    @property
    def registry(self) -> WorkflowRegistry:
        return self._registry

    @property
    def handlers(self) -> HandlerRegistry:
        return self._handlers

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def register_handler(self, name: str, handler: StepHandler) -> None:
        self._handlers.register(name, handler)

    async def setup_event_handlers(self) -> None:
        await self.trigger_binder.bind()

    def start_scheduler(self) -> None:
        self.scheduler.start()

    async def stop_scheduler(self) -> None:
        await self.scheduler.stop()

    async def start(self) -> None:
        """Wire event triggers and start the cron scheduler."""
        await self.setup_event_handlers()
        self.start_scheduler()

    async def shutdown(self, cancel: bool = False) -> None:
        """Stop triggering new runs and settle the ones still in flight.

        Events already published are delivered before the triggers are
        unbound, so a run they start is settled like any other.
        """
        await self.stop_scheduler()
        await self._event_bus.drain()
        await self.trigger_binder.unbind()
        tasks = list(self._tasks.values())
        if cancel:
            for task in tasks:
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._event_bus.drain()

    # ------------------------------------------------------------------
    # Triggering
    # ------------------------------------------------------------------
    async def trigger(
        self, workflow_id: str, input_data: Optional[Mapping[str, Any]] = None
    ) -> WorkflowRun:
        """Start a new run of ``workflow_id`` without waiting for it.

        Raises:
            WorkflowNotFound: If the workflow is not registered.
        """
        workflow = self._registry.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFound(workflow_id)

        run = WorkflowRun(workflow_id=workflow_id)
        self._active_runs[run.run_id] = run

        try:
            await self._event_bus.publish(
                WORKFLOW_STARTED,
                {
                    "runId": run.run_id,
                    "workflowId": workflow_id,
                    "workflowName": workflow.name,
                },
            )
        except Exception:
            # the run never started; do not leave it pending
            self._active_runs.pop(run.run_id, None)
            raise

        task = asyncio.create_task(
            self._execute_workflow(workflow, run, dict(input_data or {})),
            name=f"flowtide-{run.run_id}",
        )
        self._tasks[run.run_id] = task
        task.add_done_callback(self._on_run_done)
        return run.snapshot()

    async def trigger_and_wait(
        self,
        workflow_id: str,
        input_data: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> WorkflowRun:
        """Trigger a run and wait until it reaches a terminal state."""
        run = await self.trigger(workflow_id, input_data)
        return await self.wait_for_run(run.run_id, timeout=timeout)

    async def wait_for_run(self, run_id: str, timeout: Optional[float] = None) -> WorkflowRun:
        """Wait for an in-flight run and return its final state.

        Raises:
            RunNotFound: If ``run_id`` is unknown.
            asyncio.TimeoutError: If the run is still executing after ``timeout``.
        """
        task = self._tasks.get(run_id)
        if task is not None:
            done, _ = await asyncio.wait({task}, timeout=timeout)
            if not done:
                raise asyncio.TimeoutError(f"Run {run_id} still executing after {timeout}s")
        run = self._active_runs.get(run_id)
        if run is None:
            raise RunNotFound(run_id)
        return run.snapshot()

    def _on_run_done(self, task: asyncio.Task) -> None:
        run_id = task.get_name().removeprefix("flowtide-")
        self._tasks.pop(run_id, None)
        if task.cancelled():
            logger.warning(f"Workflow execution cancelled: {run_id}")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Workflow execution failed for run {run_id}: {error}")

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    @asynccontextmanager
    async def _run_slot(self, workflow_id: str) -> AsyncIterator[None]:
        limit = self._config.max_concurrent_runs_per_workflow
        if limit is None:
            yield
            return
        semaphore = self._slots.setdefault(workflow_id, asyncio.Semaphore(limit))
        async with semaphore:
            yield

    async def _execute_workflow(
        self, workflow: WorkflowDefinition, run: WorkflowRun, input_data: Dict[str, Any]
    ) -> None:
        try:
            async with self._run_slot(workflow.id):
                await self._run_steps(workflow, run, input_data)
        except asyncio.CancelledError:
            if not run.status.is_terminal:
                run.status = RunStatus.FAILED
                run.error = "Run cancelled"
                run.completed_at = utc_now()
                logger.warning(f"Workflow {workflow.id} cancelled (run {run.run_id})")
                try:
                    await self._publish_failed(workflow, run)
                except Exception:
                    logger.exception(f"Could not publish cancellation of run {run.run_id}")
            raise
        finally:
            await self._record_run(workflow.id, run)

    async def _run_steps(
        self, workflow: WorkflowDefinition, run: WorkflowRun, input_data: Dict[str, Any]
    ) -> None:
        run.status = RunStatus.RUNNING
        step_input: Dict[str, Any] = dict(input_data)
        failure: Optional[Exception] = None

        try:
            for step in workflow.steps:
                run.current_step = step.id
                logger.info(f"Executing step {step.id} ({step.name}) of run {run.run_id}")
                await self._event_bus.publish(
                    STEP_STARTED,
                    {
                        "runId": run.run_id,
                        "workflowId": workflow.id,
                        "stepId": step.id,
                        "stepName": step.name,
                    },
                )

                try:
                    result = await self._executor.execute_step(
                        step, step_input, workflow.retry_config
                    )
                except StepExecutionError as e:
                    await self._event_bus.publish(
                        STEP_FAILED,
                        {
                            "runId": run.run_id,
                            "workflowId": workflow.id,
                            "stepId": step.id,
                            "error": str(e),
                        },
                    )
                    raise

                run.step_results[step.id] = result
                if isinstance(result, Mapping):
                    step_input = {**step_input, **result}

                await self._event_bus.publish(
                    STEP_COMPLETED,
                    {
                        "runId": run.run_id,
                        "workflowId": workflow.id,
                        "stepId": step.id,
                        "result": result,
                    },
                )
        except Exception as e:
            failure = e

        run.completed_at = utc_now()
        if failure is None:
            run.status = RunStatus.COMPLETED
            logger.info(f"Workflow {workflow.id} completed (run {run.run_id})")
            await self._event_bus.publish(
                WORKFLOW_COMPLETED,
                {
                    "runId": run.run_id,
                    "workflowId": workflow.id,
                    "durationMs": run.duration_ms,
                },
            )
        else:
            run.status = RunStatus.FAILED
            run.error = str(failure) or failure.__class__.__name__
            logger.error(
                f"Workflow {workflow.id} failed at step {run.current_step} "
                f"(run {run.run_id}): {run.error}"
            )
            await self._publish_failed(workflow, run)

    async def _publish_failed(self, workflow: WorkflowDefinition, run: WorkflowRun) -> None:
        await self._event_bus.publish(
            WORKFLOW_FAILED,
            {
                "runId": run.run_id,
                "workflowId": workflow.id,
                "error": run.error,
                "failedStep": run.current_step,
            },
        )

    async def _record_run(self, workflow_id: str, run: WorkflowRun) -> None:
        async with self._lock:
            self._active_runs[run.run_id] = run
            self._prune_active_runs()
            self._execution_history.append(run.snapshot())
            if run.status.is_terminal:
                stats = self._workflow_stats.setdefault(workflow_id, WorkflowStats())
                stats.record(run)

    def _prune_active_runs(self) -> None:
        """Drop the oldest finished runs once the map exceeds the history limit."""
        excess = len(self._active_runs) - self._config.history_limit
        if excess <= 0:
            return
        for run_id in [
            rid for rid, r in self._active_runs.items() if r.status.is_terminal
        ][:excess]:
            del self._active_runs[run_id]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_run(self, run_id: str) -> Optional[WorkflowRun]:
        run = self._active_runs.get(run_id)
        return run.snapshot() if run is not None else None

    def get_execution_history(self, limit: int = DEFAULT_HISTORY_QUERY_LIMIT) -> List[WorkflowRun]:
        """Return the most recent ``limit`` finished runs, newest last."""
        if limit <= 0:
            return []
        return list(self._execution_history)[-limit:]

    def get_workflow_stats(self) -> Dict[str, WorkflowStats]:
        return {wid: stats.model_copy() for wid, stats in self._workflow_stats.items()}

    def get_workflow_status(self, workflow_id: str) -> WorkflowStatus:
        """Return metadata, recent runs and schedule state for a workflow.

        Raises:
            WorkflowNotFound: If the workflow is not registered.
        """
        workflow = self._registry.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFound(workflow_id)

        runs = [r for r in self._active_runs.values() if r.workflow_id == workflow_id]
        return WorkflowStatus(
            workflow=WorkflowSummary(
                id=workflow.id,
                name=workflow.name,
                schedule=workflow.schedule,
                steps_count=len(workflow.steps),
            ),
            recent_runs=[r.snapshot() for r in runs[-RECENT_RUNS_LIMIT:]],
            is_scheduled=self.scheduler.is_scheduled(workflow_id),
        )

    @property
    def active_run_count(self) -> int:
        """Number of runs whose execution task has not finished yet."""
        return len(self._tasks)

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started_at

    def render_metrics(self) -> str:
        """Prometheus text exposition of the current workflow statistics."""
        return render_metrics(
            self.get_workflow_stats(),
            workflows_registered=len(self._registry),
            uptime_seconds=self.uptime_seconds,
        )
