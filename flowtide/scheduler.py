"""Cron scheduling of registered workflows."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from croniter import croniter  # type: ignore[import-untyped]

from .config import SchedulerConfig
from .exceptions import InvalidCronExpression, WorkflowNotFound

if TYPE_CHECKING:
    from .contracts import WorkflowRun
    from .registry import WorkflowRegistry

logger = logging.getLogger(__name__)

TriggerFn = Callable[[str, Dict[str, Any]], Awaitable["WorkflowRun"]]
Clock = Callable[[], datetime]

SCHEDULER_INPUT = {"triggeredBy": "scheduler"}


def validate_cron(expression: str) -> None:
    """Raise ``InvalidCronExpression`` unless ``expression`` parses."""
    if not expression or not expression.strip():
        raise InvalidCronExpression(expression, "empty expression")
    if not croniter.is_valid(expression):
        raise InvalidCronExpression(expression)


class CronJob:
    """Tracks the next fire time of one workflow schedule."""

    def __init__(self, workflow_id: str, schedule: str, start: datetime) -> None:
        self.workflow_id = workflow_id
        self.schedule = schedule
        self.active = True
        self.next_fire_at: datetime = self._next_after(start)

    def _next_after(self, moment: datetime) -> datetime:
        return croniter(self.schedule, moment).get_next(datetime)

    def is_due(self, now: datetime) -> bool:
        return self.active and now >= self.next_fire_at

    def advance(self, now: datetime) -> None:
        """Move past ``now``; slots missed between ticks are not replayed."""
        self.next_fire_at = self._next_after(now)

    def stop(self) -> None:
        self.active = False


class WorkflowScheduler:
    """Fires ``trigger(workflow_id, {"triggeredBy": "scheduler"})`` on cron schedules.

    A background task polls the clock every ``poll_interval_seconds`` and
    calls ``tick``. Tests drive ``tick`` directly with a fake clock.
    """

    def __init__(
        self,
        registry: "WorkflowRegistry",
        trigger: TriggerFn,
        config: Optional[SchedulerConfig] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._registry = registry
        self._trigger = trigger
        self._config = config or SchedulerConfig()
        tz = ZoneInfo(self._config.timezone)
        self._clock: Clock = clock or (lambda: datetime.now(tz))
        self._jobs: Dict[str, CronJob] = {}
        self._task: Optional[asyncio.Task] = None
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    @property
    def jobs(self) -> Dict[str, CronJob]:
        return dict(self._jobs)

    def is_scheduled(self, workflow_id: str) -> bool:
        job = self._jobs.get(workflow_id)
        return job is not None and job.active

    def start(self, run_loop: bool = True) -> None:
        """Register a job for every valid schedule and start polling.

        Invalid expressions are logged and skipped; the workflow can still be
        triggered manually or by events.
        """
        if self._started:
            logger.warning("Scheduler already running")
            return
        self._started = True

        now = self._clock()
        for entry in self._registry.list_schedules():
            try:
                validate_cron(entry.schedule)
            except InvalidCronExpression as e:
                logger.warning(f"Skipping schedule for workflow {entry.workflow_id}: {e}")
                continue
            self._jobs[entry.workflow_id] = CronJob(entry.workflow_id, entry.schedule, now)
            logger.info(f"Workflow {entry.workflow_id} scheduled: {entry.schedule}")

        if run_loop:
            self._task = asyncio.create_task(self._run_loop(), name="flowtide-scheduler")

    async def stop(self) -> None:
        """Stop every job and forget them so ``start`` can register afresh."""
        for workflow_id, job in self._jobs.items():
            job.stop()
            logger.info(f"Workflow schedule stopped: {workflow_id}")
        self._jobs.clear()
        self._started = False

        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def tick(self, now: Optional[datetime] = None) -> List[str]:
        """Fire every job due at ``now``; returns the triggered workflow ids."""
        now = now or self._clock()
        fired: List[str] = []
        for job in list(self._jobs.values()):
            if not job.is_due(now):
                continue
            job.advance(now)
            if await self._fire(job):
                fired.append(job.workflow_id)
        return fired

    async def _fire(self, job: CronJob) -> bool:
        logger.info(f"Scheduled workflow triggered: {job.workflow_id} ({job.schedule})")
        try:
            await self._trigger(job.workflow_id, dict(SCHEDULER_INPUT))
        except WorkflowNotFound:
            logger.error(f"Scheduled workflow {job.workflow_id} is no longer registered")
            return False
        except Exception:
            logger.exception(f"Failed to trigger scheduled workflow {job.workflow_id}")
            return False
        return True

    async def _run_loop(self) -> None:
        while True:
            await self.tick()
            await asyncio.sleep(self._config.poll_interval_seconds)
