"""Step execution with retry, linear backoff and timeout enforcement."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Dict, Optional

from .constants import DEFAULT_STEP_TIMEOUT_MS
from .contracts import RetryConfig, WorkflowStep
from .exceptions import HandlerNotRegistered, HandlerTimeout, StepExecutionError
from .handlers import HandlerRegistry, StepHandler, make_placeholder_handler
from .utils import retry

logger = logging.getLogger(__name__)


def _error_message(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


def _consume_abandoned(handler_name: str):
    def _callback(task: "asyncio.Future[Any]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug(f"Abandoned handler {handler_name} later failed: {exc}")
        else:
            logger.debug(f"Abandoned handler {handler_name} finished after its timeout")

    return _callback


class StepExecutor:
    """Runs a single workflow step against the handler registry."""

    def __init__(
        self,
        handlers: HandlerRegistry,
        default_timeout_ms: int = DEFAULT_STEP_TIMEOUT_MS,
        allow_placeholder_handlers: bool = True,
    ) -> None:
        self._handlers = handlers
        self._default_timeout_ms = default_timeout_ms
        self._allow_placeholder = allow_placeholder_handlers

    def resolve_handler(self, handler_name: str, step_id: Optional[str] = None) -> StepHandler:
        handler = self._handlers.get(handler_name)
        if handler is not None:
            logger.debug(f"Executing registered handler {handler_name}")
            return handler
        if not self._allow_placeholder:
            raise HandlerNotRegistered(handler_name, step_id=step_id)
        logger.debug(f"Handler {handler_name} not registered, using placeholder")
        return make_placeholder_handler(handler_name)

    async def execute_step(
        self,
        step: WorkflowStep,
        step_input: Dict[str, Any],
        retry_config: Optional[RetryConfig] = None,
    ) -> Any:
        """Run ``step`` until it succeeds or the attempts are exhausted.

        Raises:
            StepExecutionError: The last attempt failed. ``HandlerTimeout``
                when that attempt hit its deadline.
        """
        max_attempts = retry_config.attempts if retry_config else 1
        backoff_ms = retry_config.backoff_ms if retry_config else 0

        for attempt in range(1, max_attempts + 1):
            try:
                return await self.call_handler(
                    step.handler, step_input, step.timeout_ms, step_id=step.id
                )
            except HandlerNotRegistered as e:
                e.attempts = attempt
                raise
            except Exception as e:
                logger.warning(
                    f"Step {step.id} attempt {attempt}/{max_attempts} failed: "
                    f"{_error_message(e)}"
                )
                if attempt == max_attempts:
                    if isinstance(e, StepExecutionError):
                        e.step_id = step.id
                        e.attempts = attempt
                        raise
                    raise StepExecutionError(
                        _error_message(e), step_id=step.id, attempts=attempt
                    ) from e

            await retry.schedule_retry(attempt, backoff_ms)

    async def call_handler(
        self,
        handler_name: str,
        step_input: Dict[str, Any],
        timeout_ms: Optional[int] = None,
        step_id: Optional[str] = None,
    ) -> Any:
        """Invoke a handler with a hard deadline.

        On timeout the handler is left running in the background and its
        outcome is discarded.
        """
        timeout_ms = timeout_ms or self._default_timeout_ms
        handler = self.resolve_handler(handler_name, step_id=step_id)
        task = asyncio.ensure_future(self._invoke(handler, dict(step_input)))
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout_ms / 1000)
        except asyncio.TimeoutError:
            task.add_done_callback(_consume_abandoned(handler_name))
            raise HandlerTimeout(handler_name, timeout_ms, step_id=step_id) from None

    @staticmethod
    async def _invoke(handler: StepHandler, step_input: Dict[str, Any]) -> Any:
        if inspect.iscoroutinefunction(handler):
            return await handler(step_input)
        result = await asyncio.to_thread(handler, step_input)
        if inspect.isawaitable(result):
            result = await result
        return result
