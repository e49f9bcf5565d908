"""Step execution tests: retries, linear backoff and timeouts."""

import asyncio

import pytest

from flowtide.contracts import RetryConfig, WorkflowStep
from flowtide.exceptions import HandlerNotRegistered, HandlerTimeout, StepExecutionError
from flowtide.execute import StepExecutor
from flowtide.handlers import HandlerRegistry
from flowtide.utils.retry import compute_backoff


class FlakyHandler:
    """Fails ``failures`` times before returning a result."""

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    async def __call__(self, step_input):
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(f"failure {self.calls}")
        return {"ok": True, "calls": self.calls}


@pytest.fixture
def sleeps(monkeypatch):
    delays = []

    async def fake_schedule_retry(attempt, backoff_ms):
        delays.append(compute_backoff(attempt, backoff_ms))

    monkeypatch.setattr("flowtide.utils.retry.schedule_retry", fake_schedule_retry)
    return delays


def _step(handler="flaky", timeout_ms=None):
    return WorkflowStep(id="A", name="Step A", handler=handler, timeout_ms=timeout_ms)


def test_compute_backoff_is_linear():
    assert compute_backoff(1, 100) == pytest.approx(0.1)
    assert compute_backoff(2, 100) == pytest.approx(0.2)
    assert compute_backoff(3, 100) == pytest.approx(0.3)
    assert compute_backoff(2, 0) == 0


@pytest.mark.asyncio
async def test_handler_failing_twice_then_succeeding(sleeps):
    handlers = HandlerRegistry()
    flaky = FlakyHandler(failures=2)
    handlers.register("flaky", flaky)
    executor = StepExecutor(handlers)

    result = await executor.execute_step(
        _step(), {}, RetryConfig(attempts=3, backoff_ms=100)
    )

    assert result == {"ok": True, "calls": 3}
    assert flaky.calls == 3
    assert sleeps == [pytest.approx(0.1), pytest.approx(0.2)]


@pytest.mark.asyncio
async def test_handler_failing_every_attempt(sleeps):
    handlers = HandlerRegistry()
    flaky = FlakyHandler(failures=10)
    handlers.register("flaky", flaky)
    executor = StepExecutor(handlers)

    with pytest.raises(StepExecutionError) as exc_info:
        await executor.execute_step(_step(), {}, RetryConfig(attempts=3, backoff_ms=100))

    assert flaky.calls == 3
    assert exc_info.value.attempts == 3
    assert exc_info.value.step_id == "A"
    assert str(exc_info.value) == "failure 3"
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert len(sleeps) == 2


@pytest.mark.asyncio
async def test_single_attempt_without_retry_config(sleeps):
    handlers = HandlerRegistry()
    flaky = FlakyHandler(failures=1)
    handlers.register("flaky", flaky)

    with pytest.raises(StepExecutionError):
        await StepExecutor(handlers).execute_step(_step(), {})
    assert flaky.calls == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_timeout_abandons_handler_without_cancelling():
    handlers = HandlerRegistry()
    finished = asyncio.Event()

    async def slow(step_input):
        await asyncio.sleep(0.2)
        finished.set()
        return {"late": True}

    handlers.register("slow", slow)
    executor = StepExecutor(handlers)

    with pytest.raises(HandlerTimeout) as exc_info:
        await executor.execute_step(_step("slow", timeout_ms=20), {})

    assert exc_info.value.timeout_ms == 20
    assert "timed out after 20ms" in str(exc_info.value)
    assert not finished.is_set()
    await asyncio.wait_for(finished.wait(), timeout=1)


@pytest.mark.asyncio
async def test_timeout_is_retried_like_a_failure(sleeps):
    handlers = HandlerRegistry()
    calls = []

    async def slow_then_fast(step_input):
        calls.append(1)
        if len(calls) == 1:
            await asyncio.sleep(0.1)
        return {"attempt": len(calls)}

    handlers.register("sometimes-slow", slow_then_fast)
    result = await StepExecutor(handlers).execute_step(
        _step("sometimes-slow", timeout_ms=20), {}, RetryConfig(attempts=2, backoff_ms=50)
    )
    assert result == {"attempt": 2}
    assert sleeps == [pytest.approx(0.05)]
    await asyncio.sleep(0.15)


@pytest.mark.asyncio
async def test_default_timeout_applies_when_step_has_none():
    handlers = HandlerRegistry()

    async def slow(step_input):
        await asyncio.sleep(0.1)

    handlers.register("slow", slow)
    executor = StepExecutor(handlers, default_timeout_ms=10)

    with pytest.raises(HandlerTimeout):
        await executor.execute_step(_step("slow"), {})
    await asyncio.sleep(0.15)


@pytest.mark.asyncio
async def test_sync_handler_receives_copy_of_input():
    handlers = HandlerRegistry()

    def mutate(step_input):
        step_input["mutated"] = True
        return {"seen": sorted(step_input)}

    handlers.register("sync", mutate)
    original = {"a": 1}
    result = await StepExecutor(handlers).execute_step(_step("sync"), original)

    assert result == {"seen": ["a", "mutated"]}
    assert original == {"a": 1}


@pytest.mark.asyncio
async def test_unregistered_handler_uses_placeholder():
    result = await StepExecutor(HandlerRegistry()).execute_step(_step("nobody"), {})
    assert result["processed"] is True
    assert result["handler"] == "nobody"


@pytest.mark.asyncio
async def test_unregistered_handler_is_an_error_when_placeholders_disabled(sleeps):
    executor = StepExecutor(HandlerRegistry(), allow_placeholder_handlers=False)
    with pytest.raises(HandlerNotRegistered) as exc_info:
        await executor.execute_step(_step("nobody"), {}, RetryConfig(attempts=3, backoff_ms=10))
    assert exc_info.value.step_id == "A"
    assert sleeps == []
