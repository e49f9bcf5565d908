from __future__ import annotations

import asyncio


def compute_backoff(attempt: int, backoff_ms: int) -> float:
    """Compute linear backoff in seconds: ``backoff_ms * attempt``."""
    return max(backoff_ms, 0) * max(attempt, 0) / 1000


async def schedule_retry(attempt: int, backoff_ms: int) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt, backoff_ms)
    if delay > 0:
        await asyncio.sleep(delay)
