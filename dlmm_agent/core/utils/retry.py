from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


def linear_backoff_s(
    attempt: int, *, initial_delay_s: float, max_delay_s: float | None = None
) -> float:
    """Delay after the ``attempt``-th failure (1-based): ``initial * attempt``, capped."""
    delay_s = initial_delay_s * attempt
    if max_delay_s is not None:
        delay_s = min(delay_s, max_delay_s)
    return delay_s


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    initial_delay_s: float = 0.5,
    max_delay_s: float | None = None,
    should_retry: Callable[[Exception], bool] | None = None,
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> T:
    if max_retries < 1:
        raise ValueError("max_retries must be >= 1")

    for attempt in range(1, max_retries + 1):
        try:
            return await fn()
        except Exception as exc:  # noqa: BLE001
            if attempt >= max_retries:
                raise
            if should_retry is not None and not should_retry(exc):
                raise

            delay_s = linear_backoff_s(
                attempt, initial_delay_s=initial_delay_s, max_delay_s=max_delay_s
            )
            if on_retry is not None:
                on_retry(attempt, exc, delay_s)
            await asyncio.sleep(delay_s)

    raise RuntimeError("retry_async exhausted retries")
