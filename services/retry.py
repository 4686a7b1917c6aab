import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from tenacity import AsyncRetrying, stop_after_attempt, before_sleep_log

from core.logger import app_logger


def exponential_backoff(attempt: int) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (1-based): 2, 4, 8..."""
    return 2 ** attempt


@dataclass
class Outcome:
    value: Any = None
    error: Optional[BaseException] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


async def invoke_with_retry(
        func: Callable[[], Awaitable[Any]],
        attempts: int = 3,
        backoff: Callable[[int], float] = exponential_backoff,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: logging.Logger = app_logger,
) -> Outcome:
    """
    Call ``func`` until it succeeds or ``attempts`` calls have failed.

    Never raises for errors coming out of ``func``: the last one is returned in
    the outcome instead.
    """
    calls = 0

    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=lambda retry_state: backoff(retry_state.attempt_number),
        sleep=sleep,
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )

    try:
        async for attempt in retrying:
            with attempt:
                calls += 1
                value = await func()
    except Exception as e:
        return Outcome(error=e, attempts=calls)

    return Outcome(value=value, attempts=calls)
