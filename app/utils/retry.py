"""Linear-backoff retry for flaky upstream calls"""

import time
from typing import Callable, Optional, TypeVar

from app.core.logging import logger

T = TypeVar("T")


def with_retry(
    fn: Callable[[], T],
    operation: str,
    max_retries: int = 3,
    delay_ms: int = 1000,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call `fn` until it succeeds or `max_retries` attempts are used up.

    Waits `delay_ms * attempt` between attempts and re-raises the last error.

    Args:
        fn: Zero-argument callable to run
        operation: Name used in log messages
        max_retries: Total number of attempts
        delay_ms: Base delay in milliseconds
        sleep: Sleep function (injectable for tests)

    Returns:
        Whatever `fn` returns
    """
    last_error: Optional[Exception] = None

    for attempt in range(1, max_retries + 1):
        try:
            return fn()
        except Exception as e:
            last_error = e
            logger.warning(
                f"[RETRY] {operation} failed (attempt {attempt}/{max_retries}): {e}",
                extra={"operation": operation, "attempt": attempt},
            )
            if attempt < max_retries:
                sleep(delay_ms * attempt / 1000)

    raise last_error
