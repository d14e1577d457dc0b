from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(step_seconds: float) -> Callable[[int], float]:
    """Delay of ``attempt * step_seconds`` after failed attempt ``attempt``."""
    return lambda attempt: attempt * step_seconds


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    backoff: Callable[[int], float] = linear_backoff(0.5)


def call_with_retry(
    fn: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``fn`` until it succeeds or the policy is exhausted.

    Sleeps between attempts only; the last error is re-raised unchanged.
    """
    policy = policy or RetryPolicy()
    last_err: Optional[Exception] = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return fn()
        except Exception as exc:
            last_err = exc
            if attempt < policy.max_attempts:
                delay = policy.backoff(attempt)
                logger.warning(
                    "Attempt %d/%d failed (%s); retrying in %.1fs",
                    attempt,
                    policy.max_attempts,
                    exc,
                    delay,
                )
                sleep(delay)
    logger.error("All %d attempts failed", policy.max_attempts)
    raise last_err or RuntimeError("exhausted retries")
