"""
In-process rate limiting for the chat endpoint.

Two fixed windows are tracked: one per client identifier and one global
counter that protects the shared model quota. Counts are per process only;
several server instances each keep their own global counter.
"""
from __future__ import annotations

import logging
import math
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .config import RateLimitConfig

logger = logging.getLogger(__name__)

GLOBAL_LIMIT_REASON = "Daily limit reached. Try again tomorrow!"


@dataclass
class RateWindow:
    count: int
    reset_time: float

    def expired(self, now: float) -> bool:
        return self.reset_time < now


@dataclass
class RateDecision:
    allowed: bool
    remaining: int
    reset_in_ms: int
    reason: Optional[str] = None

    @property
    def retry_after(self) -> int:
        """Seconds until the blocking window resets, rounded up."""
        return math.ceil(self.reset_in_ms / 1000)

    @property
    def message(self) -> str:
        if self.reason:
            return self.reason
        return f"Rate limit exceeded. Try again in {self.retry_after} seconds."


def _now_ms() -> float:
    return time.time() * 1000


class RateLimiter:
    def __init__(
        self,
        cfg: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = _now_ms,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.cfg = cfg or RateLimitConfig()
        self._clock = clock
        self._rand = rand
        self._lock = threading.Lock()
        self._clients: Dict[str, RateWindow] = {}
        self._global = RateWindow(count=0, reset_time=clock() + self.window_ms)

    @property
    def window_ms(self) -> int:
        return self.cfg.window_seconds * 1000

    def check(self, client_id: str) -> RateDecision:
        """Classify one request from ``client_id``; accepted requests are counted."""
        with self._lock:
            decision = self._check(client_id, self._clock())
        if not decision.allowed:
            logger.info(
                "Rate limited client=%s reason=%s", client_id, decision.message
            )
        return decision

    def _check(self, client_id: str, now: float) -> RateDecision:
        if self._global.expired(now):
            self._global = RateWindow(count=0, reset_time=now + self.window_ms)

        if self._global.count >= self.cfg.max_global:
            return RateDecision(
                allowed=False,
                remaining=0,
                reset_in_ms=int(self._global.reset_time - now),
                reason=GLOBAL_LIMIT_REASON,
            )

        if self._rand() < self.cfg.prune_probability:
            self.prune(now)

        window = self._clients.get(client_id)
        if window is None or window.expired(now):
            self._clients[client_id] = RateWindow(
                count=1, reset_time=now + self.window_ms
            )
            self._global.count += 1
            return RateDecision(
                allowed=True,
                remaining=self.cfg.max_per_client - 1,
                reset_in_ms=self.window_ms,
            )

        if window.count >= self.cfg.max_per_client:
            return RateDecision(
                allowed=False,
                remaining=0,
                reset_in_ms=int(window.reset_time - now),
            )

        window.count += 1
        self._global.count += 1
        return RateDecision(
            allowed=True,
            remaining=self.cfg.max_per_client - window.count,
            reset_in_ms=int(window.reset_time - now),
        )

    def prune(self, now: Optional[float] = None) -> int:
        """Drop expired client windows; returns how many were removed."""
        now = self._clock() if now is None else now
        stale = [k for k, w in self._clients.items() if w.expired(now)]
        for key in stale:
            del self._clients[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._clients)
