"""Per-client sliding-window rate limiting."""
from __future__ import annotations

import logging
import random
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_ms: int

    @property
    def retry_after_seconds(self) -> int:
        return max(1, -(-self.reset_ms // 1000))


class SlidingWindowRateLimiter:
    """Admit at most ``limit`` requests per client in any trailing window.

    Stale timestamps are pruned on each call for the calling client; with
    probability ``sweep_probability`` the whole table is swept for clients
    with no activity inside the window.
    """

    def __init__(
        self,
        limit: int = 100,
        window_ms: int = 60_000,
        *,
        sweep_probability: float = 0.01,
        clock: Callable[[], float] = time.monotonic,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.limit = limit
        self.window_ms = window_ms
        self.sweep_probability = sweep_probability
        self._clock = clock
        self._rng = rng
        self._clients: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def _sweep(self, cutoff: float) -> None:
        idle = [client for client, stamps in self._clients.items() if not stamps or stamps[-1] <= cutoff]
        for client in idle:
            del self._clients[client]
        if idle:
            logger.debug("rate limiter swept idle_clients=%s", len(idle))

    def admit(self, client_id: str) -> RateLimitDecision:
        now = self._now_ms()
        cutoff = now - self.window_ms
        with self._lock:
            if self._rng() < self.sweep_probability:
                self._sweep(cutoff)
            stamps = self._clients.setdefault(client_id, deque())
            while stamps and stamps[0] <= cutoff:
                stamps.popleft()
            allowed = len(stamps) < self.limit
            if allowed:
                stamps.append(now)
            remaining = max(0, self.limit - len(stamps))
            reset_ms = int(round(stamps[0] + self.window_ms - now)) if stamps else 0
        if not allowed:
            logger.info("rate limit exceeded client=%s reset_ms=%s", client_id, reset_ms)
        return RateLimitDecision(allowed=allowed, remaining=remaining, reset_ms=reset_ms)
