from __future__ import annotations

import abc
import logging
import math
import os
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request

from app.deps.auth import AuthContext, require_auth

logger = logging.getLogger(__name__)

SWEEP_INTERVAL_MS = 5 * 60 * 1000


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_ms: int = 0


class RateLimiter(abc.ABC):
    @abc.abstractmethod
    def check(self, key: str, window_ms: int, max_requests: int) -> RateLimitDecision:
        """Count one request against ``key`` and decide whether it may proceed."""


class InMemoryRateLimiter(RateLimiter):
    """
    Fixed-window counter for a single process.

    Multi-process deployments need a limiter backed by a shared TTL store.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or (lambda: time.monotonic() * 1000)
        self._lock = threading.Lock()
        self._windows: dict[str, tuple[int, float]] = {}
        self._last_sweep = self._clock()

    def check(self, key: str, window_ms: int, max_requests: int) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= SWEEP_INTERVAL_MS:
                self._sweep_locked(now)

            count, reset_at = self._windows.get(key, (0, 0.0))
            if count == 0 or reset_at < now:
                self._windows[key] = (1, now + window_ms)
                return RateLimitDecision(allowed=True)

            count += 1
            self._windows[key] = (count, reset_at)
            if count > max_requests:
                return RateLimitDecision(allowed=False, retry_after_ms=int(reset_at - now))

            return RateLimitDecision(allowed=True)

    def sweep(self) -> int:
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        expired = [key for key, (_, reset_at) in self._windows.items() if reset_at < now]
        for key in expired:
            del self._windows[key]
        self._last_sweep = now
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


_limiter: RateLimiter = InMemoryRateLimiter()


def get_rate_limiter() -> RateLimiter:
    return _limiter


def set_rate_limiter(limiter: RateLimiter) -> None:
    global _limiter
    _limiter = limiter


def rate_limited(bucket: str):
    def dependency(
        request: Request,
        auth: AuthContext = Depends(require_auth),
    ) -> None:
        window_ms = int(os.getenv("RATE_LIMIT_WINDOW_MS", "60000"))
        max_requests = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "60"))

        key = f"{auth.company_id}:{auth.user_id}:{bucket}"
        decision = get_rate_limiter().check(key, window_ms, max_requests)
        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={"rate_limit_key": key, "path": request.url.path},
            )
            raise HTTPException(
                status_code=429,
                detail="Too many requests",
                headers={"Retry-After": str(math.ceil(decision.retry_after_ms / 1000))},
            )

    return dependency
