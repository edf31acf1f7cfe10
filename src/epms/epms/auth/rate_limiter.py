"""In-memory fixed-window rate limiting.

State lives in the worker process, so limits are per-process. That is fine for
a single gunicorn worker; multi-worker deployments get ``workers x points``.
Expired windows are swept from ``consume`` at most once per window duration.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .settings import RateLimitRule


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining_points: int
    ms_before_next: int
    consumed_points: int

    @property
    def retry_after_seconds(self) -> int:
        return int(math.ceil(self.ms_before_next / 1000))


@dataclass
class _Window:
    consumed: int
    resets_at: float
    blocked: bool = False


class RateLimiter:
    def __init__(self, rule: RateLimitRule, *, clock: Callable[[], float] = time.monotonic):
        self._rule = rule
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._next_sweep = clock() + rule.duration_seconds

    @property
    def points(self) -> int:
        return self._rule.points

    def _sweep(self, now: float) -> int:
        stale = [k for k, w in self._windows.items() if w.resets_at <= now]
        for k in stale:
            del self._windows[k]
        self._next_sweep = now + self._rule.duration_seconds
        return len(stale)

    def _live_window(self, key: str, now: float) -> Optional[_Window]:
        window = self._windows.get(key)
        if window and window.resets_at <= now:
            del self._windows[key]
            return None
        return window

    def consume(self, key: str, points: int = 1) -> RateLimitResult:
        with self._lock:
            now = self._clock()
            if now >= self._next_sweep:
                self._sweep(now)
            window = self._live_window(key, now)
            if window is None:
                window = _Window(consumed=0, resets_at=now + self._rule.duration_seconds)
                self._windows[key] = window

            window.consumed += points
            allowed = window.consumed <= self._rule.points
            if not allowed and self._rule.block_seconds > 0 and not window.blocked:
                window.blocked = True
                window.resets_at = now + self._rule.block_seconds

            return RateLimitResult(
                allowed=allowed,
                remaining_points=max(0, self._rule.points - window.consumed),
                ms_before_next=max(0, int(round((window.resets_at - now) * 1000))),
                consumed_points=window.consumed,
            )

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def purge_expired(self) -> int:
        with self._lock:
            return self._sweep(self._clock())


def rate_limit_headers(result: RateLimitResult, *, limit: int) -> Dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(result.remaining_points),
        "X-RateLimit-Reset": str(result.retry_after_seconds),
    }
