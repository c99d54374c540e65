"""
Fixed-window rate limiting, keyed by client address.

Used as a router dependency. State lives in the instance, one per app.
Every limited response carries `RateLimit-Limit`, `RateLimit-Remaining`
and `RateLimit-Reset`; a rejected one adds `Retry-After`.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request, Response

from app.core.config import Settings
from app.core.errors import RateLimitExceededError


@dataclass(frozen=True)
class RateLimitState:
    limit: int
    remaining: int
    reset_seconds: int

    def headers(self) -> dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_seconds),
        }


class RateLimiter:
    """Allow `max_requests` per client within each `window_seconds` window."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.enabled = enabled
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._last_sweep = clock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimiter":
        return cls(
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            enabled=not settings.is_test,
        )

    @property
    def tracked_clients(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        # at most once per window
        if now - self._last_sweep < self.window_seconds:
            return
        self._windows = {
            key: (started, count)
            for key, (started, count) in self._windows.items()
            if now - started < self.window_seconds
        }
        self._last_sweep = now

    def hit(self, key: str) -> Optional[RateLimitState]:
        """Count one request for `key`; raises RateLimitExceededError once over the limit."""
        if not self.enabled:
            return None
        now = self._clock()
        self._sweep(now)
        started, count = self._windows.get(key, (now, 0))
        if now - started >= self.window_seconds:
            started, count = now, 0
        reset_seconds = max(1, math.ceil(started + self.window_seconds - now))
        if count >= self.max_requests:
            state = RateLimitState(self.max_requests, 0, reset_seconds)
            raise RateLimitExceededError(
                self.max_requests,
                self.window_seconds,
                headers={**state.headers(), "Retry-After": str(reset_seconds)},
            )
        self._windows[key] = (started, count + 1)
        return RateLimitState(self.max_requests, self.max_requests - count - 1, reset_seconds)

    async def __call__(self, request: Request, response: Response) -> None:
        state = self.hit(request.client.host if request.client else "unknown")
        if state is not None:
            response.headers.update(state.headers())
