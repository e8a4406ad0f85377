"""
Simple in-memory rate limiter for Discord interactions.

Not a security boundary (restarts reset state); it stops squads from
spamming challenges into the match channel.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    retry_after_seconds: int = 0


class RateLimiter:
    """
    Sliding-window limiter: allow N events per window per (scope, guild, user).
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: dict[tuple[str, int, int], list[float]] = {}

    def check(
        self, *, scope: str, guild_id: int, user_id: int, limit: int, per_seconds: int
    ) -> RateLimitResult:
        now = self._clock()
        key = (scope, guild_id, user_id)
        window_start = now - per_seconds

        with self._lock:
            hits = [t for t in self._hits.get(key, []) if t > window_start]
            if len(hits) >= limit:
                retry_after = int(max(0.0, (min(hits) + per_seconds) - now) + 0.999)
                self._hits[key] = hits
                return RateLimitResult(allowed=False, retry_after_seconds=retry_after)
            hits.append(now)
            self._hits[key] = hits
        return RateLimitResult(allowed=True)

    def reset(self, scope: str | None = None) -> None:
        """Forget recorded hits, for one scope or all of them."""
        with self._lock:
            if scope is None:
                self._hits.clear()
            else:
                self._hits = {k: v for k, v in self._hits.items() if k[0] != scope}


GLOBAL_RATE_LIMITER = RateLimiter()
