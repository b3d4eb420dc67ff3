"""In-memory rate limiter protecting login and quiz submission."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque

from fastapi import HTTPException, Request


class InMemoryRateLimiter:
    """Sliding-window limiter keyed by client and route.

    State lives in process memory, so limits are per worker.
    """

    def __init__(self):
        self._hits = defaultdict(deque)
        self._lock = threading.Lock()

    def allow(self, key: str, max_requests: int, window_seconds: int) -> tuple[bool, int]:
        """Record a hit for `key`; return `(allowed, retry_after_seconds)`."""
        if max_requests <= 0:
            return True, 0
        now = time.monotonic()
        with self._lock:
            q = self._hits[key]
            cutoff = now - window_seconds
            while q and q[0] < cutoff:
                q.popleft()
            if len(q) >= max_requests:
                return False, max(1, int(window_seconds - (now - q[0])))
            q.append(now)
        return True, 0

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


login_limiter = InMemoryRateLimiter()
submit_limiter = InMemoryRateLimiter()


def enforce_rate_limit(limiter: InMemoryRateLimiter, request: Request, max_per_min: int, window: int = 60) -> None:
    """Raise 429 with `Retry-After` once a client exceeds `max_per_min`."""
    key = f"{request.client.host if request.client else 'unknown'}:{request.url.path}"
    allowed, retry_after = limiter.allow(key, max_per_min, window)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"rate limit exceeded; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )
