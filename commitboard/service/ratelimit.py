"""In-memory sliding-window rate limiting keyed by client address."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

from starlette.requests import Request

from ..config import RateLimitRule


class SlidingWindowLimiter:
    """Admits at most `max_requests` hits per key within any `window_seconds` span."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._next_sweep = 0.0

    @classmethod
    def from_rule(cls, rule: RateLimitRule, **kwargs) -> "SlidingWindowLimiter":
        return cls(rule.max_requests, rule.window_seconds, **kwargs)

    def hit(self, key: str) -> bool:
        """Record a request for `key`; returns False (and records nothing) when over the cap."""
        with self._lock:
            now = self._clock()
            self._sweep(now)
            hits = self._purge(key, now)
            if len(hits) >= self.max_requests:
                return False
            hits.append(now)
            self._hits[key] = hits
            return True

    def release(self, key: str) -> None:
        """Forget the most recent hit for `key`."""
        with self._lock:
            hits = self._hits.get(key)
            if hits:
                hits.pop()
                if not hits:
                    del self._hits[key]

    def remaining(self, key: str) -> int:
        with self._lock:
            hits = self._purge(key, self._clock())
            return max(0, self.max_requests - len(hits))

    def reset_after(self, key: str) -> float:
        """Seconds until the oldest hit in the window expires."""
        with self._lock:
            now = self._clock()
            hits = self._purge(key, now)
            if not hits:
                return 0.0
            return max(0.0, hits[0] + self.window_seconds - now)

    def _purge(self, key: str, now: float) -> Deque[float]:
        """Drop expired hits for `key`; keys with no live hits are not kept."""
        hits = self._hits.get(key)
        if hits is None:
            return deque()
        cutoff = now - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if not hits:
            del self._hits[key]
        return hits

    def _sweep(self, now: float) -> None:
        # At most once per window, evict clients that have gone quiet.
        if now < self._next_sweep:
            return
        for key in list(self._hits):
            self._purge(key, now)
        self._next_sweep = now + self.window_seconds


def client_address(request: Request, *, trust_proxy: bool = True) -> str:
    """Return the caller's network origin, honouring one trusted proxy hop."""
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
            if hops:
                return hops[-1]
    if request.client is not None:
        return request.client.host
    return "unknown"


__all__ = ["SlidingWindowLimiter", "client_address"]
