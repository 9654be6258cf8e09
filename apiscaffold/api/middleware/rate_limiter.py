"""Fixed-window, per-client-IP request limiter."""
from __future__ import annotations

import math
import threading
import time
from typing import Callable, Dict, Iterable, Tuple

from fastapi import Request
import structlog

logger = structlog.get_logger(__name__)


class RateLimitExceeded(Exception):
    def __init__(self, key: str, retry_after: int):
        self.key = key
        self.retry_after = retry_after
        super().__init__(f"rate limit exceeded for {key}")


class RateLimiter:
    """
    Allows ``limit`` hits per key in each ``window_seconds`` window.

    The window for a key starts at its first hit.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        trusted_proxies: Iterable[str] = (),
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self.trusted_proxies = frozenset(trusted_proxies)
        self._hits: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> int:
        """
        Count one request for ``key``.

        Returns:
            Requests left in the current window

        Raises:
            RateLimitExceeded: the key is over its limit
        """
        now = self._clock()
        with self._lock:
            count, reset = self._hits.get(key, (0, now + self.window_seconds))
            if now >= reset:
                count = 0
                reset = now + self.window_seconds
            count += 1
            self._hits[key] = (count, reset)
            if len(self._hits) > 10000:
                self._evict(now)
        if count > self.limit:
            raise RateLimitExceeded(key, max(1, math.ceil(reset - now)))
        return self.limit - count

    def _evict(self, now: float) -> None:
        for key in [k for k, (_, reset) in self._hits.items() if reset <= now]:
            del self._hits[key]


def client_ip(request: Request, trusted_proxies: Iterable[str] = ()) -> str:
    """
    The address requests are counted against.

    ``X-Forwarded-For`` is only read when the peer is a trusted proxy; the
    client is then the right-most hop that is not itself a trusted proxy.
    """
    peer = request.client.host if request.client and request.client.host else "unknown"
    trusted = set(trusted_proxies)
    if peer not in trusted:
        return peer

    forwarded = request.headers.get("x-forwarded-for")
    if not forwarded:
        return peer
    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return hops[0] if hops else peer


async def enforce_rate_limit(request: Request) -> None:
    """Router dependency; uses the limiter stored on the app."""
    limiter: RateLimiter = request.app.state.rate_limiter
    try:
        limiter.hit(client_ip(request, limiter.trusted_proxies))
    except RateLimitExceeded as e:
        logger.warning("rate_limit_exceeded", client=e.key, path=request.url.path)
        raise
