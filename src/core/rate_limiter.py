"""Sliding-window admission control for the public RSVP endpoint.

Keys come from the caller's address (first X-Forwarded-For entry when
present), which a client can forge. The limiter guards against accidental
floods, not a determined attacker.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
DEFAULT_WINDOW_SECONDS = 60.0


class RateLimiter:
    """Admit at most `limit` requests per key in any trailing `window`.

    State grows with the number of distinct keys seen; idle keys are
    never evicted.
    """

    def __init__(
        self,
        limit: int = DEFAULT_LIMIT,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limit = limit
        self._window = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: dict[str, deque[float]] = {}

    def allow(self, key: str) -> bool:
        with self._lock:
            now = self._clock()
            cutoff = now - self._window
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= self._limit:
                logger.warning("Rate limit hit for %s", key)
                return False
            hits.append(now)
            return True


def client_key(remote_addr: str | None, forwarded_for: str | None) -> str:
    """Pick the limiter key: first X-Forwarded-For hop, else the peer."""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return remote_addr or "unknown"
