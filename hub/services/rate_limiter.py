"""Per-client sliding window limit on inbound webhook requests."""

import threading
import time
from collections import deque
from typing import NamedTuple, Optional

from hub.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


class RateLimitDecision(NamedTuple):
    allowed: bool
    remaining: int
    retry_after: int


class SlidingWindowRateLimiter:
    """
    Allow at most max_requests per client within window_seconds.

    Shared by the request threads of the HTTP server, so all state is guarded
    by one lock. A limit of 0 disables limiting.
    """

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    def check(self, client: str, now: Optional[float] = None) -> RateLimitDecision:
        """Record a request from client and decide whether it may proceed."""
        if not self.enabled:
            return RateLimitDecision(True, 0, 0)

        current = time.monotonic() if now is None else now
        cutoff = current - self.window_seconds

        with self._lock:
            hits = self._hits.setdefault(client, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= self.max_requests:
                retry_after = max(1, int(hits[0] + self.window_seconds - current + 0.999))
                logger.warning(
                    "Webhook rate limit exceeded",
                    client=client,
                    limit=self.max_requests,
                    window_seconds=self.window_seconds,
                    retry_after=retry_after
                )
                return RateLimitDecision(False, 0, retry_after)

            hits.append(current)
            self._prune(cutoff)
            return RateLimitDecision(True, self.max_requests - len(hits), 0)

    def _prune(self, cutoff: float) -> None:
        # Drop clients whose newest request is already outside the window
        stale = [client for client, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for client in stale:
            del self._hits[client]
