"""Per-client request limiting for the HTTP API."""

import logging
import threading
from collections import defaultdict
from time import monotonic
from typing import Callable, Dict, List

from fastapi import Request

from commentdesk.errors import RateLimited

logger = logging.getLogger(__name__)

# Probes and scrapes are never limited
EXEMPT_PATHS = ("/health", "/metrics")


class RateLimiter:
    """Sliding-window counter of requests per client key."""

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 900.0,
        clock: Callable[[], float] = monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._hits: Dict[str, List[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        """Record a request for ``key``; False once the window is full."""
        now = self.clock()
        cutoff = now - self.window_seconds
        with self._lock:
            hits = [t for t in self._hits[key] if t > cutoff]
            if len(hits) >= self.max_requests:
                self._hits[key] = hits
                return False
            hits.append(now)
            self._hits[key] = hits
            return True


def rate_limit_dependency(limiter: RateLimiter) -> Callable[[Request], None]:
    """Build a FastAPI dependency that rejects clients over the limit."""

    def enforce_rate_limit(request: Request) -> None:
        if request.url.path in EXEMPT_PATHS:
            return
        client_ip = request.client.host if request.client else "unknown"
        if not limiter.allow(client_ip):
            logger.warning(f"Rate limit exceeded for {client_ip} on {request.url.path}")
            raise RateLimited()

    return enforce_rate_limit
