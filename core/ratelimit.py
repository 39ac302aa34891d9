"""
Fixed-window rate limiting backed by the Django cache.
"""

import logging
import time

from django.conf import settings
from django.core.cache import cache

from core.exceptions import RateLimited

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Counts requests per identifier in fixed windows of `window_seconds`.

    The limiter is an external guard, not part of the ledger: when the cache backend is
    unavailable it lets the request through.
    """

    def __init__(self, scope: str, max_requests: int, window_seconds: int, cache_backend=None):
        self.scope = scope
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.cache = cache_backend or cache

    @classmethod
    def from_settings(cls, scope: str) -> "RateLimiter":
        max_requests, window_seconds = settings.LOYALTY_RATE_LIMITS[scope]
        return cls(scope, max_requests, window_seconds)

    def _window_key(self, identifier: str, now: float) -> str:
        window_start = int(now // self.window_seconds) * self.window_seconds
        return f"rate_limit:{self.scope}:{identifier}:{window_start}"

    def check(self, identifier: str, now: float = None):
        """
        Registers one request for `identifier`; raises RateLimited when the window is full.
        """
        key = self._window_key(identifier, time.time() if now is None else now)

        try:
            # add() is a no-op when the key exists, so the first request of a window creates it.
            self.cache.add(key, 0, timeout=self.window_seconds + 1)
            count = self.cache.incr(key)
        except ValueError:
            # Key expired between add() and incr(); start the window again.
            self.cache.set(key, 1, timeout=self.window_seconds + 1)
            count = 1
        except Exception as e:
            logger.warning("Rate limiter backend unavailable for %s: %s", self.scope, e)
            return

        if count > self.max_requests:
            logger.info("Rate limit exceeded for %s:%s", self.scope, identifier)
            raise RateLimited(self.scope)
