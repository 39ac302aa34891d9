"""
Unit tests for the fixed-window rate limiter.
"""

from unittest.mock import MagicMock

import pytest

from core.exceptions import RateLimited
from core.ratelimit import RateLimiter


class TestRateLimiter:
    def test_allows_up_to_the_limit(self):
        limiter = RateLimiter("test", max_requests=3, window_seconds=60)

        for _ in range(3):
            limiter.check("customer-1", now=1000.0)

        with pytest.raises(RateLimited) as exc:
            limiter.check("customer-1", now=1000.0)

        assert exc.value.scope == "test"
        assert exc.value.status_code == 429

    def test_identifiers_are_counted_separately(self):
        limiter = RateLimiter("test", max_requests=1, window_seconds=60)

        limiter.check("customer-1", now=1000.0)
        limiter.check("customer-2", now=1000.0)

    def test_new_window_resets_the_count(self):
        limiter = RateLimiter("test", max_requests=1, window_seconds=60)

        limiter.check("customer-1", now=1000.0)
        limiter.check("customer-1", now=1080.0)

    def test_backend_failure_lets_requests_through(self):
        broken = MagicMock()
        broken.add.side_effect = ConnectionError("redis down")
        limiter = RateLimiter("test", max_requests=1, window_seconds=60, cache_backend=broken)

        limiter.check("customer-1", now=1000.0)
        limiter.check("customer-1", now=1000.0)

    def test_from_settings(self, settings):
        settings.LOYALTY_RATE_LIMITS = {"redemption": (5, 30)}

        limiter = RateLimiter.from_settings("redemption")

        assert (limiter.max_requests, limiter.window_seconds) == (5, 30)
