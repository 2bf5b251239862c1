"""Tests for the per-client webhook rate limiter."""

import pytest

from hub.services.rate_limiter import SlidingWindowRateLimiter


@pytest.mark.unit
def test_allows_up_to_limit_then_rejects():
    limiter = SlidingWindowRateLimiter(max_requests=3, window_seconds=300)

    decisions = [limiter.check("10.0.0.1", now=100.0 + i) for i in range(4)]

    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions[:3]] == [2, 1, 0]
    assert decisions[3].retry_after == 297


@pytest.mark.unit
def test_window_slides():
    limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60)
    limiter.check("client", now=0.0)
    limiter.check("client", now=30.0)

    assert limiter.check("client", now=59.0).allowed is False
    assert limiter.check("client", now=60.5).allowed is True


@pytest.mark.unit
def test_rejected_requests_do_not_extend_the_window():
    limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=10)
    limiter.check("client", now=0.0)

    for moment in (1.0, 5.0, 9.0):
        assert limiter.check("client", now=moment).allowed is False

    assert limiter.check("client", now=10.0).allowed is True


@pytest.mark.unit
def test_clients_are_limited_independently():
    limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60)

    assert limiter.check("a", now=0.0).allowed is True
    assert limiter.check("b", now=0.0).allowed is True
    assert limiter.check("a", now=1.0).allowed is False


@pytest.mark.unit
def test_zero_limit_disables_limiting():
    limiter = SlidingWindowRateLimiter(max_requests=0, window_seconds=60)

    assert limiter.enabled is False
    assert all(limiter.check("a", now=0.0).allowed for _ in range(100))
