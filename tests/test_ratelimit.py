"""Tests for per-client request limiting."""

from commentdesk.ratelimit import RateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_limit_is_per_key():
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=FakeClock())

    assert limiter.allow("203.0.113.7")
    assert limiter.allow("203.0.113.7")
    assert not limiter.allow("203.0.113.7")
    assert limiter.allow("198.51.100.1")


def test_window_slides():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)
    limiter.allow("a")
    clock.now += 30
    limiter.allow("a")
    assert not limiter.allow("a")

    clock.now += 31
    assert limiter.allow("a")
    assert not limiter.allow("a")


def test_rejected_requests_do_not_extend_the_window():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=10, clock=clock)
    limiter.allow("a")
    for _ in range(5):
        clock.now += 1
        assert not limiter.allow("a")

    clock.now += 5
    assert limiter.allow("a")
