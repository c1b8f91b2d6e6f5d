from complaint_bot.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_eleventh_event_in_window_is_denied():
    clock = FakeClock()
    limiter = RateLimiter(max_events=10, window_seconds=60, clock=clock)

    results = []
    for _ in range(11):
        results.append(limiter.allow("u1"))
        clock.now += 1

    assert results[:10] == [True] * 10
    assert results[10] is False


def test_denied_until_window_elapses_then_new_window():
    clock = FakeClock()
    limiter = RateLimiter(max_events=10, window_seconds=60, clock=clock)
    for _ in range(10):
        assert limiter.allow("u1")
    assert not limiter.allow("u1")

    clock.now += 59.9
    assert not limiter.allow("u1")

    clock.now = 1000.0 + 60
    assert limiter.allow("u1")
    # The reset event counts as the first of the new window
    for _ in range(9):
        assert limiter.allow("u1")
    assert not limiter.allow("u1")


def test_users_are_limited_independently():
    clock = FakeClock()
    limiter = RateLimiter(max_events=2, window_seconds=60, clock=clock)
    assert limiter.allow("a")
    assert limiter.allow("a")
    assert not limiter.allow("a")
    assert limiter.allow("b")


def test_purge_expired_drops_only_old_windows():
    clock = FakeClock()
    limiter = RateLimiter(max_events=5, window_seconds=60, clock=clock)
    limiter.allow("old")
    clock.now += 30
    limiter.allow("fresh")
    clock.now += 31

    assert limiter.purge_expired() == 1
    # "fresh" still counts from its existing window
    for _ in range(4):
        assert limiter.allow("fresh")
    assert not limiter.allow("fresh")
