from __future__ import annotations

from nowbot.throttle import RequestThrottle, ThrottleGroup


def test_burst_limit_rejects_until_window_passes(clock):
    throttle = RequestThrottle(name="burst", max_requests=1, window_seconds=60, clock=clock)

    assert throttle.try_consume(42) is True
    assert throttle.try_consume(42) is False

    clock.advance(30)
    assert throttle.try_consume(42) is False

    clock.advance(31)
    assert throttle.try_consume(42) is True


def test_rejected_call_is_not_recorded(clock):
    throttle = RequestThrottle(name="daily", max_requests=2, window_seconds=100, clock=clock)
    assert throttle.try_consume(1)
    clock.advance(10)
    assert throttle.try_consume(1)
    for _ in range(5):
        assert not throttle.try_consume(1)

    # Only the first admission expires here; rejections never extended the window.
    clock.advance(91)
    assert throttle.remaining(1) == 1
    assert throttle.try_consume(1)


def test_subscribers_are_independent(clock):
    throttle = RequestThrottle(name="burst", max_requests=1, window_seconds=60, clock=clock)
    assert throttle.try_consume(1)
    assert throttle.try_consume(2)
    assert not throttle.try_consume(1)


def test_remaining_and_reset(clock):
    throttle = RequestThrottle(name="daily", max_requests=3, window_seconds=86400, clock=clock)
    assert throttle.remaining(7) == 3
    throttle.try_consume(7)
    throttle.try_consume(7)
    assert throttle.remaining(7) == 1

    throttle.reset(7)
    assert throttle.remaining(7) == 3


def test_group_reports_rejecting_limit_and_refunds_earlier_ones(clock):
    burst = RequestThrottle(name="burst", max_requests=5, window_seconds=60, clock=clock)
    daily = RequestThrottle(name="daily", max_requests=1, window_seconds=86400, clock=clock)
    group = ThrottleGroup([burst, daily])

    assert group.admit(9) is None
    assert burst.remaining(9) == 4

    assert group.admit(9) == "daily"
    # The burst slot taken before the daily rejection was given back.
    assert burst.remaining(9) == 4
    assert group.try_consume(9) is False


def test_group_burst_rejection_leaves_daily_untouched(clock):
    burst = RequestThrottle(name="burst", max_requests=1, window_seconds=60, clock=clock)
    daily = RequestThrottle(name="daily", max_requests=20, window_seconds=86400, clock=clock)
    group = ThrottleGroup([burst, daily])

    assert group.admit(3) is None
    assert group.admit(3) == "burst"
    assert daily.remaining(3) == 19


def test_idle_subscribers_are_dropped_once_their_window_elapses(clock):
    throttle = RequestThrottle(name="burst", max_requests=1, window_seconds=60, clock=clock)
    for subscriber_id in range(1000):
        assert throttle.try_consume(subscriber_id)
    assert throttle.tracked_subscribers() == 1000

    clock.advance(3600)
    for subscriber_id in range(1000):
        assert throttle.remaining(subscriber_id) == 1
    assert throttle.tracked_subscribers() == 0


def test_remaining_for_unknown_subscriber_does_not_track_it(clock):
    throttle = RequestThrottle(name="daily", max_requests=3, window_seconds=86400, clock=clock)
    assert throttle.remaining(5) == 3
    assert throttle.tracked_subscribers() == 0


def test_cleanup_expired_drops_only_idle_subscribers(clock):
    burst = RequestThrottle(name="burst", max_requests=1, window_seconds=60, clock=clock)
    daily = RequestThrottle(name="daily", max_requests=20, window_seconds=86400, clock=clock)
    group = ThrottleGroup([burst, daily])

    assert group.admit(1) is None
    clock.advance(30)
    assert group.admit(2) is None

    clock.advance(40)
    # Subscriber 1 left the burst window, subscriber 2 did not; both are inside the daily one.
    assert group.cleanup_expired() == 1
    assert burst.tracked_subscribers() == 1
    assert daily.tracked_subscribers() == 2

    clock.advance(86400)
    assert group.cleanup_expired() == 3
    assert burst.tracked_subscribers() == 0
    assert daily.tracked_subscribers() == 0


def test_refund_of_only_admission_forgets_subscriber(clock):
    burst = RequestThrottle(name="burst", max_requests=5, window_seconds=60, clock=clock)
    daily = RequestThrottle(name="daily", max_requests=1, window_seconds=86400, clock=clock)
    group = ThrottleGroup([burst, daily])
    assert daily.try_consume(8)

    assert group.admit(8) == "daily"
    assert burst.tracked_subscribers() == 0
