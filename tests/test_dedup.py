from __future__ import annotations

from nowbot.dedup import IdempotencyGuard, InFlightTracker


def test_second_delivery_is_a_duplicate():
    guard = IdempotencyGuard(capacity=10)
    assert guard.check_and_mark(100) is False
    assert guard.check_and_mark(100) is True
    assert guard.check_and_mark(101) is False


def test_reaching_capacity_clears_everything_and_keeps_new_id():
    guard = IdempotencyGuard(capacity=3)
    for update_id in (1, 2, 3):
        assert guard.check_and_mark(update_id) is False
    assert len(guard) == 3

    assert guard.check_and_mark(4) is False
    assert len(guard) == 1
    assert guard.check_and_mark(4) is True
    # Forgotten by the wholesale reset.
    assert guard.check_and_mark(1) is False


def test_in_flight_tracker_blocks_same_key_until_finished():
    tracker = InFlightTracker()
    key = (42, "https://www.tiktok.com/@bob/video/1")

    assert tracker.try_begin(key) is True
    assert tracker.is_processing(key)
    assert tracker.try_begin(key) is False

    tracker.finish(key)
    assert not tracker.is_processing(key)
    assert tracker.try_begin(key) is True
