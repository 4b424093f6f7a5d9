"""Tests for CooldownTracker."""

from botpanel.application.services.cooldown_tracker import CooldownTracker
from tests.helpers import FakeClock


def test_first_use_is_allowed():
    tracker = CooldownTracker(clock=FakeClock())
    assert tracker.check_and_record("ping", "u1", 3) is True


def test_second_use_within_cooldown_is_rejected():
    clock = FakeClock()
    tracker = CooldownTracker(clock=clock)
    tracker.check_and_record("ping", "u1", 3)
    clock.advance(2.9)
    assert tracker.check_and_record("ping", "u1", 3) is False


def test_use_after_cooldown_elapses_is_allowed():
    clock = FakeClock()
    tracker = CooldownTracker(clock=clock)
    tracker.check_and_record("ping", "u1", 3)
    clock.advance(3)
    assert tracker.check_and_record("ping", "u1", 3) is True


def test_rejected_attempt_does_not_extend_expiry():
    clock = FakeClock()
    tracker = CooldownTracker(clock=clock)
    tracker.check_and_record("ping", "u1", 5)
    clock.advance(4)
    assert tracker.check_and_record("ping", "u1", 5) is False
    assert tracker.remaining("ping", "u1") == 1
    clock.advance(1)
    assert tracker.check_and_record("ping", "u1", 5) is True


def test_pairs_are_independent():
    tracker = CooldownTracker(clock=FakeClock())
    assert tracker.check_and_record("ping", "u1", 10)
    assert tracker.check_and_record("ping", "u2", 10)
    assert tracker.check_and_record("say", "u1", 10)
    assert len(tracker) == 3


def test_zero_cooldown_never_throttles():
    tracker = CooldownTracker(clock=FakeClock())
    assert tracker.check_and_record("ping", "u1", 0)
    assert tracker.check_and_record("ping", "u1", 0)


def test_expired_entries_are_pruned_past_threshold():
    clock = FakeClock()
    tracker = CooldownTracker(clock=clock, prune_threshold=3)
    for user in ("a", "b", "c"):
        tracker.check_and_record("ping", user, 1)
    clock.advance(5)
    tracker.check_and_record("ping", "d", 1)
    # a, b and c had expired and were dropped; only d remains
    assert len(tracker) == 1
    assert tracker.remaining("ping", "d") == 1


def test_clear():
    tracker = CooldownTracker(clock=FakeClock())
    tracker.check_and_record("ping", "u1", 10)
    tracker.clear()
    assert tracker.check_and_record("ping", "u1", 10)
