from __future__ import annotations

import pytest

from demeter_watchdog.services.failure_tracker import FailureTracker


def test_fifth_failure_warns_sixth_suppresses() -> None:
    tracker = FailureTracker(threshold=5)
    for _ in range(5):
        tracker.record_failure("AppA")
    assert tracker.failure_count("AppA") == 5
    assert tracker.is_suppressed("AppA") is False

    tracker.record_failure("AppA")
    assert tracker.failure_count("AppA") == 6
    assert tracker.is_suppressed("AppA") is True


@pytest.mark.parametrize("threshold", [0, 1, 2, 5, 7])
def test_suppressed_exactly_when_count_exceeds_threshold(threshold: int) -> None:
    tracker = FailureTracker(threshold=threshold)
    for count in range(1, threshold + 5):
        tracker.record_failure("AppA")
        assert tracker.is_suppressed("AppA") is (count > threshold)


def test_suppression_is_permanent_and_counts_keep_growing() -> None:
    tracker = FailureTracker(threshold=1)
    tracker.record_failure("AppA")
    tracker.record_failure("AppA")
    assert tracker.is_suppressed("AppA") is True

    for _ in range(3):
        tracker.record_failure("AppA")
    assert tracker.is_suppressed("AppA") is True
    assert tracker.failure_count("AppA") == 5
    assert tracker.suppressed == frozenset({"AppA"})


def test_applications_are_tracked_independently() -> None:
    tracker = FailureTracker(threshold=0)
    tracker.record_failure("AppA")
    assert tracker.is_suppressed("AppA") is True
    assert tracker.is_suppressed("AppB") is False
    assert tracker.failure_count("AppB") == 0
    assert "AppB" not in tracker.warnings


def test_warnings_snapshot_is_read_only() -> None:
    tracker = FailureTracker()
    tracker.record_failure("AppA")
    with pytest.raises(TypeError):
        tracker.warnings["AppA"] = 0  # type: ignore[index]
    assert tracker.warnings == {"AppA": 1}


def test_negative_threshold_rejected() -> None:
    with pytest.raises(ValueError):
        FailureTracker(threshold=-1)
