"""Tests for ShortTermBurstTracker: window, tick regression, lag resets."""

from ratecheck.burst import ShortTermBurstTracker
from ratecheck.clock import ReplayTickClock
from ratecheck.frequency import BucketedFrequencyCounter
from ratecheck.lag import LagCompensator
from ratecheck.state import DetectionState


def _state(anchor=0, count=0):
    return DetectionState(BucketedFrequencyCounter(100, 10),
                          short_term_tick=anchor, short_term_count=count)


class TestWindow:
    def setup_method(self):
        self.tracker = ShortTermBurstTracker(short_term_ticks=20, lag_compensation=False)

    def test_first_event_starts_window(self):
        s = _state()
        assert self.tracker.update(s, 100) == 1
        assert s.short_term_tick == 100

    def test_arrivals_inside_window_count_up(self):
        s = _state()
        for tick in (100, 101, 105, 119):
            self.tracker.update(s, tick)
        assert s.short_term_count == 4
        assert s.short_term_tick == 100

    def test_same_tick_counts(self):
        s = _state()
        for _ in range(6):
            self.tracker.update(s, 100)
        assert s.short_term_count == 6

    def test_window_boundary_resets(self):
        """tick - anchor == window is outside (strict <)."""
        s = _state(anchor=100, count=7)
        self.tracker.update(s, 120)
        assert (s.short_term_tick, s.short_term_count) == (120, 1)

    def test_just_inside_boundary_counts(self):
        s = _state(anchor=100, count=7)
        self.tracker.update(s, 119)
        assert (s.short_term_tick, s.short_term_count) == (100, 8)

    def test_first_event_at_tick_below_window_counts_from_zero_anchor(self):
        """A fresh state anchors at tick 0; an early tick joins that window."""
        s = _state()
        self.tracker.update(s, 3)
        assert (s.short_term_tick, s.short_term_count) == (0, 1)


class TestTickRegression:
    def test_regression_resets_regardless_of_count(self):
        tracker = ShortTermBurstTracker(short_term_ticks=20, lag_compensation=False)
        s = _state(anchor=100, count=17)
        tracker.update(s, 50)
        assert (s.short_term_tick, s.short_term_count) == (50, 1)

    def test_regression_resets_even_with_lag_enabled(self):
        tracker = ShortTermBurstTracker(short_term_ticks=20, lag_compensation=True)
        s = _state(anchor=100, count=3)
        tracker.update(s, 50, LagCompensator(ReplayTickClock(lag=1.0)))
        assert (s.short_term_tick, s.short_term_count) == (50, 1)

    def test_regression_leaves_bucket_ring_alone(self):
        tracker = ShortTermBurstTracker(short_term_ticks=20, lag_compensation=False)
        s = _state(anchor=100, count=3)
        s.counter.add(1000, 5)
        tracker.update(s, 50)
        assert s.counter.score() == 5


class TestLagCompensation:
    def test_low_lag_still_counts(self):
        tracker = ShortTermBurstTracker(short_term_ticks=20)
        s = _state(anchor=100, count=2)
        tracker.update(s, 110, LagCompensator(ReplayTickClock(lag=1.19)))
        assert (s.short_term_tick, s.short_term_count) == (100, 3)

    def test_high_lag_resets_window(self):
        tracker = ShortTermBurstTracker(short_term_ticks=20)
        s = _state(anchor=100, count=2)
        tracker.update(s, 110, LagCompensator(ReplayTickClock(lag=1.2)))
        assert (s.short_term_tick, s.short_term_count) == (110, 1)

    def test_lag_ignored_when_disabled(self):
        tracker = ShortTermBurstTracker(short_term_ticks=20, lag_compensation=False)
        s = _state(anchor=100, count=2)
        tracker.update(s, 110, LagCompensator(ReplayTickClock(lag=3.0)))
        assert s.short_term_count == 3

    def test_lag_measured_over_window_span(self):
        seen = []

        class _Recording(ReplayTickClock):
            def lag_factor(self, elapsed_ms, mode=None):
                seen.append(elapsed_ms)
                return 1.0

        tracker = ShortTermBurstTracker(short_term_ticks=20)
        s = _state(anchor=100, count=1)
        tracker.update(s, 107, LagCompensator(_Recording()))
        assert seen == [350]

    def test_threshold_is_configurable(self):
        tracker = ShortTermBurstTracker(short_term_ticks=20, burst_lag_threshold=2.0)
        s = _state(anchor=100, count=2)
        tracker.update(s, 110, LagCompensator(ReplayTickClock(lag=1.5)))
        assert s.short_term_count == 3
