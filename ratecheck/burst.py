"""Short-term burst tracking in server ticks.

Counts raw arrivals since an anchor tick.  Independent of the bucketed
score: a client can stay under the long-window limit while packing its
events into a few ticks, and this is what catches that.

Ticks alone are an unreliable window boundary while the server lags, so
a window that took disproportionately long in real time is treated as a
fresh window instead of a burst.
"""

from ratecheck.clock import TICK_MILLIS, LagMode
from ratecheck.lag import LagCompensator
from ratecheck.state import DetectionState


class ShortTermBurstTracker:

    def __init__(self, short_term_ticks: int, lag_compensation: bool = True,
                 burst_lag_threshold: float = 1.2,
                 lag_mode: LagMode = LagMode.CAPPED):
        self.short_term_ticks = short_term_ticks
        self.lag_compensation = lag_compensation
        self.burst_lag_threshold = burst_lag_threshold
        self.lag_mode = lag_mode

    def update(self, state: DetectionState, tick: int,
               lag: LagCompensator | None = None) -> int:
        """Apply one arrival at *tick* to *state*; returns the new count."""
        if tick < state.short_term_tick:
            # Tick source went backwards (clock reset).
            self._reset(state, tick)
        elif tick - state.short_term_tick < self.short_term_ticks:
            if self._within_lag(tick - state.short_term_tick, lag):
                state.short_term_count += 1
            else:
                self._reset(state, tick)
        else:
            self._reset(state, tick)
        return state.short_term_count

    def _within_lag(self, ticks: int, lag: LagCompensator | None) -> bool:
        if not self.lag_compensation or lag is None:
            return True
        return lag.burst_factor(TICK_MILLIS * ticks, self.lag_mode) < self.burst_lag_threshold

    @staticmethod
    def _reset(state: DetectionState, tick: int) -> None:
        state.short_term_tick = tick
        state.short_term_count = 1
