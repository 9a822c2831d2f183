"""Lag compensation on top of a TickClock.

When the server itself runs slow, ticks stretch: a burst window measured
in ticks covers more real time than intended, and a rate measured in real
time looks inflated relative to what the server could process.  The
compensator reads the clock's lag factor and sanitizes it so a broken
clock only degrades detection, never crashes it.

The readings taken for the burst gap check and for the full-window
normalization are kept on the instance, so a caller can record exactly
what one check saw.
"""

import math

from ratecheck.clock import TickClock, LagMode


class LagCompensator:
    __slots__ = ("clock", "burst_lag", "window_lag")

    def __init__(self, clock: TickClock):
        self.clock = clock
        # None until the corresponding reading is taken
        self.burst_lag: float | None = None
        self.window_lag: float | None = None

    def lag_factor(self, elapsed_ms: float, mode: LagMode = LagMode.CAPPED) -> float:
        """Lag over *elapsed_ms*; 1.0 if the clock reports garbage."""
        lag = self.clock.lag_factor(elapsed_ms, mode)
        if not math.isfinite(lag) or lag <= 0:
            return 1.0
        return lag

    def burst_factor(self, elapsed_ms: float, mode: LagMode = LagMode.CAPPED) -> float:
        """Lag over a burst window span, remembered as ``burst_lag``."""
        self.burst_lag = self.lag_factor(elapsed_ms, mode)
        return self.burst_lag

    def normalize(self, score: float, elapsed_ms: float,
                  mode: LagMode = LagMode.CAPPED) -> float:
        """Divide *score* by the lag over *elapsed_ms*, never by less than 1."""
        self.window_lag = self.lag_factor(elapsed_ms, mode)
        return score / max(1.0, self.window_lag)
