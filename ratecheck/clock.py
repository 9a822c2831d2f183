"""Server tick clocks.

The detector counts short bursts in ticks and measures lag as the ratio of
real time to the time the same number of ticks should have taken.  Two
implementations:

  ServerTickClock: driven by the server loop (or its own thread), keeps a
    bounded history of tick wall times.
  ReplayTickClock: tick and lag are set explicitly per event, so recorded
    traffic replays to identical decisions.

EventTickClock wraps either one when events arrive stamped with the tick
they were produced at.

Readers never lock: ServerTickClock publishes an immutable (tick, times)
snapshot on every tick and readers grab the attribute once.  Only the
ticking thread writes.
"""

import enum
import math
import threading
import time

TICK_MILLIS = 50

# Upper bound for CAPPED lag readings.  A single multi-second stall would
# otherwise dominate every lag measurement that spans it.
DEFAULT_MAX_LAG = 4.0


class LagMode(enum.Enum):
    CAPPED = "capped"
    UNCAPPED = "uncapped"


class TickClock:
    """Tick counter plus lag ratio.  Subclass and implement both methods."""

    def current_tick(self) -> int:
        raise NotImplementedError

    def lag_factor(self, elapsed_ms: float, mode: LagMode = LagMode.CAPPED) -> float:
        """Actual / nominal elapsed time over the last *elapsed_ms* of ticks."""
        raise NotImplementedError


class ServerTickClock(TickClock):

    def __init__(self, history_ticks: int = 1200, max_lag: float = DEFAULT_MAX_LAG,
                 time_source=time.monotonic):
        self.history_ticks = history_ticks
        self.max_lag = max_lag
        self._time = time_source
        self._snapshot: tuple[int, tuple[float, ...]] = (0, (self._now_ms(),))
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def tick(self) -> int:
        """Advance one tick, recording the wall time it completed at."""
        tick, times = self._snapshot
        times = times[-self.history_ticks:] + (self._now_ms(),)
        self._snapshot = (tick + 1, times)
        return tick + 1

    def reset(self) -> None:
        """Restart counting from tick 0 (e.g. after a server reload)."""
        self._snapshot = (0, (self._now_ms(),))

    def current_tick(self) -> int:
        return self._snapshot[0]

    def lag_factor(self, elapsed_ms: float, mode: LagMode = LagMode.CAPPED) -> float:
        _, times = self._snapshot
        ticks = min(math.ceil(elapsed_ms / TICK_MILLIS), len(times) - 1)
        if ticks <= 0:
            return 1.0
        actual = times[-1] - times[-1 - ticks]
        lag = actual / (ticks * TICK_MILLIS)
        if mode is LagMode.CAPPED:
            lag = min(lag, self.max_lag)
        return lag

    # ------------------------------------------------------------------
    # Background ticking for services without their own game loop
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="tick-clock", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(TICK_MILLIS / 1000):
            self.tick()

    def _now_ms(self) -> float:
        return self._time() * 1000


class ReplayTickClock(TickClock):
    """Clock whose readings come from recorded events.

    *lag* answers every lag question unless a separate *window_lag* was
    recorded for the full window, in which case readings over exactly
    *window_span_ms* return that instead.
    """

    def __init__(self, tick: int = 0, lag: float = 1.0, max_lag: float = DEFAULT_MAX_LAG,
                 window_lag: float | None = None, window_span_ms: float | None = None):
        self.tick = tick
        self.lag = lag
        self.window_lag = window_lag
        self.window_span_ms = window_span_ms
        self.max_lag = max_lag

    def set(self, tick: int, lag: float = 1.0, window_lag: float | None = None) -> None:
        self.tick = tick
        self.lag = lag
        self.window_lag = window_lag

    def current_tick(self) -> int:
        return self.tick

    def lag_factor(self, elapsed_ms: float, mode: LagMode = LagMode.CAPPED) -> float:
        lag = self.lag
        if self.window_lag is not None and elapsed_ms == self.window_span_ms:
            lag = self.window_lag
        if mode is LagMode.CAPPED:
            return min(lag, self.max_lag)
        return lag


class EventTickClock(TickClock):
    """Pins the tick to the one an event was stamped with.

    Lag still comes from *base*: the event knows when it happened, not how
    far behind the server was.
    """

    def __init__(self, base: TickClock, tick: int):
        self.base = base
        self.tick = tick

    def current_tick(self) -> int:
        return self.tick

    def lag_factor(self, elapsed_ms: float, mode: LagMode = LagMode.CAPPED) -> float:
        return self.base.lag_factor(elapsed_ms, mode)
