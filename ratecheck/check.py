"""The per-event detection function.

Stateless: everything it remembers lives in the DetectionState the caller
passes in, so any number of clients can be checked concurrently as long
as each client's state is only touched by one caller at a time.
"""

from ratecheck.actions import ActionDispatcher
from ratecheck.burst import ShortTermBurstTracker
from ratecheck.clock import TickClock
from ratecheck.config import Configuration
from ratecheck.lag import LagCompensator
from ratecheck.state import DetectionState, Event
from ratecheck.violation import ViolationAccumulator


def check_action(client_id: str, event: Event, state: DetectionState,
                 config: Configuration, clock: TickClock,
                 dispatcher: ActionDispatcher,
                 lag: LagCompensator | None = None) -> bool:
    """Record *event* for *client_id* and return True if it should be cancelled.

    Pass a fresh *lag* compensator to read back the lag it measured.
    """
    if lag is None:
        lag = LagCompensator(clock)

    # Full period frequency.
    state.counter.add(event.timestamp, event.weight)
    state.score = state.counter.score(config.rate_reference_ms)

    # Short term arrivals.
    burst = ShortTermBurstTracker(config.short_term_ticks, config.lag_compensation,
                                  config.burst_lag_threshold, config.lag_mode)
    burst.update(state, clock.current_tick(), lag)

    return ViolationAccumulator(config, lag).apply(client_id, state, state.score, dispatcher)
