"""Detection engine: runs the action-rate check for every client.

Pure business logic, no Kafka dependency.  The detection service feeds
events in and publishes the resulting decisions and action records.

State: dict[client_id, DetectionState], created on a client's first event
and dropped when its session ends.  Not safe for concurrent use on the
same client; the service partitions clients by key so each client is
only ever seen by one consumer.
"""

import time

from ratecheck.actions import ThresholdActionDispatcher
from ratecheck.check import check_action
from ratecheck.clock import TickClock, ServerTickClock, EventTickClock
from ratecheck.config import Configuration
from ratecheck.lag import LagCompensator
from ratecheck.state import DetectionState, Event


class DetectionEngine:

    def __init__(self, config: Configuration | None = None,
                 clock: TickClock | None = None,
                 dispatcher: ThresholdActionDispatcher | None = None):
        self.config = config or Configuration()
        self.clock = clock or ServerTickClock()
        self.dispatcher = dispatcher or ThresholdActionDispatcher()
        self._states: dict[str, DetectionState] = {}

    def evaluate(self, event: dict) -> dict:
        """Feed one event, get back the decision for it.

          1. Route: find (or create) the client's state
          2. Check: add to the windows, update VL, dispatch actions
          3. Report: decision plus any action records produced on the way

        An event stamped with a ``tick`` is counted at that tick; otherwise
        the clock is read once up front.  The decision records the tick
        and both lag readings, so it can be fed back into a replay.
        """
        client_id = event["client_id"]
        ts = event.get("timestamp", time.time() * 1000)
        action = Event(ts, event.get("weight", 1.0))

        tick = event.get("tick")
        if tick is None:
            tick = self.clock.current_tick()
        # One tick for the whole check, even if the clock thread moves on.
        clock = EventTickClock(self.clock, int(tick))
        lag = LagCompensator(clock)

        state = self._states.get(client_id)
        if state is None:
            state = self._states[client_id] = DetectionState.create(self.config)

        # Anything a failed sink left behind belongs to an earlier event.
        self.dispatcher.drain()
        cancel = check_action(client_id, action, state, self.config, clock,
                              self.dispatcher, lag)

        return {
            "client_id": client_id,
            "timestamp": ts,
            "weight": action.weight,
            "tick": clock.current_tick(),
            "lag": lag.burst_lag,
            "window_lag": lag.window_lag,
            "cancel": cancel,
            "vl": round(state.vl, 6),
            "score": state.score,
            "short_term_count": state.short_term_count,
            "actions": self.dispatcher.drain(),
        }

    def end_session(self, client_id: str) -> None:
        self._states.pop(client_id, None)

    def state_for(self, client_id: str) -> DetectionState | None:
        return self._states.get(client_id)

    def __contains__(self, client_id: str) -> bool:
        return client_id in self._states

    def __len__(self) -> int:
        return len(self._states)
