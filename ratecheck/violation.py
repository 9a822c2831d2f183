"""Violation-level accumulation.

Two signals feed one decision: the full-window score (optionally divided
by the lag over the whole window) and the short-term burst count.  The
larger excess wins.

Growth is immediate on any excess; decay needs the score comfortably
under the limit, not merely under it, so suspicion persists through
marginal fluctuations.
"""

from ratecheck.actions import ActionDispatcher
from ratecheck.config import Configuration
from ratecheck.lag import LagCompensator
from ratecheck.state import DetectionState


class ViolationAccumulator:

    def __init__(self, config: Configuration, lag: LagCompensator | None = None):
        self.config = config
        self.lag = lag

    def full_violation(self, score: float) -> float:
        cfg = self.config
        if score <= cfg.full_window_limit:
            return 0.0
        if cfg.lag_compensation and self.lag is not None:
            score = self.lag.normalize(score, cfg.window_span(), cfg.lag_mode)
        return max(0.0, score - cfg.full_window_limit)

    def short_term_violation(self, count: int) -> float:
        return count - self.config.short_term_limit

    def apply(self, client_id: str, state: DetectionState, score: float,
              dispatcher: ActionDispatcher) -> bool:
        """Fold one check's signals into *state*; True means cancel."""
        cfg = self.config
        violation = max(self.full_violation(score),
                        self.short_term_violation(state.short_term_count))

        if violation > 0:
            change = violation / cfg.violation_divisor
            state.vl += change
            return dispatcher.execute_actions(client_id, state.vl, change, cfg.actions)

        if state.vl > 0 and score < cfg.full_window_limit * cfg.decay_eligibility_ratio:
            state.vl *= cfg.decay_multiplier
        return False
