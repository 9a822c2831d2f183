# Action-rate detection for untrusted clients.
#
# A dual-window detector: a bucketed long-window rate plus a tick-counted
# short-term burst, both discounted by measured server lag, feeding a
# decaying violation level that drives threshold actions.  check_action()
# is the whole algorithm; DetectionEngine adds per-client bookkeeping.

from ratecheck.check import check_action
from ratecheck.config import Configuration, ActionThreshold, load_config
from ratecheck.engine import DetectionEngine
from ratecheck.state import DetectionState, Event

__all__ = [
    "ActionThreshold",
    "Configuration",
    "DetectionEngine",
    "DetectionState",
    "Event",
    "check_action",
    "load_config",
]
