"""Event and per-client detection state."""

import math
from dataclasses import dataclass, field

from ratecheck.frequency import BucketedFrequencyCounter


@dataclass(frozen=True)
class Event:
    timestamp: float  # wall-clock ms
    weight: float = 1.0

    def __post_init__(self):
        if not math.isfinite(self.timestamp):
            raise ValueError(f"event timestamp must be finite, got {self.timestamp}")
        if not math.isfinite(self.weight) or self.weight < 0:
            raise ValueError(f"event weight must be >= 0, got {self.weight}")


@dataclass
class DetectionState:
    """Everything the detector remembers about one client.

    Owned by exactly one client's processing context.  Callers keep it
    between events and hand it back on the next check.
    """

    counter: BucketedFrequencyCounter
    short_term_tick: int = 0
    short_term_count: int = 0
    vl: float = 0.0
    # Last raw full-window score, kept for reporting.
    score: float = field(default=0.0, compare=False)

    @classmethod
    def create(cls, config) -> "DetectionState":
        return cls(BucketedFrequencyCounter(config.bucket_duration_ms,
                                            config.number_of_buckets))
