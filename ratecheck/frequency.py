"""Bucketed frequency counter for per-client event rates.

A fixed ring of time buckets, each holding the event weight that landed in
its slice of time.  The sum over the ring approximates the total weight of
the last ``bucket_duration * number_of_buckets`` milliseconds.  Unlike a
deque of raw events, memory is fixed and score() is O(buckets) no matter
how fast a client fires.

Rotation happens on write: moving to a later slot zeroes every bucket the
ring skipped over, so a quiet period correctly drains the score.  A
backward step longer than the window is a clock reset: the ring starts
over instead of piling weight into one bucket.
"""

import math


class BucketedFrequencyCounter:
    __slots__ = ("bucket_duration", "number_of_buckets", "_buckets", "_cursor", "_slot")

    def __init__(self, bucket_duration: int, number_of_buckets: int):
        if bucket_duration <= 0:
            raise ValueError("bucket_duration must be positive")
        if number_of_buckets <= 0:
            raise ValueError("number_of_buckets must be positive")
        self.bucket_duration = bucket_duration
        self.number_of_buckets = number_of_buckets
        self._buckets: list[float] = [0.0] * number_of_buckets
        self._cursor = 0
        # Absolute slot (timestamp // bucket_duration) of the current bucket.
        # None until the first write.
        self._slot: int | None = None

    def add(self, timestamp: float, weight: float = 1.0) -> None:
        """Record *weight* at *timestamp* (wall-clock ms)."""
        if not math.isfinite(weight) or weight < 0:
            raise ValueError(f"weight must be >= 0, got {weight}")
        self._rotate(timestamp)
        self._buckets[self._cursor] += weight

    def update(self, timestamp: float) -> None:
        """Age the ring up to *timestamp* without recording anything."""
        self._rotate(timestamp)

    def score(self, normalization_window: float | None = None) -> float:
        """Total weight scaled to a rate over *normalization_window* ms.

        With no window given the raw sum over the ring is returned.
        """
        total = sum(self._buckets)
        if normalization_window is None:
            return total
        return total * normalization_window / self.window_span()

    def window_span(self) -> int:
        return self.bucket_duration * self.number_of_buckets

    def buckets(self) -> list[float]:
        """Bucket weights, newest first."""
        n = self.number_of_buckets
        return [self._buckets[(self._cursor - i) % n] for i in range(n)]

    def clear(self) -> None:
        self._buckets = [0.0] * self.number_of_buckets
        self._cursor = 0
        self._slot = None

    def _rotate(self, timestamp: float) -> None:
        slot = int(timestamp // self.bucket_duration)
        if self._slot is None:
            self._slot = slot
            self._cursor = slot % self.number_of_buckets
            return
        if self._slot - slot > self.number_of_buckets:
            # Wall clock stepped back by more than a window: treat it as a
            # clock reset and start over at the new slot.
            self.clear()
            self._slot = slot
            self._cursor = slot % self.number_of_buckets
            return
        if slot <= self._slot:
            # Same bucket, or jitter within one window: fold into the
            # current bucket rather than rotating backwards.
            return
        skipped = min(slot - self._slot, self.number_of_buckets)
        for i in range(1, skipped + 1):
            self._buckets[(self._cursor + i) % self.number_of_buckets] = 0.0
        self._cursor = slot % self.number_of_buckets
        self._slot = slot

    def __len__(self) -> int:
        return self.number_of_buckets
