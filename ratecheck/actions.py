"""Violation-level action dispatch.

The accumulator hands every VL increase to an ActionDispatcher, which
decides what to do about it and reports whether the triggering action
should be cancelled.

ThresholdActionDispatcher follows the classic anti-cheat action list: the
entry with the greatest threshold <= VL is the one that runs.  "cancel"
only affects the return value; "log" and "kick" produce action records
that the caller drains and ships wherever it ships alerts.
"""

import time

from ratecheck.config import ActionThreshold


class ActionDispatcher:
    """Executes configured responses for a VL increase."""

    def execute_actions(self, client_id: str, vl: float, delta: float,
                        thresholds: tuple[ActionThreshold, ...]) -> bool:
        """Run the actions for *vl*; True if one of them cancels."""
        raise NotImplementedError


class ThresholdActionDispatcher(ActionDispatcher):

    def __init__(self, sink=None):
        # sink: optional callable(record); if it raises, the batch is dropped
        self.sink = sink
        self._outbox: list[dict] = []

    def execute_actions(self, client_id, vl, delta, thresholds):
        entry = select_threshold(thresholds, vl)
        if entry is None:
            return False

        records = []
        for name in entry.actions:
            if name == "cancel":
                continue
            records.append({
                "action": name,
                "client_id": client_id,
                "vl": round(vl, 6),
                "delta": round(delta, 6),
                "threshold": entry.threshold,
                "timestamp": time.time(),
            })

        if self.sink is not None:
            for record in records:
                self.sink(record)
        # Only a fully delivered batch is queued for drain().
        self._outbox.extend(records)

        return entry.cancels

    def drain(self) -> list[dict]:
        """Return and forget every record produced since the last drain."""
        records, self._outbox = self._outbox, []
        return records


def select_threshold(thresholds: tuple[ActionThreshold, ...],
                     vl: float) -> ActionThreshold | None:
    """Entry with the greatest threshold <= *vl*, or None."""
    chosen = None
    for entry in thresholds:
        if entry.threshold <= vl:
            if chosen is None or entry.threshold >= chosen.threshold:
                chosen = entry
    return chosen
