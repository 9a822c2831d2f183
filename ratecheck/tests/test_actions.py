"""Tests for threshold action dispatch."""

import pytest

from ratecheck.actions import ActionDispatcher, ThresholdActionDispatcher, select_threshold
from ratecheck.config import ActionThreshold

_THRESHOLDS = (
    ActionThreshold(0, ("cancel",)),
    ActionThreshold(0.1, ("cancel", "log")),
    ActionThreshold(1.0, ("log", "kick")),
)


class TestSelectThreshold:
    def test_picks_highest_threshold_not_above_vl(self):
        assert select_threshold(_THRESHOLDS, 0.5).threshold == 0.1
        assert select_threshold(_THRESHOLDS, 1.0).threshold == 1.0
        assert select_threshold(_THRESHOLDS, 0.0).threshold == 0

    def test_nothing_below_first_threshold(self):
        thresholds = (ActionThreshold(0.5, ("cancel",)),)
        assert select_threshold(thresholds, 0.2) is None

    def test_empty_list(self):
        assert select_threshold((), 10) is None

    def test_unsorted_input(self):
        shuffled = (_THRESHOLDS[2], _THRESHOLDS[0], _THRESHOLDS[1])
        assert select_threshold(shuffled, 0.7).threshold == 0.1


class TestThresholdActionDispatcher:
    def setup_method(self):
        self.dispatcher = ThresholdActionDispatcher()

    def test_cancel_only_produces_no_records(self):
        assert self.dispatcher.execute_actions("p", 0.01, 0.01, _THRESHOLDS) is True
        assert self.dispatcher.drain() == []

    def test_log_record(self):
        assert self.dispatcher.execute_actions("p", 0.2, 0.002, _THRESHOLDS) is True
        records = self.dispatcher.drain()
        assert len(records) == 1
        rec = records[0]
        assert rec["action"] == "log"
        assert rec["client_id"] == "p"
        assert rec["vl"] == pytest.approx(0.2)
        assert rec["delta"] == pytest.approx(0.002)
        assert rec["threshold"] == 0.1
        assert "timestamp" in rec

    def test_kick_without_cancel_does_not_cancel(self):
        assert self.dispatcher.execute_actions("p", 1.5, 0.003, _THRESHOLDS) is False
        actions = [r["action"] for r in self.dispatcher.drain()]
        assert actions == ["log", "kick"]

    def test_below_all_thresholds(self):
        thresholds = (ActionThreshold(0.5, ("cancel", "log")),)
        assert self.dispatcher.execute_actions("p", 0.1, 0.1, thresholds) is False
        assert self.dispatcher.drain() == []

    def test_drain_clears_outbox(self):
        self.dispatcher.execute_actions("p", 0.2, 0.002, _THRESHOLDS)
        self.dispatcher.drain()
        assert self.dispatcher.drain() == []

    def test_sink_receives_records(self):
        seen = []
        dispatcher = ThresholdActionDispatcher(sink=seen.append)
        dispatcher.execute_actions("p", 2.0, 0.003, _THRESHOLDS)
        assert [r["action"] for r in seen] == ["log", "kick"]

    def test_failed_sink_leaves_nothing_for_drain(self):
        def sink(record):
            raise ConnectionError("broker down")

        dispatcher = ThresholdActionDispatcher(sink=sink)
        with pytest.raises(ConnectionError):
            dispatcher.execute_actions("p", 2.0, 0.003, _THRESHOLDS)
        assert dispatcher.drain() == []

    def test_delivered_records_are_drained(self):
        seen = []
        dispatcher = ThresholdActionDispatcher(sink=seen.append)
        dispatcher.execute_actions("p", 2.0, 0.003, _THRESHOLDS)
        assert dispatcher.drain() == seen

    def test_base_dispatcher_is_abstract(self):
        with pytest.raises(NotImplementedError):
            ActionDispatcher().execute_actions("p", 1, 1, ())
