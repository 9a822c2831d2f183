"""Replay recorded events through a fresh engine.

Each recorded event carries the tick it was seen at and, optionally, the
lag readings the server took for it: ``lag`` over the burst gap and
``window_lag`` over the full window.  Those are the fields the engine
puts in every decision, so a decision stream replays as is.  With the
clock pinned to the recorded readings the detector is deterministic and
the replay reaches the same decisions the live engine did.

Usage:
    python -m ratecheck.replay events.jsonl
    python -m ratecheck.replay events.jsonl --config my_limits.yml
"""

import argparse
import json
import sys

from ratecheck.clock import ReplayTickClock
from ratecheck.config import Configuration, load_config, DEFAULT_CONFIG
from ratecheck.engine import DetectionEngine


def replay(events, config: Configuration) -> list[dict]:
    """Run *events* (dicts with client_id, timestamp, tick[, lag, window_lag]) in order."""
    clock = ReplayTickClock(window_span_ms=config.window_span())
    engine = DetectionEngine(config, clock)
    decisions = []

    for event in events:
        if event.get("event_type") == "session_end":
            engine.end_session(event["client_id"])
            continue
        lag = event.get("lag")
        clock.set(event["tick"], 1.0 if lag is None else lag, event.get("window_lag"))
        decision = engine.evaluate(event)
        # Action records carry a wall-clock stamp; keep replays comparable.
        for record in decision["actions"]:
            record["timestamp"] = event["timestamp"]
        decisions.append(decision)

    return decisions


def _read_jsonl(f):
    for line in f:
        line = line.strip()
        if line:
            yield json.loads(line)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Replay recorded action events")
    parser.add_argument("events", help="JSON-lines file, '-' for stdin")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG))
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.events == "-":
        decisions = replay(_read_jsonl(sys.stdin), config)
    else:
        with open(args.events) as f:
            decisions = replay(_read_jsonl(f), config)

    cancelled = 0
    for decision in decisions:
        print(json.dumps(decision))
        cancelled += decision["cancel"]
    print(f"Replayed {len(decisions)} events, {cancelled} cancelled.", file=sys.stderr)


if __name__ == "__main__":
    main()
