"""Prometheus metrics exporter: consumes decisions and actions, exposes metrics.

Subscribes to the detector's decisions and actions topics and keeps
Prometheus counters, histograms and gauges current.  Grafana reads from
Prometheus to render the anti-cheat dashboard.

Usage:
    python -m exporter.main
    python -m exporter.main --bootstrap-servers kafka-1:29092 --port 9090
"""

import argparse
import json
import signal
import sys
import time

from confluent_kafka import Consumer, KafkaError
from prometheus_client import Counter, Histogram, Gauge, start_http_server

DECISIONS_TOPIC = "fastplace-decisions"
ACTIONS_TOPIC = "fastplace-actions"

# ---------------------------------------------------------------------------
# Decision metrics
# ---------------------------------------------------------------------------
# Each Counter/Histogram/Gauge below auto-registers itself in the global
# REGISTRY; start_http_server() serves all of them on GET /metrics.
checks_total = Counter(
    "rc_checks_total",
    "Total action checks",
)
cancels_total = Counter(
    "rc_cancels_total",
    "Checks whose action was cancelled",
)
cancels_by_client = Counter(
    "rc_cancels_by_client_total",
    "Cancelled actions per client",
    ["client_id"],
)

# ---------------------------------------------------------------------------
# Action metrics
# ---------------------------------------------------------------------------
actions_total = Counter(
    "rc_actions_total",
    "Executed log/kick actions",
    ["action"],
)

# ---------------------------------------------------------------------------
# Score distributions
# ---------------------------------------------------------------------------
violation_level = Histogram(
    "rc_violation_level",
    "Violation level after each check",
    buckets=[0, 0.001, 0.01, 0.05, 0.1, 0.5, 1, 2, 5],
)
full_window_score = Histogram(
    "rc_full_window_score",
    "Raw full-window score per check",
    buckets=[1, 2, 5, 10, 15, 20, 25, 30, 40, 60],
)
short_term_count = Histogram(
    "rc_short_term_count",
    "Short-term burst count per check",
    buckets=[1, 2, 3, 4, 5, 6, 8, 10, 15],
)

# ---------------------------------------------------------------------------
# Throughput gauge (updated every second)
# ---------------------------------------------------------------------------
checks_per_second = Gauge(
    "rc_checks_per_second",
    "Current check rate",
)
export_errors_total = Counter(
    "rc_export_errors_total",
    "JSON parse or Kafka consumer errors in the exporter",
)

running = True


def _shutdown(sig, frame):
    global running
    print("\nShutting down exporter...")
    running = False


signal.signal(signal.SIGINT, _shutdown)
signal.signal(signal.SIGTERM, _shutdown)


# ---------------------------------------------------------------------------
# Metric updaters
# ---------------------------------------------------------------------------

def _process_decision(decision: dict):
    """Update Prometheus metrics for one detector decision."""
    checks_total.inc()
    if decision.get("cancel"):
        cancels_total.inc()
        cancels_by_client.labels(client_id=decision.get("client_id", "unknown")).inc()

    violation_level.observe(decision.get("vl", 0))
    full_window_score.observe(decision.get("score", 0))
    short_term_count.observe(decision.get("short_term_count", 0))


def _process_action(record: dict):
    """Update Prometheus metrics for a log/kick action record."""
    actions_total.labels(action=record.get("action", "unknown")).inc()


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(description="Prometheus metrics exporter")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument(
        "--port", type=int, default=9090, help="Prometheus metrics HTTP port",
    )
    args = parser.parse_args()

    start_http_server(args.port)
    print(f"Prometheus metrics server started on :{args.port}")

    consumer = Consumer({
        "bootstrap.servers": args.bootstrap_servers,
        "group.id": "metrics-exporter",
        "auto.offset.reset": "latest",
        "enable.auto.commit": True,
    })
    consumer.subscribe([DECISIONS_TOPIC, ACTIONS_TOPIC])

    count = 0
    window_start = time.time()
    window_count = 0

    print(f"Exporter consuming from {DECISIONS_TOPIC} + {ACTIONS_TOPIC} ...")

    try:
        while running:
            msg = consumer.poll(1.0)
            if msg is None:
                continue
            if msg.error():
                if msg.error().code() == KafkaError._PARTITION_EOF:
                    continue
                export_errors_total.inc()
                print(f"Consumer error: {msg.error()}", file=sys.stderr)
                continue

            try:
                data = json.loads(msg.value().decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                export_errors_total.inc()
                continue

            topic = msg.topic()

            if topic == DECISIONS_TOPIC:
                _process_decision(data)
                window_count += 1
            elif topic == ACTIONS_TOPIC:
                _process_action(data)

            count += 1

            # Update checks/sec gauge roughly every second
            now = time.time()
            elapsed = now - window_start
            if elapsed >= 1.0:
                checks_per_second.set(window_count / elapsed)
                window_start = now
                window_count = 0

            if count % 5000 == 0:
                print(f"  ... {count} messages exported to metrics")
    finally:
        consumer.close()
        print(f"Exporter done. {count} messages processed.")


if __name__ == "__main__":
    main()
