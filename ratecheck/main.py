"""Detection service: reads player actions, runs the engine, produces decisions.

Consumes from player-actions, checks every block_place event against the
configured limits, and publishes one decision per event plus any
log/kick action records.  Events are keyed by client_id, so one client is
only ever handled by one consumer instance (scaled via consumer group).

Usage:
    python -m ratecheck.main
    python -m ratecheck.main --bootstrap-servers kafka-1:29092 --config limits.yml
"""

import argparse
import json
import signal
import sys

from confluent_kafka import Consumer, Producer, KafkaError
from confluent_kafka.admin import AdminClient, NewTopic

from ratecheck.clock import ServerTickClock
from ratecheck.config import load_config, DEFAULT_CONFIG
from ratecheck.engine import DetectionEngine

running = True


def _shutdown(sig, frame):
    global running
    print("\nShutting down detection service...")
    running = False


signal.signal(signal.SIGINT, _shutdown)
signal.signal(signal.SIGTERM, _shutdown)


def _ensure_topics(bootstrap_servers, topics):
    """Create output topics if they don't already exist."""
    admin = AdminClient({"bootstrap.servers": bootstrap_servers})
    fs = admin.create_topics([NewTopic(t, num_partitions=3, replication_factor=3)
                              for t in topics])
    for t, f in fs.items():
        try:
            f.result()
            print(f"Created topic '{t}'")
        except Exception as e:
            if "TOPIC_ALREADY_EXISTS" in str(e):
                print(f"Topic '{t}' already exists")
            else:
                raise


def handle_event(engine, event):
    """Route one decoded event.  Returns the decision, or None for control events."""
    if event.get("event_type") == "session_end":
        engine.end_session(event["client_id"])
        return None
    return engine.evaluate(event)


def process_event(engine, event):
    """handle_event that reports and skips a malformed event instead of raising."""
    if not isinstance(event, dict):
        print(f"Skipping malformed event: expected an object, got {event!r}",
              file=sys.stderr)
        return None
    try:
        return handle_event(engine, event)
    except (KeyError, TypeError, ValueError) as e:
        print(f"Skipping malformed event {event!r}: {e!r}", file=sys.stderr)
        return None


def main():
    parser = argparse.ArgumentParser(description="Action rate detection service")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--input-topic", default="player-actions")
    parser.add_argument("--output-topic", default="fastplace-decisions")
    parser.add_argument("--actions-topic", default="fastplace-actions")
    parser.add_argument("--group-id", default="fastplace-detector")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG))
    args = parser.parse_args()

    config = load_config(args.config)

    _ensure_topics(args.bootstrap_servers, [args.output_topic, args.actions_topic])

    consumer = Consumer({
        "bootstrap.servers": args.bootstrap_servers,
        "group.id": args.group_id,
        "auto.offset.reset": "earliest",
        "enable.auto.commit": True,
    })
    consumer.subscribe([args.input_topic])

    producer = Producer({"bootstrap.servers": args.bootstrap_servers})

    clock = ServerTickClock()
    clock.start()
    engine = DetectionEngine(config, clock)
    consumed = 0
    cancelled = 0
    actions_produced = 0

    print(f"Detection service started  input={args.input_topic}  "
          f"output={args.output_topic}  limit={config.full_window_limit}  "
          f"short_term={config.short_term_limit}/{config.short_term_ticks}t  "
          f"lag={'on' if config.lag_compensation else 'off'}")

    try:
        while running:
            msg = consumer.poll(1.0)
            if msg is None:
                continue
            if msg.error():
                if msg.error().code() == KafkaError._PARTITION_EOF:
                    continue
                print(f"Consumer error: {msg.error()}", file=sys.stderr)
                continue

            try:
                event = json.loads(msg.value().decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                continue

            consumed += 1
            decision = process_event(engine, event)
            if decision is None:
                continue

            key = str(decision["client_id"]).encode()
            producer.produce(args.output_topic, key=key,
                             value=json.dumps(decision).encode("utf-8"))
            cancelled += decision["cancel"]

            for record in decision["actions"]:
                producer.produce(args.actions_topic, key=key,
                                 value=json.dumps(record).encode("utf-8"))
                actions_produced += 1
                print(f"ACTION {record['action']:<6s} "
                      f"client={record['client_id']}  vl={record['vl']:.3f}  "
                      f"threshold={record['threshold']}")

            # Batch flush every 1000 events (producer buffers internally)
            if consumed % 1000 == 0:
                producer.flush()

            if consumed % 500 == 0:
                print(f"  ... {consumed} events consumed, {cancelled} cancelled, "
                      f"{len(engine)} active clients")
    finally:
        clock.stop()
        producer.flush()
        consumer.close()
        print(f"Done. {consumed} events consumed, {cancelled} cancelled, "
              f"{actions_produced} actions produced.")


if __name__ == "__main__":
    main()
