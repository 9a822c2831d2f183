"""Player action event generator.

Simulates block placement traffic from a pool of players with normal and
abusive profiles.  Normal builders place in short human-paced bursts with
pauses in between; fast placers sustain rates no human hand can.

Usage:
    python producer.py
    python producer.py --builders 20 --fast-placers 2 --burst-placers 2
    python producer.py --eps 100 --topic player-actions
"""

import argparse
import json
import random
import signal
import time
from dataclasses import dataclass

from confluent_kafka import Producer
from confluent_kafka.admin import AdminClient, NewTopic

from ratecheck.clock import TICK_MILLIS

running = True


def _shutdown(sig, frame):
    global running
    print("\nShutting down generator...")
    running = False


signal.signal(signal.SIGINT, _shutdown)   # Ctrl+C (local dev)
signal.signal(signal.SIGTERM, _shutdown)  # docker stop / k8s pod termination


# ---------------------------------------------------------------------------
# Player profiles
# ---------------------------------------------------------------------------

@dataclass
class Player:
    client_id: str
    role: str  # builder | fast_placer | burst_placer
    places_per_sec: float
    burst_size: int          # placements emitted back-to-back
    session_end_rate: float  # chance per emission that the player logs off


def _create_players(n_builders, n_fast, n_burst):
    players = []
    pid = 0

    # --- Builders: 2-8 placements/s, small bursts ---
    for _ in range(n_builders):
        pid += 1
        players.append(Player(
            client_id=f"player_{pid:04d}", role="builder",
            places_per_sec=random.uniform(2, 8), burst_size=random.randint(1, 3),
            session_end_rate=0.001,
        ))

    # --- Fast placers: sustained rate well over the full-window limit ---
    for _ in range(n_fast):
        pid += 1
        players.append(Player(
            client_id=f"player_{pid:04d}", role="fast_placer",
            places_per_sec=random.uniform(15, 30), burst_size=1,
            session_end_rate=0.0,
        ))

    # --- Burst placers: normal average, but dump many placements at once ---
    for _ in range(n_burst):
        pid += 1
        players.append(Player(
            client_id=f"player_{pid:04d}", role="burst_placer",
            places_per_sec=random.uniform(4, 8), burst_size=random.randint(6, 10),
            session_end_rate=0.0,
        ))

    return players


# ---------------------------------------------------------------------------
# Event generation
# ---------------------------------------------------------------------------

def _make_events(player: Player) -> list[dict]:
    """One emission for *player*: a burst of placements, or a session end."""
    now_ms = time.time() * 1000
    if random.random() < player.session_end_rate:
        return [{
            "event_type": "session_end",
            "client_id": player.client_id,
            "timestamp": now_ms,
        }]
    return [{
        "event_type": "block_place",
        "client_id": player.client_id,
        "timestamp": now_ms + i,
        # A burst leaves the client within one tick.
        "tick": int(now_ms // TICK_MILLIS),
        "weight": 1.0,
        "role": player.role,
    } for i in range(player.burst_size)]


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

def _ensure_topics(bootstrap_servers, topics):
    """Create Kafka topics if they don't already exist."""
    admin = AdminClient({"bootstrap.servers": bootstrap_servers})
    new_topics = [NewTopic(t, num_partitions=3, replication_factor=3) for t in topics]
    fs = admin.create_topics(new_topics)
    for topic, f in fs.items():
        try:
            f.result()
            print(f"Created topic '{topic}'")
        except Exception as e:
            if "TOPIC_ALREADY_EXISTS" in str(e):
                print(f"Topic '{topic}' already exists")
            else:
                raise


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(description="Player action generator")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--topic", default="player-actions")
    parser.add_argument("--builders", type=int, default=8)
    parser.add_argument("--fast-placers", type=int, default=1)
    parser.add_argument("--burst-placers", type=int, default=1)
    parser.add_argument("--eps", type=float, default=50, help="Target emissions/sec")
    args = parser.parse_args()

    players = _create_players(args.builders, args.fast_placers, args.burst_placers)
    weights = [p.places_per_sec / p.burst_size for p in players]

    print(f"Generating to topic '{args.topic}' at ~{args.eps} emissions/sec")
    print(f"Players: {len(players)} total")
    for p in players:
        print(f"  {p.client_id}  {p.role:<13s} ~{p.places_per_sec:>5.1f} pps  "
              f"burst={p.burst_size}")

    _ensure_topics(args.bootstrap_servers, [args.topic])

    producer = Producer({
        "bootstrap.servers": args.bootstrap_servers,
        "acks": "all",
        "client.id": "player-action-generator",
    })

    count = 0
    delay = 1.0 / args.eps

    while running:
        player = random.choices(players, weights=weights, k=1)[0]
        for event in _make_events(player):
            producer.produce(
                topic=args.topic,
                key=event["client_id"].encode(),
                value=json.dumps(event),
            )
            count += 1
            if count % 500 == 0:
                print(f"  ... {count} events produced")
        producer.poll(0)

        time.sleep(delay)

    producer.flush()
    print(f"Done. {count} events produced.")


if __name__ == "__main__":
    main()
