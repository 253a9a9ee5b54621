"""Synthetic audit traffic generator.

Simulates the audit events a property-management app writes (logins,
failures, logouts, permission denials) for a pool of users with normal and
suspicious profiles, and publishes them to the audit-events topic for the
ingest consumer.

Usage:
    python producer.py
    python producer.py --normal 20 --brute-forcers 2 --ip-sprayers 1 --night-owls 1 --roamers 1
    python producer.py --eps 20 --topic audit-events
"""

import argparse
import json
import random
import signal
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from confluent_kafka import Producer
from confluent_kafka.admin import AdminClient, NewTopic

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/126.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_5) Safari/605.1.15",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_5 like Mac OS X) Mobile/15E148",
    "Mozilla/5.0 (X11; Linux x86_64) Firefox/127.0",
]

running = True


def _shutdown(sig, frame):
    global running
    print("\nShutting down generator...")
    running = False


# ---------------------------------------------------------------------------
# User profiles
# ---------------------------------------------------------------------------

@dataclass
class User:
    user_id: int
    role: str  # normal | brute_forcer | ip_sprayer | night_owl | roamer
    events_per_min: float
    failure_rate: float         # fraction of login attempts that fail
    ips: list[str] = field(default_factory=list)
    hour_offset: int = 0        # shifts event timestamps, night owls log in at 2-4 AM
    anonymous: bool = False     # sprayers target accounts that don't exist


def _ip(rng):
    return f"10.{rng.randint(0, 255)}.{rng.randint(0, 255)}.{rng.randint(1, 254)}"


def create_users(n_normal, n_brute, n_sprayers, n_night_owls, n_roamers, rng=random):
    """Build the user pool.  Each user gets a stable id and address set."""
    users = []
    uid = 0

    for _ in range(n_normal):
        uid += 1
        users.append(User(uid, "normal", rng.uniform(0.5, 3), 0.05, [_ip(rng)]))

    # --- Brute forcers: one account, many failures from one address ---
    for _ in range(n_brute):
        uid += 1
        users.append(User(uid, "brute_forcer", rng.uniform(10, 30), 0.9, [_ip(rng)]))

    # --- IP sprayers: one address, failures against unknown accounts ---
    for _ in range(n_sprayers):
        uid += 1
        users.append(User(uid, "ip_sprayer", rng.uniform(20, 40), 1.0, [_ip(rng)],
                          anonymous=True))

    # --- Night owls: legitimate logins, wrong time of day ---
    for _ in range(n_night_owls):
        uid += 1
        users.append(User(uid, "night_owl", rng.uniform(1, 4), 0.05, [_ip(rng)],
                          hour_offset=rng.randint(2, 4)))

    # --- Roamers: one account, a new address every few logins ---
    for _ in range(n_roamers):
        uid += 1
        users.append(User(uid, "roamer", rng.uniform(2, 6), 0.05,
                          [_ip(rng) for _ in range(6)]))

    return users


# ---------------------------------------------------------------------------
# Event generation
# ---------------------------------------------------------------------------

def make_event(user: User, now: datetime, rng=random) -> dict:
    """Generate a single audit event for a user based on their profile."""
    ts = now
    if user.hour_offset:
        # pin to the most recent early-morning hour, UTC
        ts = now.replace(hour=user.hour_offset, minute=rng.randint(0, 59))
        if ts > now:
            ts -= timedelta(days=1)

    roll = rng.random()
    if roll < user.failure_rate:
        action = "FAILED_LOGIN"
    elif roll < user.failure_rate + 0.02:
        action = "PERMISSION_DENIED"
    elif roll < user.failure_rate + 0.2:
        action = "LOGOUT"
    else:
        action = "LOGIN"

    return {
        "timestamp": ts.isoformat(),
        "action": action,
        "actorId": None if user.anonymous else user.user_id,
        "resource": "auth",
        "details": {
            "ip": rng.choice(user.ips),
            "userAgent": rng.choice(USER_AGENTS),
        },
    }


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

def _ensure_topics(bootstrap_servers, topics):
    """Create Kafka topics if they don't already exist."""
    admin = AdminClient({"bootstrap.servers": bootstrap_servers})
    new_topics = [NewTopic(t, num_partitions=3, replication_factor=1) for t in topics]
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
    parser = argparse.ArgumentParser(description="Audit event generator")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--topic", default="audit-events")
    parser.add_argument("--normal", type=int, default=8)
    parser.add_argument("--brute-forcers", type=int, default=1)
    parser.add_argument("--ip-sprayers", type=int, default=1)
    parser.add_argument("--night-owls", type=int, default=1)
    parser.add_argument("--roamers", type=int, default=1)
    parser.add_argument("--eps", type=float, default=5, help="Target events/sec")
    args = parser.parse_args()

    signal.signal(signal.SIGINT, _shutdown)   # Ctrl+C (local dev)
    signal.signal(signal.SIGTERM, _shutdown)  # docker stop / k8s pod termination

    users = create_users(
        args.normal, args.brute_forcers, args.ip_sprayers, args.night_owls, args.roamers,
    )
    weights = [u.events_per_min for u in users]

    print(f"Generating to topic '{args.topic}' at ~{args.eps} events/sec")
    print(f"Users: {len(users)} total")
    for u in users:
        print(f"  user_{u.user_id:04d}  {u.role:<14s} ~{u.events_per_min:>5.1f} epm  ips={len(u.ips)}")

    _ensure_topics(args.bootstrap_servers, [args.topic])

    producer = Producer({
        "bootstrap.servers": args.bootstrap_servers,
        "acks": "all",
        "client.id": "audit-event-generator",
    })

    count = 0
    delay = 1.0 / args.eps

    while running:
        user = random.choices(users, weights=weights, k=1)[0]
        event = make_event(user, datetime.now(timezone.utc))

        producer.produce(
            topic=args.topic,
            key=str(user.user_id).encode(),
            value=json.dumps(event),
        )
        producer.poll(0)

        count += 1
        if count % 500 == 0:
            print(f"  ... {count} events produced")

        time.sleep(delay)

    producer.flush()
    print(f"Done. {count} events produced.")


if __name__ == "__main__":
    main()
