"""Audit ingest consumer — reads audit events from Kafka into the activity log.

Every service that performs an audited action publishes a JSON audit event
to the audit-events topic.  This consumer appends each one to the SQLite
activity log the dashboard reads.  One consumer instance per partition
(scaled via consumer group).

Usage:
    python -m ingest.main
    python -m ingest.main --bootstrap-servers kafka-1:29092 --db data/secmon.db
"""

import argparse
import json
import signal
import sys

from confluent_kafka import Consumer, KafkaError

from secmon.models import ActivityEvent
from secmon.storage import DB_PATH, SQLiteStore

running = True


def _shutdown(sig, frame):
    global running
    print("\nShutting down ingest consumer...")
    running = False


def decode_event(payload: bytes) -> ActivityEvent | None:
    """Parse one message.  Returns None for anything malformed."""
    try:
        data = json.loads(payload.decode("utf-8"))
        if not isinstance(data, dict):
            return None
        return ActivityEvent.from_dict(data)
    except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError):
        return None


def main():
    parser = argparse.ArgumentParser(description="Audit event ingest consumer")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--topic", default="audit-events")
    parser.add_argument("--group-id", default="secmon-ingest")
    parser.add_argument("--db", default=DB_PATH)
    args = parser.parse_args()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    store = SQLiteStore(args.db)
    store.connect()
    store.init_db()

    consumer = Consumer({
        "bootstrap.servers": args.bootstrap_servers,
        "group.id": args.group_id,
        "auto.offset.reset": "earliest",
        "enable.auto.commit": True,
    })
    consumer.subscribe([args.topic])

    consumed = 0
    rejected = 0
    print(f"Ingest consumer started  topic={args.topic}  db={args.db}")

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

            event = decode_event(msg.value())
            if event is None:
                rejected += 1
                print(f"Rejected malformed audit event at offset {msg.offset()}",
                      file=sys.stderr)
                continue

            store.append_event(event)
            consumed += 1

            if consumed % 500 == 0:
                print(f"  ... {consumed} audit events ingested, {rejected} rejected")
    finally:
        consumer.close()
        store.close()
        print(f"Done. {consumed} audit events ingested, {rejected} rejected.")


if __name__ == "__main__":
    main()
