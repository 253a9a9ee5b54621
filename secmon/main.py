"""Command-line access to the security dashboard.

Runs against the SQLite store and prints JSON, acting as the given
principal (authorization still applies).

Usage:
    python -m secmon.main --user-id 1 --role super_admin dashboard --timeframe 1h
    python -m secmon.main --user-id 1 --role super_admin resolve 42 "False positive, user confirmed"
    python -m secmon.main --user-id 1 --role super_admin ack alert_audit_threat_3 --notes "Paged on-call"
    python -m secmon.main --user-id 1 --role super_admin monitor on
    python -m secmon.main --db data/secmon.db --user-id 1 --role super_admin dashboard
"""

import argparse
import json
import logging
import sys

from secmon.config import load_settings
from secmon.dashboard import SecurityDashboardService
from secmon.errors import SecMonError
from secmon.models import TIMEFRAMES, Principal
from secmon.storage import DB_PATH, SQLiteStore


def _build_parser():
    parser = argparse.ArgumentParser(description="Security dashboard CLI")
    parser.add_argument("--db", default=DB_PATH)
    parser.add_argument("--config", default=None, help="Settings YAML (default: $SECMON_CONFIG)")
    # no defaults: the caller names the principal it acts as
    parser.add_argument("--user-id", type=int, required=True)
    parser.add_argument("--role", required=True)
    parser.add_argument("-v", "--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)

    dash = sub.add_parser("dashboard", help="Print the dashboard snapshot")
    dash.add_argument("--timeframe", choices=sorted(TIMEFRAMES), default=None)

    resolve = sub.add_parser("resolve", help="Resolve a threat")
    resolve.add_argument("threat_id")
    resolve.add_argument("resolution")

    ack = sub.add_parser("ack", help="Acknowledge an alert")
    ack.add_argument("alert_id")
    ack.add_argument("--notes", default=None)

    monitor = sub.add_parser("monitor", help="Turn monitoring on or off")
    monitor.add_argument("state", choices=["on", "off"])
    return parser


def main(argv=None):
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = SQLiteStore(args.db)
    store.connect()
    store.init_db()
    service = SecurityDashboardService(store, load_settings(args.config))
    principal = Principal(user_id=args.user_id, role=args.role)

    try:
        if args.command == "dashboard":
            result = service.get_security_data(principal, args.timeframe).to_dict()
        elif args.command == "resolve":
            result = service.resolve_threat(principal, args.threat_id, args.resolution)
        elif args.command == "ack":
            result = service.acknowledge_alert(principal, args.alert_id, args.notes)
        else:
            result = service.set_monitoring(principal, args.state == "on")
    except SecMonError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
