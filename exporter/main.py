"""Prometheus metrics exporter — polls the security dashboard and exposes it.

Calls the dashboard service on a fixed interval against the SQLite store
and mirrors the snapshot into Prometheus gauges.  Grafana reads from
Prometheus to chart threat levels over time.  The engine itself keeps no
schedule; this loop is just another caller.

Usage:
    python -m exporter.main
    python -m exporter.main --db data/secmon.db --port 9090 --interval 30 --timeframe 1h
"""

import argparse
import signal
import sys
import time

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from secmon.config import load_settings
from secmon.dashboard import SecurityDashboardService
from secmon.errors import SecMonError
from secmon.models import LEVELS, TIMEFRAMES, Principal
from secmon.storage import DB_PATH, SQLiteStore

# ---------------------------------------------------------------------------
# Threat metrics
# ---------------------------------------------------------------------------
# Gauges, not counters: each poll re-derives the same ephemeral candidates,
# so the snapshot value is what means something.
active_threats = Gauge(
    "secmon_active_threats",
    "Unresolved threats in the current window",
    ["level"],
)
candidate_threats = Gauge(
    "secmon_candidate_threats",
    "Threats raised by detectors and not yet on record",
    ["threat_type"],
)
threats_by_type = Gauge(
    "secmon_threats_by_type",
    "Threats in the merged set, resolved or not",
    ["threat_type"],
)
average_resolution_hours = Gauge(
    "secmon_average_resolution_hours",
    "Mean time from detection to resolution across resolved threats",
)

# ---------------------------------------------------------------------------
# Alert metrics
# ---------------------------------------------------------------------------
recent_alerts = Gauge(
    "secmon_recent_alerts",
    "Alerts in the dashboard's recent list",
    ["alert_level"],
)
last_alert_timestamp = Gauge(
    "secmon_last_alert_timestamp_seconds",
    "Unix time of the last alert in the recent list (0 if none)",
)

# ---------------------------------------------------------------------------
# Computation health
# ---------------------------------------------------------------------------
dashboard_runs_total = Counter(
    "secmon_dashboard_runs_total",
    "Dashboard computations attempted",
)
dashboard_errors_total = Counter(
    "secmon_dashboard_errors_total",
    "Dashboard computations that failed",
    ["error"],
)
dashboard_latency = Histogram(
    "secmon_dashboard_compute_seconds",
    "Wall time of one dashboard computation",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10],
)

running = True


def _shutdown(sig, frame):
    global running
    print("\nShutting down exporter...")
    running = False


# ---------------------------------------------------------------------------
# Metric updaters
# ---------------------------------------------------------------------------

def record_dashboard(dashboard, duration: float):
    """Mirror one dashboard snapshot into the gauges."""
    dashboard_latency.observe(duration)
    metrics = dashboard.metrics

    for level in LEVELS:
        active_threats.labels(level=level).set(metrics.active_threats_by_level[level])

    # Drop label sets that vanished since the last poll.
    threats_by_type.clear()
    for threat_type, count in metrics.threats_by_type.items():
        threats_by_type.labels(threat_type=threat_type).set(count)

    candidate_threats.clear()
    for threat in dashboard.new_threats:
        candidate_threats.labels(threat_type=threat.type).inc()

    recent_alerts.clear()
    for alert in dashboard.recent_alerts:
        recent_alerts.labels(alert_level=alert.alert_level).inc()

    average_resolution_hours.set(metrics.average_resolution_time)
    last = dashboard.summary.last_alert_time
    last_alert_timestamp.set(last.timestamp() if last is not None else 0)


def poll_once(service, principal, timeframe):
    """Run one computation and update metrics.  Returns the dashboard or None."""
    dashboard_runs_total.inc()
    start = time.monotonic()
    try:
        dashboard = service.get_security_data(principal, timeframe)
    except SecMonError as e:
        dashboard_errors_total.labels(error=type(e).__name__).inc()
        print(f"Dashboard poll failed: {e}", file=sys.stderr)
        return None
    record_dashboard(dashboard, time.monotonic() - start)
    return dashboard


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(description="Security metrics exporter")
    parser.add_argument("--db", default=DB_PATH)
    parser.add_argument("--config", default=None)
    parser.add_argument(
        "--port", type=int, default=9090, help="Prometheus metrics HTTP port",
    )
    parser.add_argument("--interval", type=float, default=30.0, help="Seconds between polls")
    parser.add_argument("--timeframe", choices=sorted(TIMEFRAMES), default="24h")
    parser.add_argument("--user-id", type=int, default=0, help="Service principal id")
    args = parser.parse_args()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    settings = load_settings(args.config)
    store = SQLiteStore(args.db)
    store.connect()
    store.init_db()
    service = SecurityDashboardService(store, settings)
    principal = Principal(user_id=args.user_id, role=settings.admin_roles[0])

    start_http_server(args.port)
    print(f"Prometheus metrics server started on :{args.port}")
    print(f"Polling dashboard every {args.interval:.0f}s  timeframe={args.timeframe}  db={args.db}")

    polls = 0
    try:
        while running:
            dashboard = poll_once(service, principal, args.timeframe)
            polls += 1
            if dashboard is not None and polls % 10 == 0:
                s = dashboard.summary
                print(f"  ... {polls} polls  active={s.total_active_threats}  "
                      f"critical={s.critical_threats}  high={s.high_threats}")

            deadline = time.monotonic() + args.interval
            while running and time.monotonic() < deadline:
                time.sleep(0.5)
    finally:
        store.close()
        print(f"Exporter done. {polls} polls.")


if __name__ == "__main__":
    main()
