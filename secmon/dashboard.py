"""Security dashboard service — the engine's public entry point.

One call to get_security_data() is one self-contained computation:

  1. Read   — activity log, unresolved threats, window alerts and resolved
              threats, issued concurrently under one deadline
  2. Detect — DetectionEngine runs the rules and merges with the store
  3. Report — compute_metrics + AlertEmitter feed the SecurityDashboard

A failed read aborts the whole call; there is no partial dashboard.
The resolve, acknowledge and monitoring side channels fail on their own.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone

from secmon.activity_log import ActivityLogReader
from secmon.aggregate import SecurityMetrics, compute_metrics
from secmon.alerts import AlertEmitter
from secmon.config import Settings
from secmon.engine import DetectionEngine
from secmon.errors import (
    InvalidTimeframe, OperationFailed, SecMonError, StoreUnavailable,
    Unauthenticated, Unauthorized,
)
from secmon.models import (
    TIMEFRAMES, ActivityEvent, AlertRecord, Principal, ThreatRecord, Window, isoformat,
)
from secmon.rules.loader import load_rules

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.now(timezone.utc)


@dataclass
class DashboardSummary:
    total_active_threats: int
    critical_threats: int
    high_threats: int
    last_alert_time: datetime | None

    def to_dict(self) -> dict:
        return {
            "totalActiveThreats": self.total_active_threats,
            "criticalThreats": self.critical_threats,
            "highThreats": self.high_threats,
            "lastAlertTime": isoformat(self.last_alert_time),
        }


@dataclass
class SecurityDashboard:
    metrics: SecurityMetrics
    active_threats: list[ThreatRecord]
    recent_alerts: list[AlertRecord]
    summary: DashboardSummary
    # Diagnostics for the exporter; not part of to_dict().
    window: Window | None = field(default=None, repr=False)
    new_threats: list[ThreatRecord] = field(default_factory=list, repr=False)

    def to_dict(self) -> dict:
        return {
            "metrics": self.metrics.to_dict(),
            "activeThreats": [t.to_dict() for t in self.active_threats],
            "recentAlerts": [a.to_dict() for a in self.recent_alerts],
            "summary": self.summary.to_dict(),
        }


@dataclass
class _Snapshot:
    events: list
    unresolved: list
    alerts: list
    resolved: list


class SecurityDashboardService:

    def __init__(self, store, settings: Settings | None = None,
                 engine: DetectionEngine | None = None, clock=None):
        self.store = store
        self.settings = settings or Settings()
        self.engine = engine or DetectionEngine(
            load_rules(self.settings.rules_path, timezone=self.settings.timezone)
        )
        self.reader = ActivityLogReader(store, self.settings.event_limit)
        self.emitter = AlertEmitter()
        self.clock = clock or _utcnow
        self.monitoring_enabled = False

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorize(self, principal: Principal | None) -> Principal:
        if principal is None:
            raise Unauthenticated()
        if principal.role not in self.settings.admin_roles:
            logger.warning("Security access denied for user %s (role=%s)",
                           principal.user_id, principal.role)
            raise Unauthorized()
        return principal

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def get_security_data(self, principal: Principal | None,
                          timeframe: str | None = None) -> SecurityDashboard:
        self.authorize(principal)
        timeframe = timeframe or self.settings.default_timeframe
        if timeframe not in TIMEFRAMES:
            raise InvalidTimeframe()

        window = Window.for_timeframe(timeframe, self.clock())
        try:
            return self._compute(window)
        except SecMonError:
            raise
        except Exception as exc:
            logger.exception("Security dashboard computation failed")
            raise SecMonError(StoreUnavailable.message) from exc

    def _compute(self, window: Window) -> SecurityDashboard:
        s = self.settings
        pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="secmon")
        try:
            snap = self._read_snapshot(pool, window)
            detection = self.engine.evaluate(snap.events, window, snap.unresolved, executor=pool)
        finally:
            # don't wait on a read that blew the deadline
            pool.shutdown(wait=False, cancel_futures=True)

        metrics = compute_metrics(
            detection.threats, snap.events, snap.resolved,
            top_n=s.top_n, recent=s.recent_limit,
        )
        alerts = self.emitter.emit(snap.alerts, detection.candidates, window.now)
        recent_alerts = alerts[-s.recent_limit:] if s.recent_limit > 0 else []
        active = [t for t in detection.threats if not t.resolved]

        summary = DashboardSummary(
            total_active_threats=len(active),
            critical_threats=sum(1 for t in active if t.level == "critical"),
            high_threats=sum(1 for t in active if t.level == "high"),
            last_alert_time=recent_alerts[-1].sent_at if recent_alerts else None,
        )
        logger.info(
            "Security dashboard %s: %d active threats (%d new, %d suppressed), %d alerts",
            window.timeframe, len(active), len(detection.candidates),
            len(detection.suppressed), len(recent_alerts),
        )
        return SecurityDashboard(
            metrics=metrics,
            active_threats=active,
            recent_alerts=recent_alerts,
            summary=summary,
            window=window,
            new_threats=detection.candidates,
        )

    def _read_snapshot(self, pool, window: Window) -> _Snapshot:
        # The four reads are independent; issue them together.
        futures = {
            "events": pool.submit(self.reader.read, window),
            "unresolved": pool.submit(self.store.list_unresolved, None, window),
            "alerts": pool.submit(self.store.list_alerts, window, self.settings.alert_fetch_limit),
            "resolved": pool.submit(self.store.list_resolved),
        }
        _, pending = wait(futures.values(), timeout=self.settings.deadline_seconds)
        if pending:
            logger.error("Security store reads exceeded %.1fs deadline",
                         self.settings.deadline_seconds)
            raise StoreUnavailable()

        results = {}
        for name, future in futures.items():
            try:
                results[name] = list(future.result())
            except StoreUnavailable:
                raise
            except Exception as exc:
                logger.exception("Security store read failed: %s", name)
                raise StoreUnavailable() from exc
        return _Snapshot(**results)

    # ------------------------------------------------------------------
    # Side channels
    # ------------------------------------------------------------------

    def resolve_threat(self, principal: Principal | None, threat_id: str, resolution: str) -> dict:
        """Record a resolution.  In "mutate" mode the stored threat is closed too."""
        self.authorize(principal)
        if not threat_id or not resolution:
            raise ValueError("threat_id and resolution are required")

        now = self.clock()
        entry = ActivityEvent(
            timestamp=now,
            action="SECURITY_THREAT_RESOLVED",
            actor_id=principal.user_id,
            resource="security",
            resource_id=threat_id,
            details={
                "threatId": threat_id,
                "resolution": resolution,
                "resolvedBy": principal.user_id,
                "resolvedAt": now.isoformat(),
            },
        )
        try:
            if self.settings.resolution_mode == "mutate":
                # the store writes the flip and the audit row atomically
                found = self.store.resolve_threat(
                    threat_id, principal.user_id, resolution, now, audit=entry,
                )
                if not found:
                    return {"success": False, "message": "Threat not found or already resolved"}
            else:
                self.store.append_event(entry)
        except Exception as exc:
            logger.exception("Failed to resolve security threat %s", threat_id)
            raise OperationFailed("Failed to resolve security threat") from exc

        logger.info("Threat %s resolved by user %s", threat_id, principal.user_id)
        return {"success": True, "message": "Threat resolved successfully"}

    def set_monitoring(self, principal: Principal | None, enabled: bool = True) -> dict:
        self.authorize(principal)
        now = self.clock()
        verb = "started" if enabled else "stopped"
        try:
            self.store.append_audit_entry(
                principal.user_id,
                f"SECURITY_MONITORING_{verb.upper()}",
                "security",
                None,
                {f"{verb}By": principal.user_id, "timestamp": now.isoformat()},
                now,
            )
        except Exception as exc:
            logger.exception("Failed to toggle security monitoring")
            action = "start" if enabled else "stop"
            raise OperationFailed(f"Failed to {action} security monitoring") from exc

        self.monitoring_enabled = enabled
        return {"success": True, "message": f"Security monitoring {verb} successfully"}

    def acknowledge_alert(self, principal: Principal | None, alert_id: str,
                          notes: str | None = None) -> dict:
        """Record that an administrator has seen an alert.  Audit entry only."""
        self.authorize(principal)
        if not alert_id:
            raise ValueError("alert_id is required")

        now = self.clock()
        try:
            self.store.append_audit_entry(
                principal.user_id,
                "SECURITY_ALERT_ACKNOWLEDGED",
                "security",
                alert_id,
                {
                    "alertId": alert_id,
                    "acknowledgedBy": principal.user_id,
                    "acknowledgedAt": now.isoformat(),
                    "notes": notes,
                },
                now,
            )
        except Exception as exc:
            logger.exception("Failed to acknowledge security alert %s", alert_id)
            raise OperationFailed("Failed to acknowledge security alert") from exc

        logger.info("Alert %s acknowledged by user %s", alert_id, principal.user_id)
        return {"success": True, "message": "Security alert acknowledged successfully"}

    def start_monitoring(self, principal: Principal | None) -> dict:
        return self.set_monitoring(principal, True)

    def stop_monitoring(self, principal: Principal | None) -> dict:
        return self.set_monitoring(principal, False)
