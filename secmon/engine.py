"""Detection engine — runs every rule over one event snapshot.

Pure business logic, no store access.  The dashboard service reads the
log and the threat store, hands both in, and gets back the merged threat
list.

Pipeline per rule:
  1. Filter — does this event matter to the rule?
  2. Route  — append it to the group for rule.group_key(event)
  3. Evaluate — ask the rule whether each group fires
  4. Build  — turn each firing group into a candidate ThreatRecord
Then merge: persisted threats first, candidates that repeat an unresolved
persisted (type, subject) dropped, survivors numbered in rule order.
"""

import itertools
import logging
from dataclasses import dataclass, field

from secmon.models import ThreatRecord
from secmon.rules import ALL_RULES, Rule

logger = logging.getLogger(__name__)


@dataclass
class Detection:
    threats: list[ThreatRecord]       # persisted + surviving candidates
    candidates: list[ThreatRecord]    # surviving candidates only
    suppressed: list[ThreatRecord] = field(default_factory=list)


class DetectionEngine:

    def __init__(self, rules: list[Rule] | None = None):
        self.rules = rules or ALL_RULES

    def evaluate(self, events, window, persisted, executor=None) -> Detection:
        return self.merge(persisted, self.detect(events, window, executor))

    def detect(self, events, window, executor=None) -> list[tuple[Rule, list[ThreatRecord]]]:
        """Run each rule independently.  Results keep rule order.

        Rules share nothing but the read-only inputs, so an executor may
        run them concurrently.
        """
        events = list(events)

        def run(rule):
            return self._run_rule(rule, events, window)

        if executor is None:
            results = [run(rule) for rule in self.rules]
        else:
            results = list(executor.map(run, self.rules))
        return list(zip(self.rules, results))

    def merge(self, persisted, detected) -> Detection:
        persisted = list(persisted)
        known = {t.dedup_key for t in persisted if not t.resolved}
        ids = itertools.count(len(persisted) + 1)

        candidates, suppressed = [], []
        for rule, threats in detected:
            for threat in threats:
                if threat.dedup_key in known:
                    suppressed.append(threat)
                    continue
                threat.id = f"{rule.id}_{next(ids)}"
                candidates.append(threat)

        if suppressed:
            logger.debug("Suppressed %d candidates already on record", len(suppressed))
        return Detection(
            threats=persisted + candidates,
            candidates=candidates,
            suppressed=suppressed,
        )

    @staticmethod
    def _run_rule(rule: Rule, events, window) -> list[ThreatRecord]:
        # dict keeps first-seen order, which is newest-first event order
        groups: dict = {}
        for event in events:
            if not rule.match(event):
                continue
            key = rule.group_key(event)
            if key is None:
                continue
            groups.setdefault(key, []).append(event)

        threats = []
        for key, group in groups.items():
            if not rule.trigger(group):
                continue
            threats.append(ThreatRecord(
                id="",
                level=rule.level(group),
                type=rule.threat_type,
                description=rule.describe(key, group),
                detected_at=window.now,
                detail=rule.evidence(group, window),
                **rule.subject(key),
            ))
        return threats
