"""Activity log reader — the security-relevant slice of the audit log."""

import itertools
import logging

from secmon.errors import LogUnavailable
from secmon.models import ActivityEvent, Window

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100

_EXACT_ACTIONS = frozenset({"UNAUTHORIZED_ACCESS", "PERMISSION_DENIED", "FAILED_LOGIN"})
_ACTION_MARKERS = ("SECURITY", "LOGIN", "LOGOUT")


def is_security_relevant(action: str) -> bool:
    if action in _EXACT_ACTIONS:
        return True
    return any(marker in action for marker in _ACTION_MARKERS)


class ActivityLogReader:
    """Reads at most ``limit`` security events per window, newest first.

    The cap bounds detector cost; it is applied after filtering so noisy
    non-security actions never crowd out logins.
    """

    def __init__(self, store, limit: int = DEFAULT_LIMIT):
        self.store = store
        self.limit = limit

    def read(self, window: Window) -> list[ActivityEvent]:
        try:
            rows = self.store.fetch_events(window.since, window.now)
            relevant = (e for e in rows if is_security_relevant(e.action))
            events = list(itertools.islice(relevant, self.limit))
        except Exception as exc:
            logger.exception("Activity log read failed for window %s", window.timeframe)
            raise LogUnavailable() from exc
        logger.debug("Read %d security events for %s", len(events), window.timeframe)
        return events
