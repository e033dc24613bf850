"""Best-effort outbound calls (audit, notifications, real-time broadcast).

Failures here are logged and swallowed: they must never fail or roll back the
operation that triggered them. Services queue calls in ``PendingEvents`` while
a store transaction is open and dispatch them only after it commits.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .logging_sinks import LoggingAuditSink, LoggingBroadcaster, LoggingNotifier
from .sinks import AuditSink, Broadcaster, Notifier

logger = logging.getLogger(__name__)

LEAVE_STATUS_UPDATED = "leave_status_updated"
ATTENDANCE_LOG_UPDATED = "attendance_log_updated"


class OutboundEvents:
    def __init__(
        self,
        audit: Optional[AuditSink] = None,
        notifier: Optional[Notifier] = None,
        broadcaster: Optional[Broadcaster] = None,
    ):
        self._audit = audit or LoggingAuditSink()
        self._notifier = notifier or LoggingNotifier()
        self._broadcaster = broadcaster or LoggingBroadcaster()

    def audit(self, event: str, actor_id: Optional[int], details: Mapping[str, Any]) -> None:
        try:
            self._audit.record(event, actor_id, details)
        except Exception:
            logger.warning("Audit sink failed for %s", event, exc_info=True)

    def notify(self, user_id: int, message: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        try:
            self._notifier.notify(user_id, message, metadata or {})
        except Exception:
            logger.warning("Notification to %s failed", user_id, exc_info=True)

    def notify_admins(self, message: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        try:
            self._notifier.notify_admins(message, metadata or {})
        except Exception:
            logger.warning("Admin notification failed", exc_info=True)

    def emit(self, event_name: str, payload: Mapping[str, Any]) -> None:
        try:
            self._broadcaster.emit(event_name, payload)
        except Exception:
            logger.debug("Broadcast of %s failed", event_name, exc_info=True)


class PendingEvents:
    """Outbound calls queued during a transaction."""

    def __init__(self):
        self._calls: list[tuple[str, tuple, dict]] = []

    def __len__(self) -> int:
        return len(self._calls)

    def audit(self, event: str, actor_id: Optional[int], details: Mapping[str, Any]) -> None:
        self._calls.append(("audit", (event, actor_id, details), {}))

    def notify(self, user_id: int, message: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        self._calls.append(("notify", (user_id, message, metadata), {}))

    def notify_admins(self, message: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        self._calls.append(("notify_admins", (message, metadata), {}))

    def emit(self, event_name: str, payload: Mapping[str, Any]) -> None:
        self._calls.append(("emit", (event_name, payload), {}))

    def dispatch(self, events: OutboundEvents) -> None:
        calls, self._calls = self._calls, []
        for name, args, kwargs in calls:
            getattr(events, name)(*args, **kwargs)
