from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .sinks import AuditSink, Broadcaster, Notifier

audit_logger = logging.getLogger("attendance_engine.audit")
notify_logger = logging.getLogger("attendance_engine.notify")
broadcast_logger = logging.getLogger("attendance_engine.broadcast")


class LoggingAuditSink(AuditSink):
    def record(self, event: str, actor_id: Optional[int], details: Mapping[str, Any]) -> None:
        audit_logger.info("%s actor=%s details=%s", event, actor_id, dict(details))


class LoggingNotifier(Notifier):
    def notify(self, user_id: int, message: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        notify_logger.info("to=%s %s %s", user_id, message, dict(metadata or {}))

    def notify_admins(self, message: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        notify_logger.info("to=admins %s %s", message, dict(metadata or {}))


class LoggingBroadcaster(Broadcaster):
    def emit(self, event_name: str, payload: Mapping[str, Any]) -> None:
        broadcast_logger.debug("%s %s", event_name, dict(payload))
