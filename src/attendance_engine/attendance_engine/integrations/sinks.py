from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol


class AuditSink(Protocol):
    def record(self, event: str, actor_id: Optional[int], details: Mapping[str, Any]) -> None:
        raise NotImplementedError


class Notifier(Protocol):
    def notify(self, user_id: int, message: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        raise NotImplementedError

    def notify_admins(self, message: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        raise NotImplementedError


class Broadcaster(Protocol):
    def emit(self, event_name: str, payload: Mapping[str, Any]) -> None:
        raise NotImplementedError
