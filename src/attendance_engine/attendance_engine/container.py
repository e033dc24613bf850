from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.factory import AttendanceStrategyFactory
from .attendance.service import AttendanceService
from .core.constants import DEFAULT_GRACE_MINUTES, GRACE_CACHE_TTL_SECONDS, GRACE_WAIT_TIMEOUT_SECONDS
from .database.connection import DatabaseConnection
from .database.memory_store import InMemoryRecordStore, InMemorySettingsRepository
from .database.mysql_store import MySQLRecordStore
from .database.store import RecordStore
from .integrations.outbound import OutboundEvents
from .leaves.ledger import LeaveBalanceLedger
from .leaves.policy import LeavePolicyValidator
from .leaves.service import LeaveRequestService
from .leaves.sync import AttendanceLeaveSynchronizer
from .settings.grace_period import GracePeriodProvider
from .settings.mysql_settings_repository import MySQLSettingsRepository
from .settings.repository import SettingsRepository


@dataclass(frozen=True)
class Container:
    store: RecordStore
    settings_repo: SettingsRepository
    events: OutboundEvents

    grace: GracePeriodProvider
    ledger: LeaveBalanceLedger
    policy_validator: LeavePolicyValidator

    attendance_service: AttendanceService
    leave_request_service: LeaveRequestService
    leave_sync: AttendanceLeaveSynchronizer


def build_container(
    *,
    db_config: Optional[dict] = None,
    store_backend: str = "mysql",
    default_grace_minutes: int = DEFAULT_GRACE_MINUTES,
    grace_ttl_seconds: float = GRACE_CACHE_TTL_SECONDS,
    grace_wait_timeout: float = GRACE_WAIT_TIMEOUT_SECONDS,
    events: Optional[OutboundEvents] = None,
    store: Optional[RecordStore] = None,
    settings_repo: Optional[SettingsRepository] = None,
) -> Container:
    backend = (store_backend or "mysql").lower()
    if store is None or settings_repo is None:
        if backend == "memory":
            store = store or InMemoryRecordStore()
            settings_repo = settings_repo or InMemorySettingsRepository()
        elif backend == "mysql":
            if not db_config:
                raise ValueError("db_config is required for the mysql store backend")
            conn = DatabaseConnection.from_settings(db_config)
            store = store or MySQLRecordStore(conn)
            settings_repo = settings_repo or MySQLSettingsRepository(conn)
        else:
            raise ValueError(f"Unknown store backend: {store_backend!r}")

    events = events or OutboundEvents()
    strategy_factory = AttendanceStrategyFactory()
    grace = GracePeriodProvider(
        settings_repo,
        ttl_seconds=grace_ttl_seconds,
        default_minutes=default_grace_minutes,
        wait_timeout=grace_wait_timeout,
    )
    ledger = LeaveBalanceLedger()
    policy_validator = LeavePolicyValidator()

    attendance_service = AttendanceService(store, grace, events=events, strategy_factory=strategy_factory)
    leave_request_service = LeaveRequestService(store, validator=policy_validator, ledger=ledger, events=events)
    leave_sync = AttendanceLeaveSynchronizer(
        store,
        grace,
        ledger=ledger,
        validator=policy_validator,
        events=events,
        strategy_factory=strategy_factory,
    )

    return Container(
        store=store,
        settings_repo=settings_repo,
        events=events,
        grace=grace,
        ledger=ledger,
        policy_validator=policy_validator,
        attendance_service=attendance_service,
        leave_request_service=leave_request_service,
        leave_sync=leave_sync,
    )
