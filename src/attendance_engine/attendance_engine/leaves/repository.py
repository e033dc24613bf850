from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import RequestStatus
from .model import Holiday, LeaveRequest


class LeaveRequestRepository(Protocol):
    def get_by_id(self, request_id: int, *, for_update: bool = False) -> Optional[LeaveRequest]:
        raise NotImplementedError

    def create(self, request: LeaveRequest) -> int:
        raise NotImplementedError

    def list_for_employee_between(
        self,
        employee_id: int,
        *,
        start_date: date,
        end_date: date,
        statuses: Iterable[RequestStatus],
    ) -> Sequence[LeaveRequest]:
        """Requests of the employee with at least one leave date inside the range."""

        raise NotImplementedError

    def list_approved_covering(self, employee_id: int, day: date) -> Sequence[LeaveRequest]:
        raise NotImplementedError

    def transition(
        self,
        request_id: int,
        *,
        expected_status: RequestStatus,
        new_status: RequestStatus,
        decided_by: Optional[int],
        decided_at: datetime,
        deducted_days: float,
        rejection_notes: Optional[str] = None,
    ) -> bool:
        """Conditional status write. False when the stored status is not ``expected_status``."""

        raise NotImplementedError

    def update_dates(
        self,
        request_id: int,
        *,
        expected_status: RequestStatus,
        leave_dates: Sequence[date],
        deducted_days: float,
    ) -> bool:
        raise NotImplementedError

    def decide_year_end(
        self,
        request_id: int,
        *,
        new_status: RequestStatus,
        decided_by: Optional[int],
        decided_at: datetime,
    ) -> bool:
        """Conditional write: only a PENDING, unprocessed request is decided.

        Approval sets ``is_processed`` in the same statement.
        """

        raise NotImplementedError

    def delete(self, request_id: int) -> bool:
        raise NotImplementedError


class HolidayRepository(Protocol):
    def list_between(self, *, start_date: date, end_date: date) -> Sequence[Holiday]:
        raise NotImplementedError
