from __future__ import annotations

from typing import Optional, Protocol

from .model import Employee, LeaveBalances


class EmployeeRepository(Protocol):
    def get_by_id(self, employee_id: int, *, for_update: bool = False) -> Optional[Employee]:
        raise NotImplementedError

    def save_balances(self, employee_id: int, balances: LeaveBalances) -> bool:
        raise NotImplementedError
