from __future__ import annotations


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class FormatError(ValidationError):
    """Raised when a date, time or timestamp cannot be parsed."""


class InsufficientBalanceError(ValidationError):
    """Raised when a leave balance cannot cover the requested days."""

    def __init__(self, message: str, *, available: float = 0.0, requested: float = 0.0):
        super().__init__(message)
        self.available = available
        self.requested = requested


class PolicyViolation(DomainError):
    """Raised when a leave request breaks a company leave rule.

    ``rule`` is the stable machine code callers use to render a message.
    """

    def __init__(self, rule, message: str):
        super().__init__(message)
        self.rule = rule
        self.message = message


class NotFoundError(DomainError):
    """Raised when an employee, request or record does not exist."""


class ConflictError(DomainError):
    """Raised when a processed-guard trips or a concurrent transition wins."""


class TransientStoreError(DomainError):
    """Raised when the record store fails with an I/O error."""
