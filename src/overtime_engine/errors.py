"""Base exceptions shared across the overtime engine.

Component-specific errors live beside the code that raises them
(state machine, formula parser, threshold enforcer) and derive from
``OvertimeError`` so the API layer can map the whole family.
"""

from __future__ import annotations

from uuid import UUID


class OvertimeError(Exception):
    """Base class for recoverable overtime engine errors."""


class OvertimeValidationError(OvertimeError):
    """Raised when submitted data is rejected before any state mutation."""

    def __init__(self, message: str, field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(f"{field}: {message}" if field else message)


class NotEligibleError(OvertimeValidationError):
    """Raised when an employee may not submit overtime claims."""

    def __init__(self, employee_id: UUID, reason: str):
        self.employee_id = employee_id
        self.reason = reason
        super().__init__(f"Employee {employee_id} is not eligible for overtime: {reason}")


class RequestNotFoundError(OvertimeError):
    """Raised when one or more overtime requests do not exist."""

    def __init__(self, request_ids: list[UUID]):
        self.request_ids = request_ids
        ids = ", ".join(str(r) for r in request_ids)
        super().__init__(f"Overtime request(s) not found: {ids}")
