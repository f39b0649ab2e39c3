"""ORM models."""

from overtime_engine.models.base import Base, TimestampMixin, UpdatedAtMixin
from overtime_engine.models.employee import Employee
from overtime_engine.models.overtime import OvertimeRequest, ResubmissionHistory
from overtime_engine.models.policy import (
    ApprovalThreshold,
    EligibilityRule,
    PublicHoliday,
    RateFormula,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "UpdatedAtMixin",
    "Employee",
    "OvertimeRequest",
    "ResubmissionHistory",
    "ApprovalThreshold",
    "EligibilityRule",
    "PublicHoliday",
    "RateFormula",
]
