"""Threshold enforcement: annotate requests that breach configured limits."""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_engine.errors import OvertimeError
from overtime_engine.models import ApprovalThreshold, OvertimeRequest
from overtime_engine.services.eligibility import EmployeeProfile
from overtime_engine.services.state_machine import RequestStateMachine

logger = logging.getLogger(__name__)


class LimitType(str, Enum):
    DAILY_HOURS = "daily_hours"
    WEEKLY_HOURS = "weekly_hours"
    MONTHLY_HOURS = "monthly_hours"
    MAX_CLAIMABLE_AMOUNT = "max_claimable_amount"


@dataclass(frozen=True)
class ClaimSnapshot:
    """Hours and amount of an already-submitted request."""

    ot_date: date
    total_hours: Decimal
    ot_amount: Decimal | None = None


@dataclass(frozen=True)
class ThresholdViolation:
    """One breached limit of one threshold."""

    threshold_id: UUID
    threshold_name: str
    limit_type: LimitType
    limit: Decimal
    actual: Decimal
    auto_block: bool

    @property
    def key(self) -> str:
        return f"{self.threshold_id}:{self.limit_type.value}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.limit_type.value,
            "limit": float(self.limit),
            "actual": float(self.actual),
            "threshold_id": str(self.threshold_id),
            "threshold_name": self.threshold_name,
        }


class ThresholdExceededError(OvertimeError):
    """Raised when an auto-block threshold stops a submission."""

    def __init__(self, violation: ThresholdViolation):
        self.violation = violation
        super().__init__(
            f"Threshold '{violation.threshold_name}' exceeded: "
            f"{violation.limit_type.value} limit {violation.limit}, actual {violation.actual}"
        )


@dataclass(frozen=True)
class PeriodBounds:
    """Inclusive date ranges containing a claim date."""

    day: date
    week_start: date
    week_end: date
    month_start: date
    month_end: date

    @classmethod
    def containing(cls, ot_date: date) -> PeriodBounds:
        week_start = ot_date - timedelta(days=ot_date.weekday())
        last_day = calendar.monthrange(ot_date.year, ot_date.month)[1]
        return cls(
            day=ot_date,
            week_start=week_start,
            week_end=week_start + timedelta(days=6),
            month_start=ot_date.replace(day=1),
            month_end=ot_date.replace(day=last_day),
        )

    @property
    def earliest(self) -> date:
        return min(self.week_start, self.month_start)

    @property
    def latest(self) -> date:
        return max(self.week_end, self.month_end)


class ThresholdEnforcer:
    """Compares cumulative hours and amounts against approval thresholds.

    Totals include the new claim plus every non-rejected request of the same
    employee in the day (same date), week (Monday to Sunday) and calendar
    month. The amount ceiling applies to the monthly claimed amount.

    Violations are informational; only a threshold with auto-block enabled
    stops the submission.
    """

    def __init__(self, session: AsyncSession | None = None):
        self.session = session

    @staticmethod
    def applies_to(threshold: ApprovalThreshold, employee: EmployeeProfile) -> bool:
        """Check department/role scoping (empty list = everyone)."""
        departments = {str(d) for d in threshold.applies_to_department_ids or []}
        if departments and str(employee.department_id) not in departments:
            return False
        roles = set(threshold.applies_to_roles or [])
        if roles and employee.role not in roles:
            return False
        return True

    def evaluate(
        self,
        thresholds: Iterable[ApprovalThreshold],
        employee: EmployeeProfile,
        ot_date: date,
        hours: Decimal,
        amount: Decimal | None,
        existing: Iterable[ClaimSnapshot],
    ) -> list[ThresholdViolation]:
        """Compute violations for a new claim (pure, no I/O)."""
        bounds = PeriodBounds.containing(ot_date)
        claims = list(existing)

        daily = hours + sum(
            (c.total_hours for c in claims if c.ot_date == bounds.day), Decimal("0")
        )
        weekly = hours + sum(
            (c.total_hours for c in claims if bounds.week_start <= c.ot_date <= bounds.week_end),
            Decimal("0"),
        )
        monthly_claims = [
            c for c in claims if bounds.month_start <= c.ot_date <= bounds.month_end
        ]
        monthly = hours + sum((c.total_hours for c in monthly_claims), Decimal("0"))
        monthly_amount = (amount or Decimal("0")) + sum(
            (c.ot_amount for c in monthly_claims if c.ot_amount is not None), Decimal("0")
        )

        violations: list[ThresholdViolation] = []
        for threshold in thresholds:
            if not threshold.is_active or not self.applies_to(threshold, employee):
                continue

            checks = (
                (LimitType.DAILY_HOURS, threshold.daily_limit_hours, daily),
                (LimitType.WEEKLY_HOURS, threshold.weekly_limit_hours, weekly),
                (LimitType.MONTHLY_HOURS, threshold.monthly_limit_hours, monthly),
                (LimitType.MAX_CLAIMABLE_AMOUNT, threshold.max_claimable_amount, monthly_amount),
            )
            for limit_type, limit, actual in checks:
                if limit is not None and actual > limit:
                    violations.append(
                        ThresholdViolation(
                            threshold_id=threshold.threshold_id,
                            threshold_name=threshold.threshold_name,
                            limit_type=limit_type,
                            limit=Decimal(limit),
                            actual=actual,
                            auto_block=bool(threshold.auto_block_enabled),
                        )
                    )
        return violations

    @staticmethod
    def to_violation_map(violations: Iterable[ThresholdViolation]) -> dict[str, Any]:
        """Keyed map stored on the request."""
        return {v.key: v.to_dict() for v in violations}

    @staticmethod
    def enforce(violations: Iterable[ThresholdViolation]) -> None:
        """Raise for the first violation of an auto-block threshold.

        Raises:
            ThresholdExceededError: If any violation blocks submission
        """
        for violation in violations:
            if violation.auto_block:
                raise ThresholdExceededError(violation)

    async def check(
        self,
        employee: EmployeeProfile,
        ot_date: date,
        hours: Decimal,
        amount: Decimal | None,
    ) -> dict[str, Any]:
        """Load thresholds and history, enforce auto-blocks, return the violation map.

        Raises:
            ThresholdExceededError: If an auto-block threshold is breached
        """
        thresholds = await self._get_active_thresholds()
        if not thresholds:
            return {}

        bounds = PeriodBounds.containing(ot_date)
        existing = await self._get_existing_claims(employee.employee_id, bounds)
        violations = self.evaluate(thresholds, employee, ot_date, hours, amount, existing)
        self.enforce(violations)

        if violations:
            logger.warning(
                "Employee %s breaches %d threshold limit(s) on %s",
                employee.employee_id,
                len(violations),
                ot_date,
            )
        return self.to_violation_map(violations)

    async def _get_active_thresholds(self) -> list[ApprovalThreshold]:
        if self.session is None:
            raise RuntimeError("ThresholdEnforcer needs a session to load thresholds")
        result = await self.session.execute(
            select(ApprovalThreshold).where(ApprovalThreshold.is_active.is_(True))
        )
        return list(result.scalars().all())

    async def _get_existing_claims(
        self, employee_id: UUID, bounds: PeriodBounds
    ) -> list[ClaimSnapshot]:
        result = await self.session.execute(
            select(
                OvertimeRequest.ot_date,
                OvertimeRequest.total_hours,
                OvertimeRequest.ot_amount,
            ).where(
                OvertimeRequest.employee_id == employee_id,
                OvertimeRequest.status.in_(
                    [s.value for s in RequestStateMachine.ACTIVE_STATUSES]
                ),
                OvertimeRequest.ot_date >= bounds.earliest,
                OvertimeRequest.ot_date <= bounds.latest,
            )
        )
        return [
            ClaimSnapshot(ot_date=row.ot_date, total_hours=row.total_hours, ot_amount=row.ot_amount)
            for row in result.all()
        ]
