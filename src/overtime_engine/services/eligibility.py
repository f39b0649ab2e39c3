"""Submission-time eligibility check against HR-configured rules."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_engine.errors import NotEligibleError
from overtime_engine.models import EligibilityRule


class EmployeeProfile(Protocol):
    """Attributes of an employee the evaluator reads."""

    employee_id: UUID
    basic_salary: Decimal
    department_id: UUID | None
    role: str
    employment_type: str | None
    is_ot_eligible: bool
    status: str


@dataclass(frozen=True)
class EligibilityDecision:
    """Outcome of an eligibility check."""

    eligible: bool
    rule_id: UUID | None = None
    reason: str | None = None


def _in_scope(allowed: list[str] | None, value: object) -> bool:
    # Empty list means the rule applies to everyone
    if not allowed:
        return True
    if value is None:
        return False
    return str(value) in {str(item) for item in allowed}


class EligibilityEvaluator:
    """Decides whether an employee may submit overtime at all.

    An employee is eligible when any active rule matches on every dimension:
    salary band (inclusive, open-ended when a bound is null), department,
    role and employment type. Rules are read at submission time only;
    editing them later does not affect requests already submitted.
    """

    def __init__(self, session: AsyncSession | None = None):
        self.session = session

    @staticmethod
    def rule_matches(rule: EligibilityRule, employee: EmployeeProfile) -> bool:
        """Check a single rule against an employee."""
        salary = employee.basic_salary
        if rule.min_salary is not None and salary < rule.min_salary:
            return False
        if rule.max_salary is not None and salary > rule.max_salary:
            return False
        return (
            _in_scope(rule.department_ids, employee.department_id)
            and _in_scope(rule.roles, employee.role)
            and _in_scope(rule.employment_types, employee.employment_type)
        )

    def evaluate(
        self,
        employee: EmployeeProfile,
        rules: Iterable[EligibilityRule],
    ) -> EligibilityDecision:
        """Evaluate an employee against a rule set (pure, no I/O)."""
        if employee.status != "active":
            return EligibilityDecision(False, reason="employee is not active")
        if not employee.is_ot_eligible:
            return EligibilityDecision(False, reason="employee is excluded from overtime")

        active = [rule for rule in rules if rule.is_active]
        if not active:
            return EligibilityDecision(False, reason="no active eligibility rules")

        for rule in active:
            if self.rule_matches(rule, employee):
                return EligibilityDecision(True, rule_id=rule.rule_id)

        return EligibilityDecision(False, reason="no eligibility rule matches")

    async def check(self, employee: EmployeeProfile) -> EligibilityDecision:
        """Evaluate an employee against the active rules in the database."""
        return self.evaluate(employee, await self._get_active_rules())

    async def require_eligible(self, employee: EmployeeProfile) -> UUID | None:
        """Return the matching rule id.

        Raises:
            NotEligibleError: If no active rule matches
        """
        decision = await self.check(employee)
        if not decision.eligible:
            raise NotEligibleError(employee.employee_id, decision.reason or "not eligible")
        return decision.rule_id

    async def _get_active_rules(self) -> list[EligibilityRule]:
        if self.session is None:
            raise RuntimeError("EligibilityEvaluator needs a session to load rules")
        result = await self.session.execute(
            select(EligibilityRule)
            .where(EligibilityRule.is_active.is_(True))
            .order_by(EligibilityRule.rule_name, EligibilityRule.rule_id)
        )
        return list(result.scalars().all())
