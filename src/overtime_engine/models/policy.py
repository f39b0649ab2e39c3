"""HR-owned overtime policy configuration: eligibility, thresholds, formulas."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from overtime_engine.models.base import Base, TimestampMixin, UpdatedAtMixin


class EligibilityRule(Base, TimestampMixin, UpdatedAtMixin):
    """Predicate deciding who may claim overtime.

    Empty id/type lists mean "applies to all"; null salary bounds are open.
    """

    __tablename__ = "ot_eligibility_rule"

    rule_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    rule_name: Mapped[str] = mapped_column(String, nullable=False)
    min_salary: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    max_salary: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    department_ids: Mapped[list[str]] = mapped_column(nullable=False, default=list)
    roles: Mapped[list[str]] = mapped_column(nullable=False, default=list)
    employment_types: Mapped[list[str]] = mapped_column(nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "min_salary IS NULL OR max_salary IS NULL OR max_salary >= min_salary",
            name="ot_eligibility_rule_salary_check",
        ),
    )


class ApprovalThreshold(Base, TimestampMixin, UpdatedAtMixin):
    """Hour and amount ceilings; informational unless auto-block is enabled."""

    __tablename__ = "ot_approval_threshold"

    threshold_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    threshold_name: Mapped[str] = mapped_column(String, nullable=False)
    daily_limit_hours: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    weekly_limit_hours: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    monthly_limit_hours: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    max_claimable_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    auto_block_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    applies_to_department_ids: Mapped[list[str]] = mapped_column(
        nullable=False, default=list
    )
    applies_to_roles: Mapped[list[str]] = mapped_column(nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class RateFormula(Base, TimestampMixin, UpdatedAtMixin):
    """Pay formula for one day type, scaled by a multiplier."""

    __tablename__ = "ot_rate_formula"

    formula_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    formula_name: Mapped[str] = mapped_column(String, nullable=False)
    day_type: Mapped[str] = mapped_column(String, nullable=False)
    base_formula: Mapped[str] = mapped_column(Text, nullable=False)
    multiplier: Mapped[Decimal] = mapped_column(
        Numeric(6, 3), nullable=False, default=Decimal("1")
    )
    employee_category: Mapped[str] = mapped_column(String, nullable=False, default="all")
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "day_type IN ('weekday', 'saturday', 'sunday', 'public_holiday')",
            name="ot_rate_formula_day_type_check",
        ),
        CheckConstraint("multiplier > 0", name="ot_rate_formula_multiplier_check"),
        CheckConstraint(
            "effective_to IS NULL OR effective_to >= effective_from",
            name="ot_rate_formula_dates_check",
        ),
    )

    def is_effective_on(self, as_of_date: date) -> bool:
        """Check whether the formula applies on a date."""
        if as_of_date < self.effective_from:
            return False
        if self.effective_to is not None and as_of_date > self.effective_to:
            return False
        return True


class PublicHoliday(Base, TimestampMixin):
    """Public holiday date consulted for day-type classification."""

    __tablename__ = "public_holiday"

    holiday_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
