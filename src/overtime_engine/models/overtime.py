"""Overtime request and resubmission history models."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from overtime_engine.models.base import Base, TimestampMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from overtime_engine.models.employee import Employee


class OvertimeRequest(Base, TimestampMixin, UpdatedAtMixin):
    """One overtime claim for one time range on one date.

    Never hard-deleted: approved and rejected rows are kept for audit.
    """

    __tablename__ = "ot_request"

    request_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    ticket_number: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    supervisor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="SET NULL"),
        nullable=True,
    )

    # Claim facts
    ot_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    day_type: Mapped[str] = mapped_column(String, nullable=False, default="weekday")
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    attachment_urls: Mapped[list[str]] = mapped_column(nullable=False, default=list)

    # Computed pay fields (null when the formula could not be evaluated)
    orp: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    hrp: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    ot_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    formula_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ot_rate_formula.formula_id", ondelete="SET NULL"),
        nullable=True,
    )
    eligibility_rule_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ot_eligibility_rule.rule_id", ondelete="SET NULL"),
        nullable=True,
    )

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="pending_verification"
    )
    supervisor_actor_id: Mapped[UUID | None] = mapped_column(nullable=True)
    supervisor_verified_at: Mapped[datetime | None] = mapped_column(nullable=True)
    supervisor_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    hr_id: Mapped[UUID | None] = mapped_column(nullable=True)
    hr_certified_at: Mapped[datetime | None] = mapped_column(nullable=True)
    hr_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    management_id: Mapped[UUID | None] = mapped_column(nullable=True)
    management_reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    management_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_stage: Mapped[str | None] = mapped_column(String, nullable=True)

    # Resubmission linkage; at most one successor per request
    parent_request_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ot_request.request_id", ondelete="RESTRICT"),
        nullable=True,
        unique=True,
    )
    is_resubmission: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resubmission_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    threshold_violations: Mapped[dict[str, Any]] = mapped_column(
        nullable=False, default=dict
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending_verification', 'supervisor_verified', 'hr_certified', "
            "'management_approved', 'pending_hr_recertification', 'rejected')",
            name="ot_request_status_check",
        ),
        CheckConstraint(
            "day_type IN ('weekday', 'saturday', 'sunday', 'public_holiday')",
            name="ot_request_day_type_check",
        ),
        CheckConstraint(
            "rejection_stage IS NULL OR rejection_stage IN "
            "('supervisor', 'hr', 'management', 'employee', 'admin')",
            name="ot_request_rejection_stage_check",
        ),
        CheckConstraint("total_hours > 0", name="ot_request_total_hours_check"),
        CheckConstraint("end_time > start_time", name="ot_request_time_range_check"),
        CheckConstraint(
            "resubmission_count >= 0", name="ot_request_resubmission_count_check"
        ),
        Index("ix_ot_request_employee_date", "employee_id", "ot_date"),
        Index("ix_ot_request_status", "status"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(foreign_keys=[employee_id])
    parent: Mapped[OvertimeRequest | None] = relationship(remote_side=[request_id])

    @property
    def is_terminal(self) -> bool:
        return self.status in ("management_approved", "rejected")


class ResubmissionHistory(Base, TimestampMixin):
    """Append-only audit row linking a rejected request to its successor."""

    __tablename__ = "ot_resubmission_history"

    history_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    original_request_id: Mapped[UUID] = mapped_column(
        ForeignKey("ot_request.request_id", ondelete="RESTRICT"),
        nullable=False,
    )
    resubmitted_request_id: Mapped[UUID] = mapped_column(
        ForeignKey("ot_request.request_id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    rejected_by_role: Mapped[str] = mapped_column(String, nullable=False)
    rejection_reason: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "rejected_by_role IN ('supervisor', 'hr', 'management', 'employee', 'admin')",
            name="ot_resubmission_history_role_check",
        ),
    )
