"""Employee profile model."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from overtime_engine.models.base import Base, TimestampMixin, UpdatedAtMixin


class Employee(Base, TimestampMixin, UpdatedAtMixin):
    """Employee profile as seen by the overtime engine.

    Departments and positions are administered elsewhere; only their ids are
    kept here for eligibility and threshold scoping.
    """

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_no: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    department_id: Mapped[UUID | None] = mapped_column(nullable=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default="employee")
    employment_type: Mapped[str | None] = mapped_column(String, nullable=True)
    basic_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    supervisor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="SET NULL"),
        nullable=True,
    )
    is_ot_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        CheckConstraint(
            "role IN ('employee', 'supervisor', 'hr', 'bod', 'admin')",
            name="employee_role_check",
        ),
        CheckConstraint("basic_salary >= 0", name="employee_basic_salary_check"),
        CheckConstraint(
            "status IN ('active', 'inactive')",
            name="employee_status_check",
        ),
    )

    # Relationships
    supervisor: Mapped[Employee | None] = relationship(remote_side=[employee_id])

    @property
    def is_active(self) -> bool:
        return self.status == "active"
