"""Pydantic schemas for API request/response models."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from overtime_engine.calculators.types import DayType


# ============================================================================
# Overtime request schemas
# ============================================================================


class OvertimeSubmitRequest(BaseModel):
    """Schema for submitting an overtime claim."""

    employee_id: UUID
    ot_date: date
    start_time: time
    end_time: time
    reason: str
    day_type: DayType | None = None
    attachment_urls: list[str] = Field(default_factory=list)


class OvertimeResubmitRequest(BaseModel):
    """Schema for resubmitting a rejected claim; the employee comes from the original."""

    ot_date: date
    start_time: time
    end_time: time
    reason: str
    day_type: DayType | None = None
    attachment_urls: list[str] = Field(default_factory=list)


class OvertimeRequestResponse(BaseModel):
    """Schema for overtime request response."""

    model_config = ConfigDict(from_attributes=True)

    request_id: UUID
    ticket_number: str
    employee_id: UUID
    supervisor_id: UUID | None = None
    ot_date: date
    start_time: time
    end_time: time
    total_hours: Decimal
    day_type: str
    reason: str
    attachment_urls: list[str] = Field(default_factory=list)
    orp: Decimal | None = None
    hrp: Decimal | None = None
    ot_amount: Decimal | None = None
    formula_id: UUID | None = None
    eligibility_rule_id: UUID | None = None
    status: str
    is_terminal: bool
    supervisor_actor_id: UUID | None = None
    supervisor_verified_at: datetime | None = None
    supervisor_remarks: str | None = None
    hr_id: UUID | None = None
    hr_certified_at: datetime | None = None
    hr_remarks: str | None = None
    management_id: UUID | None = None
    management_reviewed_at: datetime | None = None
    management_remarks: str | None = None
    rejection_stage: str | None = None
    parent_request_id: UUID | None = None
    is_resubmission: bool
    resubmission_count: int
    threshold_violations: dict[str, Any] = Field(default_factory=dict)


class SubmissionResponse(BaseModel):
    """Schema for a persisted submission."""

    request: OvertimeRequestResponse
    formula_error: str | None = None
    violations: dict[str, Any] = Field(default_factory=dict)


class OvertimeRequestListResponse(BaseModel):
    items: list[OvertimeRequestResponse]
    total: int


class DailyGroupResponse(BaseModel):
    """One employee's sessions on one date."""

    employee_id: UUID
    ot_date: date
    sessions: list[OvertimeRequestResponse]
    total_hours: Decimal
    total_amount: Decimal | None = None
    statuses: list[str]
    is_mixed: bool
    violations: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Approval action schemas
# ============================================================================


class ActionRequest(BaseModel):
    """Schema for a batch approve/reject."""

    request_ids: list[UUID] = Field(min_length=1)
    role: str
    decision: Literal["approve", "reject"]
    remarks: str | None = None


class ActionResponse(BaseModel):
    role: str
    decision: str
    to_status: str
    from_statuses: dict[UUID, str]
    requests: list[OvertimeRequestResponse]


# ============================================================================
# Resubmission schemas
# ============================================================================


class ResubmissionHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    history_id: UUID
    original_request_id: UUID
    resubmitted_request_id: UUID
    rejected_by_role: str
    rejection_reason: str
    created_at: datetime


class ResubmissionResponse(BaseModel):
    submission: SubmissionResponse
    history: ResubmissionHistoryResponse


class ResubmissionChainResponse(BaseModel):
    chain: list[OvertimeRequestResponse]
    history: list[ResubmissionHistoryResponse]


# ============================================================================
# Formula schemas
# ============================================================================


class FormulaValidateRequest(BaseModel):
    formula: str


class FormulaValidateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_valid: bool = Field(serialization_alias="isValid")
    errors: list[str]
    unknown_identifiers: list[str] = Field(serialization_alias="unknownIdentifiers")
    desugared: str | None = None


class FormulaEvaluateRequest(BaseModel):
    """Formula evaluation service boundary input."""

    model_config = ConfigDict(populate_by_name=True)

    formula: str
    basic_salary: Decimal = Field(alias="basicSalary", ge=0)
    hours: Decimal = Field(gt=0)
    day_type: DayType = Field(default=DayType.WEEKDAY, alias="dayType")
    multiplier: Decimal | None = None


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
