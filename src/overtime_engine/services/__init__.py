"""Overtime lifecycle services."""

from overtime_engine.services.eligibility import (
    EligibilityDecision,
    EligibilityEvaluator,
)
from overtime_engine.services.grouping import (
    DailyOvertimeGroup,
    group_by_employee_and_date,
)
from overtime_engine.services.holiday_calendar import (
    DatabaseHolidayCalendar,
    HolidayCalendar,
    StaticHolidayCalendar,
    classify_day,
)
from overtime_engine.services.lifecycle_service import (
    ActionResult,
    Actor,
    ActorNotPermittedError,
    OvertimeSubmission,
    RequestLifecycleManager,
    SubmissionResult,
    compute_total_hours,
    times_overlap,
)
from overtime_engine.services.resubmission_service import (
    ResubmissionResult,
    ResubmissionTracker,
    select_rejection_reason,
)
from overtime_engine.services.state_machine import (
    ApprovalRole,
    Decision,
    InvalidTransitionError,
    MissingRemarksError,
    OTStatus,
    RejectionStage,
    RequestStateMachine,
)
from overtime_engine.services.thresholds import (
    ThresholdEnforcer,
    ThresholdExceededError,
    ThresholdViolation,
)

__all__ = [
    "ActionResult",
    "Actor",
    "ActorNotPermittedError",
    "ApprovalRole",
    "DailyOvertimeGroup",
    "DatabaseHolidayCalendar",
    "Decision",
    "EligibilityDecision",
    "EligibilityEvaluator",
    "HolidayCalendar",
    "InvalidTransitionError",
    "MissingRemarksError",
    "OTStatus",
    "OvertimeSubmission",
    "RejectionStage",
    "RequestLifecycleManager",
    "RequestStateMachine",
    "ResubmissionResult",
    "ResubmissionTracker",
    "StaticHolidayCalendar",
    "SubmissionResult",
    "ThresholdEnforcer",
    "ThresholdExceededError",
    "ThresholdViolation",
    "classify_day",
    "compute_total_hours",
    "group_by_employee_and_date",
    "select_rejection_reason",
    "times_overlap",
]
