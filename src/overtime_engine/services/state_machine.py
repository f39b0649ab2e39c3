"""Overtime request state machine with role-indexed transitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from overtime_engine.errors import OvertimeError


class OTStatus(str, Enum):
    """Overtime request status values."""

    PENDING_VERIFICATION = "pending_verification"
    SUPERVISOR_VERIFIED = "supervisor_verified"
    HR_CERTIFIED = "hr_certified"
    MANAGEMENT_APPROVED = "management_approved"
    PENDING_HR_RECERTIFICATION = "pending_hr_recertification"
    REJECTED = "rejected"


class ApprovalRole(str, Enum):
    """Roles that may act on a request."""

    SUPERVISOR = "supervisor"
    HR = "hr"
    MANAGEMENT = "management"

    @classmethod
    def _missing_(cls, value: object) -> ApprovalRole | None:
        # The board of directors acts as the management stage
        if isinstance(value, str) and value.lower() == "bod":
            return cls.MANAGEMENT
        return None


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class RejectionStage(str, Enum):
    """Who rejected a request."""

    SUPERVISOR = "supervisor"
    HR = "hr"
    MANAGEMENT = "management"
    EMPLOYEE = "employee"
    ADMIN = "admin"


class InvalidTransitionError(OvertimeError):
    """Raised when a role acts on a request from a state it may not leave.

    Also raised when a concurrent reviewer moved the request first; callers
    should treat it as a retryable conflict.
    """

    def __init__(
        self,
        from_status: str,
        to_status: str | None,
        reason: str | None = None,
        request_id: UUID | None = None,
    ):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        self.request_id = request_id
        msg = f"Invalid transition from '{from_status}'"
        if to_status:
            msg += f" to '{to_status}'"
        if request_id:
            msg += f" for request {request_id}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class MissingRemarksError(OvertimeError):
    """Raised when a rejection is attempted without remarks."""

    def __init__(self) -> None:
        super().__init__("Remarks are required when rejecting a request")


@dataclass(frozen=True)
class RoleTransition:
    """Everything one role's action writes: target states and stamp columns."""

    role: ApprovalRole
    allowed_sources: frozenset[OTStatus]
    approve_to: OTStatus
    reject_to: OTStatus
    remarks_field: str
    timestamp_field: str
    actor_field: str
    rejection_stage: RejectionStage

    def target(self, decision: Decision) -> OTStatus:
        return self.approve_to if decision == Decision.APPROVE else self.reject_to


class RequestStateMachine:
    """State machine for overtime request status transitions.

    Normal chain:
    - pending_verification → supervisor_verified (supervisor)
    - pending_verification | supervisor_verified → hr_certified (hr)
    - hr_certified → management_approved (management/BOD)

    Rejection by supervisor or HR ends in rejected. A management rejection
    sends the request to pending_hr_recertification instead, from which HR
    either recertifies (→ hr_certified) or declines (→ rejected).
    """

    ROLE_TRANSITIONS: dict[ApprovalRole, RoleTransition] = {
        ApprovalRole.SUPERVISOR: RoleTransition(
            role=ApprovalRole.SUPERVISOR,
            allowed_sources=frozenset({OTStatus.PENDING_VERIFICATION}),
            approve_to=OTStatus.SUPERVISOR_VERIFIED,
            reject_to=OTStatus.REJECTED,
            remarks_field="supervisor_remarks",
            timestamp_field="supervisor_verified_at",
            actor_field="supervisor_actor_id",
            rejection_stage=RejectionStage.SUPERVISOR,
        ),
        ApprovalRole.HR: RoleTransition(
            role=ApprovalRole.HR,
            allowed_sources=frozenset(
                {
                    OTStatus.PENDING_VERIFICATION,
                    OTStatus.SUPERVISOR_VERIFIED,
                    OTStatus.PENDING_HR_RECERTIFICATION,
                }
            ),
            approve_to=OTStatus.HR_CERTIFIED,
            reject_to=OTStatus.REJECTED,
            remarks_field="hr_remarks",
            timestamp_field="hr_certified_at",
            actor_field="hr_id",
            rejection_stage=RejectionStage.HR,
        ),
        ApprovalRole.MANAGEMENT: RoleTransition(
            role=ApprovalRole.MANAGEMENT,
            allowed_sources=frozenset({OTStatus.HR_CERTIFIED}),
            approve_to=OTStatus.MANAGEMENT_APPROVED,
            reject_to=OTStatus.PENDING_HR_RECERTIFICATION,
            remarks_field="management_remarks",
            timestamp_field="management_reviewed_at",
            actor_field="management_id",
            rejection_stage=RejectionStage.MANAGEMENT,
        ),
    }

    TERMINAL_STATUSES = frozenset({OTStatus.MANAGEMENT_APPROVED, OTStatus.REJECTED})

    # Statuses that occupy a time slot for overlap checks and threshold totals
    ACTIVE_STATUSES = frozenset(set(OTStatus) - {OTStatus.REJECTED})

    @classmethod
    def transition_for(cls, role: ApprovalRole | str) -> RoleTransition:
        return cls.ROLE_TRANSITIONS[ApprovalRole(role)]

    @classmethod
    def can_act(cls, role: ApprovalRole | str, status: str) -> bool:
        """Check if a role may approve or reject a request in this status."""
        return OTStatus(status) in cls.transition_for(role).allowed_sources

    @classmethod
    def target_status(cls, role: ApprovalRole | str, decision: Decision | str) -> OTStatus:
        return cls.transition_for(role).target(Decision(decision))

    @classmethod
    def validate_action(
        cls,
        role: ApprovalRole | str,
        decision: Decision | str,
        status: str,
        request_id: UUID | None = None,
    ) -> OTStatus:
        """Validate an action, returning the target status.

        Raises:
            InvalidTransitionError: If the role may not act from this status
        """
        transition = cls.transition_for(role)
        verdict = Decision(decision)
        target = transition.target(verdict)
        if not cls.can_act(transition.role, status):
            if cls.is_terminal(status):
                reason = f"request is closed in status '{status}'"
            else:
                waiting = ", ".join(r.value for r in cls.roles_for_status(status))
                reason = (
                    f"role '{transition.role.value}' cannot {verdict.value} a request "
                    f"in status '{status}' (awaiting {waiting})"
                )
            raise InvalidTransitionError(status, target.value, reason, request_id=request_id)
        return target

    @staticmethod
    def normalize_remarks(decision: Decision | str, remarks: str | None) -> str | None:
        """Return stored remarks; rejections require non-blank text.

        Raises:
            MissingRemarksError: If rejecting with empty or whitespace remarks
        """
        text = remarks.strip() if remarks else ""
        if Decision(decision) == Decision.REJECT and not text:
            raise MissingRemarksError()
        return text or None

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return OTStatus(status) in cls.TERMINAL_STATUSES

    @classmethod
    def is_recertification(cls, from_status: str, to_status: str) -> bool:
        """Check if this is the HR recertification loop back into the chain."""
        return (
            from_status == OTStatus.PENDING_HR_RECERTIFICATION
            and to_status == OTStatus.HR_CERTIFIED
        )

    @classmethod
    def roles_for_status(cls, status: str) -> list[ApprovalRole]:
        """Roles whose queue contains requests in this status."""
        current = OTStatus(status)
        return [
            role
            for role, transition in cls.ROLE_TRANSITIONS.items()
            if current in transition.allowed_sources
        ]
