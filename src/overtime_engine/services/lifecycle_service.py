"""Overtime request lifecycle service - submission and approval actions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Sequence
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_engine.calculators.formula_engine import PayFormulaEngine
from overtime_engine.calculators.formula_parser import FormulaError
from overtime_engine.calculators.formula_resolver import FormulaResolver
from overtime_engine.calculators.types import DayType, PayCalculation
from overtime_engine.config import Settings, get_settings
from overtime_engine.errors import OvertimeError, OvertimeValidationError, RequestNotFoundError
from overtime_engine.events.emitter import EventEmitter
from overtime_engine.events.types import EventKind, OvertimeEvent
from overtime_engine.models import Employee, OvertimeRequest
from overtime_engine.services.eligibility import EligibilityEvaluator
from overtime_engine.services.holiday_calendar import HolidayCalendar, classify_day
from overtime_engine.services.state_machine import (
    ApprovalRole,
    Decision,
    InvalidTransitionError,
    OTStatus,
    RequestStateMachine,
)
from overtime_engine.services.thresholds import ThresholdEnforcer

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# App roles allowed to act in each approval role
APPROVER_APP_ROLES: dict[ApprovalRole, frozenset[str]] = {
    ApprovalRole.SUPERVISOR: frozenset({"supervisor", "admin"}),
    ApprovalRole.HR: frozenset({"hr", "admin"}),
    ApprovalRole.MANAGEMENT: frozenset({"bod", "admin"}),
}


class ActorNotPermittedError(OvertimeError):
    """Raised when an actor's role does not allow the requested operation."""

    def __init__(self, actor_role: str, operation: str):
        self.actor_role = actor_role
        self.operation = operation
        super().__init__(f"Role '{actor_role}' is not permitted to {operation}")


@dataclass(frozen=True)
class Actor:
    """Identity of whoever performs an operation; passed in explicitly."""

    user_id: UUID
    role: str
    name: str = ""


@dataclass
class OvertimeSubmission:
    """Claim facts supplied by an employee."""

    employee_id: UUID
    ot_date: date
    start_time: time
    end_time: time
    reason: str
    day_type: DayType | None = None
    attachment_urls: list[str] = field(default_factory=list)


@dataclass
class SubmissionResult:
    """A persisted request plus anything the submitter must be told."""

    request: OvertimeRequest
    formula_error: str | None = None

    @property
    def violations(self) -> dict[str, Any]:
        return self.request.threshold_violations or {}


@dataclass
class ActionResult:
    """Outcome of one batch approval/rejection."""

    requests: list[OvertimeRequest]
    role: ApprovalRole
    decision: Decision
    from_statuses: dict[UUID, str]
    to_status: OTStatus


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_total_hours(start_time: time, end_time: time) -> Decimal:
    """Hours between two times on the same date, rounded to two decimals.

    Raises:
        OvertimeValidationError: If the range is empty or reversed
    """
    start_minutes = start_time.hour * 60 + start_time.minute
    end_minutes = end_time.hour * 60 + end_time.minute
    minutes = end_minutes - start_minutes
    if minutes <= 0:
        raise OvertimeValidationError("End time must be after start time", field="end_time")
    return (Decimal(minutes) / Decimal(60)).quantize(CENT, rounding=ROUND_HALF_UP)


def times_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open [start, end) ranges overlap."""
    return start_a < end_b and end_a > start_b


def parse_statuses(statuses: Sequence[str]) -> list[OTStatus]:
    """Convert status filter values.

    Raises:
        OvertimeValidationError: If a value is not a known status
    """
    try:
        return [OTStatus(s) for s in statuses]
    except ValueError:
        allowed = ", ".join(s.value for s in OTStatus)
        raise OvertimeValidationError(
            f"Unknown status in {list(statuses)}; expected one of: {allowed}", field="status"
        )


def parse_action(
    role: ApprovalRole | str, decision: Decision | str
) -> tuple[ApprovalRole, Decision]:
    """Convert a role and decision supplied by a caller.

    Raises:
        OvertimeValidationError: If either value is unknown
    """
    try:
        approval_role = ApprovalRole(role)
    except ValueError:
        allowed = ", ".join(r.value for r in ApprovalRole)
        raise OvertimeValidationError(
            f"Unknown approval role '{role}'; expected one of: {allowed}", field="role"
        )
    try:
        verdict = Decision(decision)
    except ValueError:
        raise OvertimeValidationError(
            f"Unknown decision '{decision}'; expected approve or reject", field="decision"
        )
    return approval_role, verdict


class RequestLifecycleManager:
    """Service for the overtime request lifecycle.

    Operations:
    - submit: eligibility gate, overlap check, pay computation, threshold
      annotation, then persist as pending_verification
    - act: batch approve/reject by one role, all-or-nothing
    - get_request / list_requests / get_daily_sessions: reads

    Operations never commit. Callers end the unit of work with
    ``commit()``, which delivers queued notifications after the data is
    durable.
    """

    def __init__(
        self,
        session: AsyncSession,
        emitter: EventEmitter | None = None,
        holiday_calendar: HolidayCalendar | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.emitter = emitter or EventEmitter()
        self.holiday_calendar = holiday_calendar
        self.settings = settings or get_settings()
        self.formula_engine = PayFormulaEngine(self.settings)
        self.formula_resolver = FormulaResolver(session)
        self.eligibility = EligibilityEvaluator(session)
        self.thresholds = ThresholdEnforcer(session)
        self._outbox: list[OvertimeEvent] = []

    # ===== Unit of work =====

    @property
    def pending_events(self) -> list[OvertimeEvent]:
        """Events waiting for the unit of work to commit."""
        return list(self._outbox)

    async def commit(self) -> list[Exception]:
        """Commit the session, then deliver the queued events.

        Nothing is delivered when the commit fails. Returns handler errors.
        """
        events, self._outbox = self._outbox, []
        with self.emitter.batch() as batch:
            for event in events:
                batch.add(event)
            await self.session.commit()
        return batch.errors

    # ===== Reads =====

    async def get_request(self, request_id: UUID) -> OvertimeRequest:
        """Load one request.

        Raises:
            RequestNotFoundError: If it does not exist
        """
        request = await self.session.get(OvertimeRequest, request_id)
        if request is None:
            raise RequestNotFoundError([request_id])
        return request

    async def list_requests(
        self,
        statuses: Sequence[str] | None = None,
        employee_id: UUID | None = None,
        ot_date: date | None = None,
    ) -> list[OvertimeRequest]:
        """List requests, newest claim date first."""
        query = select(OvertimeRequest)
        if statuses:
            query = query.where(
                OvertimeRequest.status.in_([s.value for s in parse_statuses(statuses)])
            )
        if employee_id is not None:
            query = query.where(OvertimeRequest.employee_id == employee_id)
        if ot_date is not None:
            query = query.where(OvertimeRequest.ot_date == ot_date)
        query = query.order_by(
            OvertimeRequest.ot_date.desc(), OvertimeRequest.start_time.asc()
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_daily_sessions(
        self, employee_id: UUID, ot_date: date
    ) -> list[OvertimeRequest]:
        """Non-rejected requests of one employee on one date, by start time."""
        result = await self.session.execute(
            select(OvertimeRequest)
            .where(
                OvertimeRequest.employee_id == employee_id,
                OvertimeRequest.ot_date == ot_date,
                OvertimeRequest.status != OTStatus.REJECTED.value,
            )
            .order_by(OvertimeRequest.start_time.asc())
        )
        return list(result.scalars().all())

    # ===== Submission =====

    async def submit(self, submission: OvertimeSubmission, actor: Actor) -> SubmissionResult:
        """Submit a new overtime claim.

        Raises:
            OvertimeValidationError: Malformed range, missing reason, overlap
            NotEligibleError: No eligibility rule matches the employee
            ThresholdExceededError: An auto-block threshold is breached
            FormulaError: Only when persisting without pay fields is disabled
        """
        return await self.create_request(submission, actor)

    async def create_request(
        self,
        submission: OvertimeSubmission,
        actor: Actor,
        parent: OvertimeRequest | None = None,
    ) -> SubmissionResult:
        """Validate, price and persist a request; ``parent`` marks a resubmission."""
        if actor.user_id != submission.employee_id and actor.role not in ("hr", "admin"):
            raise ActorNotPermittedError(actor.role, "submit overtime for another employee")

        reason = (submission.reason or "").strip()
        if not reason:
            raise OvertimeValidationError("Reason is required", field="reason")
        total_hours = compute_total_hours(submission.start_time, submission.end_time)

        employee = await self.session.get(Employee, submission.employee_id)
        if employee is None:
            raise OvertimeValidationError(
                f"Unknown employee {submission.employee_id}", field="employee_id"
            )

        rule_id = await self.eligibility.require_eligible(employee)
        await self._check_overlap(submission)

        day_type = submission.day_type or await classify_day(
            self.holiday_calendar, submission.ot_date
        )
        calculation, formula_id, formula_error = await self._compute_pay(
            employee, DayType(day_type), submission.ot_date, total_hours
        )

        violations = await self.thresholds.check(
            employee,
            submission.ot_date,
            total_hours,
            calculation.ot_amount if calculation else None,
        )

        request = OvertimeRequest(
            request_id=uuid4(),
            ticket_number=self._generate_ticket_number(submission.ot_date),
            employee_id=employee.employee_id,
            supervisor_id=parent.supervisor_id if parent is not None else employee.supervisor_id,
            ot_date=submission.ot_date,
            start_time=submission.start_time,
            end_time=submission.end_time,
            total_hours=total_hours,
            day_type=DayType(day_type).value,
            reason=reason,
            attachment_urls=list(submission.attachment_urls),
            orp=to_money(calculation.orp) if calculation else None,
            hrp=to_money(calculation.hrp) if calculation else None,
            ot_amount=to_money(calculation.ot_amount) if calculation else None,
            formula_id=formula_id,
            eligibility_rule_id=rule_id,
            status=OTStatus.PENDING_VERIFICATION.value,
            parent_request_id=parent.request_id if parent is not None else None,
            is_resubmission=parent is not None,
            resubmission_count=(parent.resubmission_count + 1) if parent is not None else 0,
            threshold_violations=violations,
        )
        self.session.add(request)
        await self.session.flush()
        await self.session.refresh(request)

        logger.info(
            "OT request %s submitted for employee %s on %s (%s h, resubmission=%s)",
            request.ticket_number,
            employee.employee_id,
            request.ot_date,
            total_hours,
            request.is_resubmission,
        )

        if request.supervisor_id is not None:
            self._outbox.append(
                OvertimeEvent.for_request(
                    request,
                    EventKind.SUBMITTED,
                    target_user_id=request.supervisor_id,
                    actor_name=employee.full_name,
                )
            )

        return SubmissionResult(request=request, formula_error=formula_error)

    async def _check_overlap(self, submission: OvertimeSubmission) -> None:
        for existing in await self.get_daily_sessions(submission.employee_id, submission.ot_date):
            if times_overlap(
                submission.start_time, submission.end_time,
                existing.start_time, existing.end_time,
            ):
                raise OvertimeValidationError(
                    f"Time slot overlaps with request {existing.ticket_number} "
                    f"({existing.start_time:%H:%M}-{existing.end_time:%H:%M})",
                    field="start_time",
                )

    async def _compute_pay(
        self,
        employee: Employee,
        day_type: DayType,
        ot_date: date,
        hours: Decimal,
    ) -> tuple[PayCalculation | None, UUID | None, str | None]:
        """Evaluate the applicable formula.

        Returns (calculation, formula_id, error). With persistence on formula
        error enabled, failures come back as an error message and the request
        is stored with null pay fields.
        """
        formula_id: UUID | None = None
        try:
            formula = await self.formula_resolver.resolve(
                day_type, ot_date, employee.employment_type
            )
            formula_id = formula.formula_id
            calculation = self.formula_engine.calculate(
                formula.base_formula,
                employee.basic_salary,
                hours,
                formula.multiplier,
            )
        except FormulaError as e:
            if not self.settings.persist_on_formula_error:
                raise
            logger.warning(
                "Pay not computed for employee %s on %s: %s", employee.employee_id, ot_date, e
            )
            return None, formula_id, str(e)
        return calculation, formula_id, None

    def _generate_ticket_number(self, ot_date: date) -> str:
        return f"{self.settings.ticket_prefix}-{ot_date:%Y%m%d}-{uuid4().hex[:6].upper()}"

    # ===== Approval actions =====

    async def act(
        self,
        request_ids: Sequence[UUID],
        actor: Actor,
        role: ApprovalRole | str,
        decision: Decision | str,
        remarks: str | None = None,
    ) -> ActionResult:
        """Apply one decision by one role to a batch of requests.

        Every id transitions and is stamped, or none is. The update is
        conditioned on each row still being in an allowed source status, so
        a decision that lost a race fails instead of overwriting.

        Raises:
            OvertimeValidationError: Unknown role or decision, empty batch
            MissingRemarksError: Rejecting without remarks
            RequestNotFoundError: Unknown id in the batch
            InvalidTransitionError: Role cannot act from a request's status
            ActorNotPermittedError: Actor's role does not cover ``role``
        """
        approval_role, verdict = parse_action(role, decision)
        transition = RequestStateMachine.transition_for(approval_role)
        stored_remarks = RequestStateMachine.normalize_remarks(verdict, remarks)

        if actor.role not in APPROVER_APP_ROLES[approval_role]:
            raise ActorNotPermittedError(actor.role, f"act as {approval_role.value}")

        ids = list(dict.fromkeys(request_ids))
        if not ids:
            raise OvertimeValidationError("At least one request id is required", field="request_ids")

        requests = await self._load_for_update(ids)
        from_statuses: dict[UUID, str] = {}
        target = RequestStateMachine.target_status(approval_role, verdict)
        for request in requests:
            RequestStateMachine.validate_action(
                approval_role, verdict, request.status, request.request_id
            )
            from_statuses[request.request_id] = request.status

        now = datetime.now(timezone.utc)
        values: dict[str, Any] = {
            "status": target.value,
            transition.remarks_field: stored_remarks,
            transition.timestamp_field: now,
            transition.actor_field: actor.user_id,
            "updated_at": now,
        }
        if verdict == Decision.REJECT:
            values["rejection_stage"] = transition.rejection_stage.value
        else:
            values["rejection_stage"] = None

        result = await self.session.execute(
            update(OvertimeRequest)
            .where(
                OvertimeRequest.request_id.in_(ids),
                OvertimeRequest.status.in_([s.value for s in transition.allowed_sources]),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(ids):
            # Another reviewer moved at least one request after we read it
            raise InvalidTransitionError(
                ", ".join(sorted(set(from_statuses.values()))),
                target.value,
                f"{len(ids) - result.rowcount} request(s) changed concurrently",
            )

        updated = await self._reload(ids)
        logger.info(
            "%s %s %d OT request(s) -> %s by %s",
            approval_role.value,
            verdict.value,
            len(updated),
            target.value,
            actor.user_id,
        )
        recertified = [
            rid for rid, status in from_statuses.items()
            if RequestStateMachine.is_recertification(status, target)
        ]
        if recertified:
            logger.info(
                "%d OT request(s) recertified by HR after management rejection",
                len(recertified),
            )
        self._queue_action_events(updated, actor, target)

        return ActionResult(
            requests=updated,
            role=approval_role,
            decision=verdict,
            from_statuses=from_statuses,
            to_status=target,
        )

    async def _load_for_update(self, ids: list[UUID]) -> list[OvertimeRequest]:
        result = await self.session.execute(
            select(OvertimeRequest)
            .where(OvertimeRequest.request_id.in_(ids))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        found = {r.request_id: r for r in result.scalars().all()}
        missing = [i for i in ids if i not in found]
        if missing:
            raise RequestNotFoundError(missing)
        return [found[i] for i in ids]

    async def _reload(self, ids: list[UUID]) -> list[OvertimeRequest]:
        result = await self.session.execute(
            select(OvertimeRequest)
            .where(OvertimeRequest.request_id.in_(ids))
            .execution_options(populate_existing=True)
        )
        found = {r.request_id: r for r in result.scalars().all()}
        return [found[i] for i in ids]

    def _queue_action_events(
        self, requests: list[OvertimeRequest], actor: Actor, target: OTStatus
    ) -> None:
        name = actor.name or actor.role
        for request in requests:
            event = self._action_event(request, target, name)
            if event is not None:
                self._outbox.append(event)

    @staticmethod
    def _action_event(
        request: OvertimeRequest, target: OTStatus, actor_name: str
    ) -> OvertimeEvent | None:
        if target == OTStatus.REJECTED:
            return OvertimeEvent.for_request(
                request, EventKind.REJECTED, request.employee_id, actor_name
            )
        if target == OTStatus.PENDING_HR_RECERTIFICATION:
            if request.hr_id is None:
                return None
            # Management bounced it: the certifying HR officer must look again
            return OvertimeEvent.for_request(request, EventKind.REJECTED, request.hr_id, actor_name)
        return OvertimeEvent.for_request(
            request, EventKind.APPROVED, request.employee_id, actor_name
        )
