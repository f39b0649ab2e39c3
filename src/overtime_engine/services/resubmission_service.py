"""Resubmission of rejected overtime requests."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_engine.errors import OvertimeValidationError
from overtime_engine.models import OvertimeRequest, ResubmissionHistory
from overtime_engine.services.lifecycle_service import (
    Actor,
    OvertimeSubmission,
    RequestLifecycleManager,
    SubmissionResult,
)
from overtime_engine.services.state_machine import OTStatus, RejectionStage

logger = logging.getLogger(__name__)

NO_REMARKS = "No remarks provided"


@dataclass
class ResubmissionResult:
    submission: SubmissionResult
    history: ResubmissionHistory

    @property
    def request(self) -> OvertimeRequest:
        return self.submission.request


def select_rejection_reason(request: OvertimeRequest) -> str:
    """Most specific prior remark: management, then HR, then supervisor."""
    for remarks in (
        request.management_remarks,
        request.hr_remarks,
        request.supervisor_remarks,
    ):
        if remarks and remarks.strip():
            return remarks.strip()
    return NO_REMARKS


class ResubmissionTracker:
    """Links rejected requests to their successors.

    The original row is never modified; each resubmission appends exactly
    one ResubmissionHistory row.
    """

    def __init__(self, session: AsyncSession, lifecycle: RequestLifecycleManager):
        self.session = session
        self.lifecycle = lifecycle

    async def resubmit(
        self,
        original_id: UUID,
        submission: OvertimeSubmission,
        actor: Actor,
    ) -> ResubmissionResult:
        """Create a successor request for a rejected one.

        The successor goes through the same eligibility, overlap, pay and
        threshold pipeline as a fresh submission.

        Raises:
            RequestNotFoundError: If the original does not exist
            OvertimeValidationError: If the original is not rejected, belongs
                to another employee, or was already resubmitted
        """
        original = await self.lifecycle.get_request(original_id)

        if OTStatus(original.status) != OTStatus.REJECTED:
            raise OvertimeValidationError(
                f"Only rejected requests can be resubmitted; {original.ticket_number} "
                f"is '{original.status}'",
                field="original_request_id",
            )
        if submission.employee_id != original.employee_id:
            raise OvertimeValidationError(
                "A resubmission must be for the same employee as the original",
                field="employee_id",
            )
        if await self._get_successor_id(original.request_id) is not None:
            raise OvertimeValidationError(
                f"Request {original.ticket_number} has already been resubmitted",
                field="original_request_id",
            )

        result = await self.lifecycle.create_request(submission, actor, parent=original)

        history = ResubmissionHistory(
            original_request_id=original.request_id,
            resubmitted_request_id=result.request.request_id,
            rejected_by_role=original.rejection_stage or RejectionStage.SUPERVISOR.value,
            rejection_reason=select_rejection_reason(original),
        )
        self.session.add(history)
        await self.session.flush()
        await self.session.refresh(history)

        logger.info(
            "OT request %s resubmitted as %s (count %d)",
            original.ticket_number,
            result.request.ticket_number,
            result.request.resubmission_count,
        )
        return ResubmissionResult(submission=result, history=history)

    async def get_history(self, request_id: UUID) -> list[ResubmissionHistory]:
        """History rows where the request is either the original or the successor."""
        result = await self.session.execute(
            select(ResubmissionHistory)
            .where(
                (ResubmissionHistory.original_request_id == request_id)
                | (ResubmissionHistory.resubmitted_request_id == request_id)
            )
            .order_by(ResubmissionHistory.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_chain(self, request_id: UUID) -> list[OvertimeRequest]:
        """Every request in the resubmission chain, oldest first."""
        current = await self.lifecycle.get_request(request_id)

        # Walk up to the root
        while current.parent_request_id is not None:
            current = await self.lifecycle.get_request(current.parent_request_id)

        chain = [current]
        successor_id = await self._get_successor_id(current.request_id)
        while successor_id is not None:
            current = await self.lifecycle.get_request(successor_id)
            chain.append(current)
            successor_id = await self._get_successor_id(current.request_id)
        return chain

    async def _get_successor_id(self, request_id: UUID) -> UUID | None:
        result = await self.session.execute(
            select(OvertimeRequest.request_id)
            .where(OvertimeRequest.parent_request_id == request_id)
            .limit(1)
        )
        return result.scalar_one_or_none()
