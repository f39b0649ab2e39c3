"""Overtime request API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from overtime_engine.api.dependencies import CurrentActor, Lifecycle, Resubmissions
from overtime_engine.api.schemas import (
    ActionRequest,
    ActionResponse,
    DailyGroupResponse,
    ErrorResponse,
    OvertimeRequestListResponse,
    OvertimeRequestResponse,
    OvertimeResubmitRequest,
    OvertimeSubmitRequest,
    ResubmissionChainResponse,
    ResubmissionHistoryResponse,
    ResubmissionResponse,
    SubmissionResponse,
)
from overtime_engine.services.grouping import group_by_employee_and_date
from overtime_engine.services.lifecycle_service import OvertimeSubmission, SubmissionResult

router = APIRouter(prefix="/overtime-requests", tags=["overtime-requests"])


def _submission_response(result: SubmissionResult) -> SubmissionResponse:
    return SubmissionResponse(
        request=OvertimeRequestResponse.model_validate(result.request),
        formula_error=result.formula_error,
        violations=result.violations,
    )


# ============================================================================
# Submission and reads
# ============================================================================


@router.post(
    "",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def submit_overtime(
    actor: CurrentActor,
    lifecycle: Lifecycle,
    payload: OvertimeSubmitRequest,
) -> SubmissionResponse:
    """Submit a new overtime claim."""
    result = await lifecycle.submit(
        OvertimeSubmission(**payload.model_dump()),
        actor,
    )
    await lifecycle.commit()
    return _submission_response(result)


@router.get("", response_model=OvertimeRequestListResponse)
async def list_overtime_requests(
    lifecycle: Lifecycle,
    status_filter: Annotated[list[str] | None, Query(alias="status")] = None,
    employee_id: UUID | None = None,
) -> OvertimeRequestListResponse:
    """List requests, optionally by status (e.g. the recertification queue)."""
    requests = await lifecycle.list_requests(statuses=status_filter, employee_id=employee_id)
    return OvertimeRequestListResponse(
        items=[OvertimeRequestResponse.model_validate(r) for r in requests],
        total=len(requests),
    )


@router.get("/grouped", response_model=list[DailyGroupResponse])
async def list_grouped_requests(
    lifecycle: Lifecycle,
    status_filter: Annotated[list[str] | None, Query(alias="status")] = None,
    employee_id: UUID | None = None,
) -> list[DailyGroupResponse]:
    """One entry per employee per date, sessions merged."""
    requests = await lifecycle.list_requests(statuses=status_filter, employee_id=employee_id)
    return [
        DailyGroupResponse(
            employee_id=group.employee_id,
            ot_date=group.ot_date,
            sessions=[OvertimeRequestResponse.model_validate(s) for s in group.sessions],
            total_hours=group.total_hours,
            total_amount=group.total_amount,
            statuses=sorted(group.statuses),
            is_mixed=group.is_mixed,
            violations=group.violations,
        )
        for group in group_by_employee_and_date(requests)
    ]


@router.get(
    "/{request_id}",
    response_model=OvertimeRequestResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_overtime_request(
    lifecycle: Lifecycle,
    request_id: Annotated[UUID, Path()],
) -> OvertimeRequestResponse:
    """Get a specific overtime request by ID."""
    return OvertimeRequestResponse.model_validate(await lifecycle.get_request(request_id))


# ============================================================================
# Approval actions
# ============================================================================


@router.post(
    "/actions",
    response_model=ActionResponse,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def act_on_requests(
    actor: CurrentActor,
    lifecycle: Lifecycle,
    payload: ActionRequest,
) -> ActionResponse:
    """Approve or reject a batch of requests as one role; all or nothing."""
    result = await lifecycle.act(
        payload.request_ids,
        actor,
        payload.role,
        payload.decision,
        payload.remarks,
    )
    await lifecycle.commit()
    return ActionResponse(
        role=result.role.value,
        decision=result.decision.value,
        to_status=result.to_status.value,
        from_statuses=result.from_statuses,
        requests=[OvertimeRequestResponse.model_validate(r) for r in result.requests],
    )


# ============================================================================
# Resubmission
# ============================================================================


@router.post(
    "/{request_id}/resubmit",
    response_model=ResubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def resubmit_overtime(
    actor: CurrentActor,
    lifecycle: Lifecycle,
    tracker: Resubmissions,
    request_id: Annotated[UUID, Path()],
    payload: OvertimeResubmitRequest,
) -> ResubmissionResponse:
    """Create a successor for a rejected request."""
    original = await lifecycle.get_request(request_id)
    result = await tracker.resubmit(
        request_id,
        OvertimeSubmission(employee_id=original.employee_id, **payload.model_dump()),
        actor,
    )
    await lifecycle.commit()
    return ResubmissionResponse(
        submission=_submission_response(result.submission),
        history=ResubmissionHistoryResponse.model_validate(result.history),
    )


@router.get(
    "/{request_id}/history",
    response_model=ResubmissionChainResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_resubmission_history(
    tracker: Resubmissions,
    request_id: Annotated[UUID, Path()],
) -> ResubmissionChainResponse:
    """Resubmission chain and audit rows around a request."""
    chain = await tracker.get_chain(request_id)
    history = []
    for request in chain[:-1]:
        history.extend(await tracker.get_history(request.request_id))
    unique = {h.history_id: h for h in history}
    return ResubmissionChainResponse(
        chain=[OvertimeRequestResponse.model_validate(r) for r in chain],
        history=[ResubmissionHistoryResponse.model_validate(h) for h in unique.values()],
    )
