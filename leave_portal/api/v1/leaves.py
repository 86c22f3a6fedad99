"""
Leave request endpoints
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from leave_portal.core.deps import get_db, get_current_user, require_hr
from leave_portal.core.exceptions import PermissionDenied
from leave_portal.models.employee import Employee
from leave_portal.models.leave import ExternalClearanceStatus, LeaveStatus
from leave_portal.schemas.leave import (
    LeaveSubmitRequest,
    LeaveUpdateRequest,
    ApproveRequest,
    RejectRequest,
    DelegateRequest,
    CancelRequest,
    ExternalClearanceRequest,
    PayrollCloseRequest,
    PayrollCloseResponse,
    LeaveOut,
    LeaveListResponse,
    PendingApprovalOut,
    ApprovalStepOut,
    StepActionOut,
)
from leave_portal.services import leave_request_machine as machine

router = APIRouter()


def _visible_request(db: Session, request_id: int, current_user: Employee):
    request = machine.get_request(db, request_id)
    if not machine.can_view(db, request, current_user):
        raise PermissionDenied("You do not have access to this leave request")
    return request


@router.post("", response_model=LeaveOut, status_code=status.HTTP_201_CREATED)
async def create_leave(
    payload: LeaveSubmitRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """
    Create a leave request.

    Submits immediately (overlap check, balance pre-check, approval chain)
    unless `as_draft` is set.
    """
    employee_id = payload.employee_id or current_user.id
    if payload.as_draft:
        request = machine.create_draft(
            db, employee_id, payload.leave_type, payload.start_date, payload.end_date,
            payload.days, payload.reason, actor=current_user,
        )
    else:
        request = machine.submit(
            db, employee_id, payload.leave_type, payload.start_date, payload.end_date,
            payload.days, payload.reason, actor=current_user,
        )
    return LeaveOut.from_request(request)


@router.get("/my", response_model=LeaveListResponse)
async def my_leaves(
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    items = [LeaveOut.from_request(r) for r in machine.list_requests(db, current_user.id, status_filter)]
    return LeaveListResponse(items=items, total=len(items))


@router.get("/pending", response_model=List[PendingApprovalOut])
async def pending_for_me(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Approval steps the caller can decide right now"""
    return [
        PendingApprovalOut(step=ApprovalStepOut.model_validate(step), leave=LeaveOut.from_request(step.leave_request))
        for step in machine.list_pending_for_approver(db, current_user)
    ]


@router.post("/payroll-close", response_model=PayrollCloseResponse)
async def payroll_close(
    payload: PayrollCloseRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_hr),
):
    """Lock every approved/recorded request in the closed payroll period"""
    locked_ids = machine.close_payroll_period(db, payload.period_end, current_user)
    return PayrollCloseResponse(period_end=payload.period_end, locked_count=len(locked_ids), locked_request_ids=locked_ids)


@router.get("/external-clearance", response_model=LeaveListResponse)
async def external_clearance_queue(
    status_filter: Optional[ExternalClearanceStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Requests needing PSC/OHCS clearance (Chief Director and HR Director)"""
    items = [LeaveOut.from_request(r) for r in machine.list_external_clearances(db, current_user, status_filter)]
    return LeaveListResponse(items=items, total=len(items))


@router.get("/{request_id}", response_model=LeaveOut)
async def get_leave(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    return LeaveOut.from_request(_visible_request(db, request_id, current_user))


@router.patch("/{request_id}", response_model=LeaveOut)
async def update_leave_draft(
    request_id: int,
    payload: LeaveUpdateRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    request = machine.update_draft(db, request_id, current_user, **payload.model_dump(exclude_unset=True))
    return LeaveOut.from_request(request)


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_leave_draft(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    machine.delete_draft(db, request_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{request_id}/submit", response_model=LeaveOut)
async def submit_leave_draft(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    return LeaveOut.from_request(machine.submit_draft(db, request_id, current_user))


@router.post("/{request_id}/approve", response_model=LeaveOut)
async def approve_leave(
    request_id: int,
    payload: ApproveRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    request = machine.approve(
        db, request_id, payload.level, current_user, payload.comment, payload.expected_version
    )
    return LeaveOut.from_request(request)


@router.post("/{request_id}/reject", response_model=LeaveOut)
async def reject_leave(
    request_id: int,
    payload: RejectRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    request = machine.reject(
        db, request_id, payload.level, current_user, payload.comment, payload.expected_version
    )
    return LeaveOut.from_request(request)


@router.post("/{request_id}/delegate", response_model=LeaveOut)
async def delegate_leave_step(
    request_id: int,
    payload: DelegateRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    request = machine.delegate(
        db, request_id, payload.level, current_user, payload.delegate_id,
        payload.comment, payload.expected_version,
    )
    return LeaveOut.from_request(request)


@router.post("/{request_id}/cancel", response_model=LeaveOut)
async def cancel_leave(
    request_id: int,
    payload: Optional[CancelRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    reason = payload.reason if payload else None
    return LeaveOut.from_request(machine.cancel(db, request_id, current_user, reason))


@router.post("/{request_id}/resubmit", response_model=LeaveOut)
async def resubmit_leave(
    request_id: int,
    payload: Optional[LeaveUpdateRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    corrections = payload.model_dump(exclude_unset=True) if payload else {}
    return LeaveOut.from_request(machine.resubmit(db, request_id, current_user, **corrections))


@router.post("/{request_id}/lock", response_model=LeaveOut)
async def lock_leave(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_hr),
):
    return LeaveOut.from_request(machine.lock_request(db, request_id, current_user))


@router.post("/{request_id}/external-clearance", response_model=LeaveOut)
async def record_leave_clearance(
    request_id: int,
    payload: ExternalClearanceRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    request = machine.record_external_clearance(
        db, request_id, current_user, payload.status,
        payload.psc_reference_number, payload.ohcs_reference_number, payload.comments,
    )
    return LeaveOut.from_request(request)


@router.get("/{request_id}/history", response_model=List[StepActionOut])
async def leave_history(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Immutable trail of every approval step transition"""
    _visible_request(db, request_id, current_user)
    return machine.get_step_history(db, request_id)
