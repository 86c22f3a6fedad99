"""
Leave Request Machine - top-level lifecycle of a leave request.

    draft    -> pending                                 submit
    pending  -> approved | recorded                     every live step approved/skipped
    pending  -> rejected                                any live step rejected
    pending  -> cancelled                               applicant or HR withdraws
    approved -> cancelled                               post-approval reversal (ledger credit)
    rejected -> pending                                 resubmission, new approval round

Every operation runs in one transaction: state checks, step transitions and
ledger writes commit together or not at all. Audit records and notifications
are dispatched after the commit and can never undo it.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from leave_portal.core.exceptions import (
    ConcurrentModification,
    ExternalClearanceRequired,
    InsufficientBalance,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    RequestLocked,
    ValidationError,
)
from leave_portal.models.employee import Employee, Role
from leave_portal.models.leave import (
    ApprovalStep,
    ApprovalStepAction,
    ExternalClearanceStatus,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
    StepStatus,
    EXTERNAL_CLEARANCE_LEAVE_TYPES,
    GRANTED_LEAVE_STATUSES,
    PAYROLL_IMPACT_LEAVE_TYPES,
)
from leave_portal.services import approval_step_machine as steps_sm
from leave_portal.services import balance_ledger as ledger
from leave_portal.services import org_directory
from leave_portal.services.audit_service import log_audit
from leave_portal.services.notification_service import notify
from leave_portal.services.overlap_detector import assert_no_overlap
from leave_portal.services.policy_service import get_active_policy
from leave_portal.services.workflow_planner import is_record_only, plan, rules_from_settings
from leave_portal.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)

REQUEST_TRANSITIONS: Dict[LeaveStatus, FrozenSet[LeaveStatus]] = {
    LeaveStatus.DRAFT: frozenset({LeaveStatus.PENDING}),
    LeaveStatus.PENDING: frozenset({
        LeaveStatus.APPROVED,
        LeaveStatus.REJECTED,
        LeaveStatus.CANCELLED,
        LeaveStatus.RECORDED,
    }),
    LeaveStatus.APPROVED: frozenset({LeaveStatus.CANCELLED}),
    LeaveStatus.REJECTED: frozenset({LeaveStatus.PENDING}),
}

EDITABLE_FIELDS = ("leave_type", "start_date", "end_date", "days", "reason")

# Who may see the PSC/OHCS clearance queue; only the chief director records outcomes
EXTERNAL_CLEARANCE_VIEWERS = frozenset({Role.CHIEF_DIRECTOR, Role.HR_DIRECTOR})


@dataclass
class _Effects:
    """Audit records and notifications to dispatch once the transaction commits."""
    audits: List[Tuple[Optional[int], str, Dict[str, Any], int]] = field(default_factory=list)
    step_actions: List[Tuple[ApprovalStepAction, Optional[str]]] = field(default_factory=list)
    notifications: List[Tuple[List[int], str, str, Optional[str], str]] = field(default_factory=list)

    def audit(self, actor_id, action, request_id, **meta):
        self.audits.append((actor_id, action, meta, request_id))

    def notify(self, user_ids, title, message, request_id, type):
        self.notifications.append((list(user_ids), title, message, f"/leaves/{request_id}", type))


def _dispatch(db: Session, effects: _Effects) -> None:
    for action, audit_action in effects.step_actions:
        steps_sm.audit_step_action(db, action, audit_action)
    for actor_id, action, meta, request_id in effects.audits:
        log_audit(db, actor_id, action, "leave_request", request_id, meta)
    for user_ids, title, message, link, type in effects.notifications:
        notify(db, user_ids, message, title=title, link=link, type=type)


@contextmanager
def _transaction(db: Session):
    try:
        yield
        db.commit()
    except (StaleDataError, IntegrityError):
        db.rollback()
        raise ConcurrentModification("Leave request was modified concurrently; re-read and retry")
    except Exception:
        db.rollback()
        raise


def _assert_transition(request: LeaveRequest, to_status: LeaveStatus) -> None:
    from_status = LeaveStatus(request.status)
    if to_status not in REQUEST_TRANSITIONS.get(from_status, frozenset()):
        raise InvalidTransition("leave_request", from_status, to_status)


def _transition(request: LeaveRequest, to_status: LeaveStatus, action: str) -> LeaveStatus:
    _assert_transition(request, to_status)
    before = LeaveStatus(request.status)
    request.status = to_status
    logger.info(
        "leave status transition: leave_request_id=%s before=%s after=%s action=%s",
        request.id, before.value, to_status.value, action,
    )
    return before


def _to_days(days: Union[int, float, str, Decimal]) -> Decimal:
    try:
        return Decimal(str(days))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid day count: {days!r}")


def _validate_request_fields(leave_type, start_date: date, end_date: date, days) -> Tuple[LeaveType, Decimal]:
    try:
        leave_type = LeaveType(leave_type)
    except ValueError:
        raise ValidationError(f"Unknown leave type: {leave_type}")
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date are required")
    if start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")
    amount = _to_days(days)
    if amount <= 0:
        raise ValidationError("days must be greater than zero")
    span = (end_date - start_date).days + 1
    if amount > span:
        raise ValidationError(
            f"days ({amount}) cannot exceed the calendar span of the request ({span})",
            {"days": float(amount), "calendar_days": span},
        )
    return leave_type, amount


def _apply_type_flags(request: LeaveRequest) -> None:
    request.requires_external_clearance = request.leave_type in EXTERNAL_CLEARANCE_LEAVE_TYPES
    request.payroll_impact = request.leave_type in PAYROLL_IMPACT_LEAVE_TYPES
    if not request.requires_external_clearance:
        request.external_clearance_status = None
        request.external_clearance_date = None
        request.psc_reference_number = None
        request.ohcs_reference_number = None
    elif request.external_clearance_status is None:
        request.external_clearance_status = ExternalClearanceStatus.PENDING


def _load_request(db: Session, request_id: int) -> LeaveRequest:
    request = (
        db.query(LeaveRequest)
        .filter(LeaveRequest.id == request_id)
        .with_for_update()
        .first()
    )
    if not request:
        raise NotFound(f"Leave request {request_id} not found")
    return request


def _check_version(request: LeaveRequest, expected_version: Optional[int]) -> None:
    if expected_version is not None and request.version != expected_version:
        raise ConcurrentModification(
            "Leave request has changed since it was read",
            {"expected_version": expected_version, "current_version": request.version},
        )


def _require_applicant(request: LeaveRequest, actor: Employee) -> None:
    if actor.id != request.employee_id:
        raise PermissionDenied("Only the applicant can perform this action")


def _require_applicant_or_hr(request: LeaveRequest, actor: Employee) -> None:
    if actor.id != request.employee_id and not actor.is_hr:
        raise PermissionDenied("Only the applicant or HR can perform this action")


def _require_hr(actor: Employee) -> None:
    if not actor.is_hr:
        raise PermissionDenied("Only HR can perform this action")


def _live_step(request: LeaveRequest, level: int) -> ApprovalStep:
    for step in request.live_steps:
        if step.level == level:
            return step
    raise NotFound(f"Approval level {level} not found for leave request {request.id}")


def _open_round(db: Session, request: LeaveRequest) -> List[ApprovalStep]:
    """Overlap check, balance pre-check and a fresh set of steps for the current round."""
    org_info = org_directory.get_org_info(db, request.employee_id)

    assert_no_overlap(db, request.employee_id, request.start_date, request.end_date, exclude_request_id=request.id)

    check = ledger.check_sufficient(db, request.employee_id, request.leave_type, request.days)
    if not check.sufficient:
        raise InsufficientBalance(request.leave_type, check.current_balance, Decimal(request.days))

    policy = get_active_policy(db, request.leave_type)
    specs = plan(
        org_info,
        request.leave_type,
        request.days,
        rules_from_settings(policy.required_approval_levels if policy else None),
    )
    request.record_only = is_record_only(org_info)

    now = now_utc()
    created = []
    for level_spec in specs:
        step = ApprovalStep(
            leave_request=request,
            round=request.current_round,
            level=level_spec.level,
            approver_role=level_spec.approver_role,
            approver_id=level_spec.approver_id,
            status=StepStatus.PENDING,
            activated_at=now if level_spec.level == 1 else None,
        )
        db.add(step)
        created.append(step)
    db.flush()
    return created


def _notify_active_approvers(db: Session, request: LeaveRequest, step: ApprovalStep, effects: _Effects) -> None:
    approver_ids = steps_sm.eligible_approver_ids(db, step, request)
    effects.notify(
        approver_ids,
        "Leave approval required",
        f"{request.employee.name} requested {request.days} day(s) of {request.leave_type.value} leave "
        f"({request.start_date} to {request.end_date}). Level {step.level} approval is awaiting you.",
        request.id,
        "APPROVAL_REQUIRED",
    )


def _finalize_if_resolved(db: Session, request: LeaveRequest, actor_id: Optional[int], effects: _Effects) -> Optional[LeaveStatus]:
    """
    Aggregate the live steps: every step approved/skipped with at least one
    approval grants the request and debits the ledger in this transaction.
    Types that need PSC/OHCS clearance are only granted once it is cleared.
    """
    statuses = [StepStatus(s.status) for s in request.live_steps]
    if not statuses or StepStatus.REJECTED in statuses:
        return None
    if not all(s in (StepStatus.APPROVED, StepStatus.SKIPPED) for s in statuses):
        return None
    if StepStatus.APPROVED not in statuses:
        return None
    if (
        request.requires_external_clearance
        and request.external_clearance_status != ExternalClearanceStatus.CLEARED
    ):
        raise ExternalClearanceRequired(
            "PSC/OHCS external clearance must be recorded as cleared before final approval",
            {"leave_request_id": request.id, "external_clearance_status": request.external_clearance_status},
        )

    target = LeaveStatus.RECORDED if request.record_only else LeaveStatus.APPROVED
    _transition(request, target, "approve")
    request.decided_at = now_utc()
    result = ledger.debit(db, request.employee_id, request.leave_type, request.days, request.id, actor_id)

    effects.audit(
        actor_id,
        "LEAVE_RECORDED" if target == LeaveStatus.RECORDED else "LEAVE_APPROVED",
        request.id,
        before=LeaveStatus.PENDING,
        after=target,
        days=request.days,
        leave_type=request.leave_type,
        balance_after=result.balance_after,
    )
    effects.notify(
        [request.employee_id],
        f"Leave {target.value}",
        f"Your {request.leave_type.value} leave from {request.start_date} to {request.end_date} has been {target.value}.",
        request.id,
        "LEAVE_DECIDED",
    )
    if request.payroll_impact:
        effects.notify(
            [e.id for e in org_directory.find_hr_staff(db)],
            "Payroll-impacting leave approved",
            f"{request.leave_type.value} leave for employee {request.employee_id} "
            f"({request.start_date} to {request.end_date}) affects payroll.",
            request.id,
            "PAYROLL_IMPACT",
        )
    return target


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------

def _new_request(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    start_date: date,
    end_date: date,
    days: Union[int, float, Decimal],
    reason: Optional[str],
    actor: Optional[Employee],
) -> LeaveRequest:
    leave_type, amount = _validate_request_fields(leave_type, start_date, end_date, days)
    org_directory.get_org_info(db, employee_id)
    if actor is not None and actor.id != employee_id and not actor.is_hr:
        raise PermissionDenied("You can only create leave requests for yourself")

    request = LeaveRequest(
        employee_id=employee_id,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        days=amount,
        reason=reason,
        status=LeaveStatus.DRAFT,
        current_round=1,
    )
    _apply_type_flags(request)
    return request


def create_draft(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    start_date: date,
    end_date: date,
    days: Union[int, float, Decimal],
    reason: Optional[str] = None,
    actor: Optional[Employee] = None,
) -> LeaveRequest:
    request = _new_request(db, employee_id, leave_type, start_date, end_date, days, reason, actor)
    with _transaction(db):
        db.add(request)
    db.refresh(request)

    log_audit(
        db,
        actor_id=actor.id if actor else employee_id,
        action="LEAVE_DRAFT_CREATE",
        entity_type="leave_request",
        entity_id=request.id,
        meta={
            "leave_type": request.leave_type,
            "start_date": request.start_date,
            "end_date": request.end_date,
            "days": request.days,
        },
    )
    return request


def update_draft(db: Session, request_id: int, actor: Employee, **fields) -> LeaveRequest:
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

    with _transaction(db):
        request = _load_request(db, request_id)
        _require_applicant(request, actor)
        if LeaveStatus(request.status) != LeaveStatus.DRAFT:
            raise ValidationError("Only draft requests can be edited")
        _apply_corrections(request, fields)
    db.refresh(request)

    log_audit(db, actor.id, "LEAVE_DRAFT_UPDATE", "leave_request", request.id, {"fields": sorted(fields)})
    return request


def _apply_corrections(request: LeaveRequest, fields: Dict[str, Any]) -> None:
    values = {name: fields.get(name, getattr(request, name)) for name in EDITABLE_FIELDS}
    leave_type, amount = _validate_request_fields(
        values["leave_type"], values["start_date"], values["end_date"], values["days"]
    )
    request.leave_type = leave_type
    request.start_date = values["start_date"]
    request.end_date = values["end_date"]
    request.days = amount
    request.reason = values["reason"]
    _apply_type_flags(request)


def delete_draft(db: Session, request_id: int, actor: Employee) -> None:
    """Drafts are the only requests that are ever hard-deleted."""
    with _transaction(db):
        request = _load_request(db, request_id)
        _require_applicant(request, actor)
        if LeaveStatus(request.status) != LeaveStatus.DRAFT:
            raise ValidationError("Only draft requests can be deleted; cancel submitted requests instead")
        db.delete(request)

    log_audit(db, actor.id, "LEAVE_DRAFT_DELETE", "leave_request", request_id)


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

def _submit(db: Session, request: LeaveRequest, actor: Employee, effects: _Effects) -> None:
    _assert_transition(request, LeaveStatus.PENDING)
    created = _open_round(db, request)
    _transition(request, LeaveStatus.PENDING, "submit")
    request.submitted_at = now_utc()

    effects.audit(
        actor.id, "LEAVE_SUBMIT", request.id,
        before=LeaveStatus.DRAFT, after=LeaveStatus.PENDING,
        levels=[s.approver_role for s in created],
    )
    _notify_active_approvers(db, request, created[0], effects)


def submit_draft(db: Session, request_id: int, actor: Employee) -> LeaveRequest:
    """
    draft -> pending: overlap check, balance pre-check, plan and create steps.

    Raises:
        OverlappingLeave, InsufficientBalance, OrgInfoNotFound, InvalidTransition
    """
    effects = _Effects()
    with _transaction(db):
        request = _load_request(db, request_id)
        _require_applicant_or_hr(request, actor)
        _submit(db, request, actor, effects)

    _dispatch(db, effects)
    db.refresh(request)
    return request


def submit(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    start_date: date,
    end_date: date,
    days: Union[int, float, Decimal],
    reason: Optional[str] = None,
    actor: Optional[Employee] = None,
) -> LeaveRequest:
    """Create and submit in one transaction; a rejected submission leaves nothing behind."""
    actor = actor or org_directory.get_employee(db, employee_id)
    effects = _Effects()
    with _transaction(db):
        request = _new_request(db, employee_id, leave_type, start_date, end_date, days, reason, actor)
        db.add(request)
        db.flush()
        _submit(db, request, actor, effects)

    _dispatch(db, effects)
    db.refresh(request)
    return request


# ---------------------------------------------------------------------------
# Approver actions
# ---------------------------------------------------------------------------

def _prepare_step_action(
    db: Session, request_id: int, level: int, actor: Employee, expected_version: Optional[int], to_status: LeaveStatus
) -> Tuple[LeaveRequest, ApprovalStep]:
    request = _load_request(db, request_id)
    _check_version(request, expected_version)
    if LeaveStatus(request.status) != LeaveStatus.PENDING:
        raise InvalidTransition(
            "leave_request", request.status, to_status,
            f"Leave request is {LeaveStatus(request.status).value}; only pending requests can be acted on",
        )
    step = _live_step(request, level)
    steps_sm.assert_actionable(step, request.live_steps)
    steps_sm.authorize(db, step, request, actor)
    return request, step


def approve(
    db: Session,
    request_id: int,
    level: int,
    actor: Employee,
    comment: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> LeaveRequest:
    effects = _Effects()
    with _transaction(db):
        request, step = _prepare_step_action(db, request_id, level, actor, expected_version, LeaveStatus.APPROVED)
        now = now_utc()
        action = steps_sm.transition_step(db, step, StepStatus.APPROVED, actor.id, comment, now=now)
        effects.step_actions.append((action, None))

        outcome = _finalize_if_resolved(db, request, actor.id, effects)
        if outcome is None:
            nxt = steps_sm.activate_next(request.live_steps, now)
            if nxt is not None:
                _notify_active_approvers(db, request, nxt, effects)

    _dispatch(db, effects)
    db.refresh(request)
    return request


def reject(
    db: Session,
    request_id: int,
    level: int,
    actor: Employee,
    comment: Optional[str],
    expected_version: Optional[int] = None,
) -> LeaveRequest:
    """Reject at `level`; every other unresolved level of the round is skipped."""
    if not comment or not comment.strip():
        raise ValidationError("A comment is required when rejecting a leave request")

    effects = _Effects()
    with _transaction(db):
        request, step = _prepare_step_action(db, request_id, level, actor, expected_version, LeaveStatus.REJECTED)
        now = now_utc()
        action = steps_sm.transition_step(db, step, StepStatus.REJECTED, actor.id, comment, now=now)
        effects.step_actions.append((action, None))

        for other in request.live_steps:
            if other.id != step.id and steps_sm.is_unresolved(other):
                skipped = steps_sm.transition_step(
                    db, other, StepStatus.SKIPPED, actor.id,
                    f"Skipped: request rejected at level {step.level}", now=now,
                )
                effects.step_actions.append((skipped, None))

        _transition(request, LeaveStatus.REJECTED, "reject")
        request.decided_at = now
        effects.audit(
            actor.id, "LEAVE_REJECTED", request.id,
            before=LeaveStatus.PENDING, after=LeaveStatus.REJECTED, level=level, comment=comment,
        )
        effects.notify(
            [request.employee_id],
            "Leave rejected",
            f"Your {request.leave_type.value} leave from {request.start_date} to {request.end_date} "
            f"was rejected at level {level}: {comment}",
            request.id,
            "LEAVE_DECIDED",
        )

    _dispatch(db, effects)
    db.refresh(request)
    return request


def delegate(
    db: Session,
    request_id: int,
    level: int,
    actor: Employee,
    delegate_id: int,
    comment: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> LeaveRequest:
    effects = _Effects()
    with _transaction(db):
        request, step = _prepare_step_action(db, request_id, level, actor, expected_version, LeaveStatus.PENDING)
        if delegate_id in (actor.id, request.employee_id):
            raise ValidationError("A step cannot be delegated to yourself or to the applicant")
        delegate_employee = org_directory.get_employee(db, delegate_id)
        if not delegate_employee.active:
            raise ValidationError(f"Employee {delegate_id} is inactive and cannot receive a delegation")

        action = steps_sm.transition_step(
            db, step, StepStatus.DELEGATED, actor.id, comment, delegate_id=delegate_id
        )
        effects.step_actions.append((action, None))
        effects.notify(
            [delegate_id],
            "Leave approval delegated to you",
            f"{actor.name} delegated level {level} approval of leave request {request.id} to you.",
            request.id,
            "APPROVAL_REQUIRED",
        )

    _dispatch(db, effects)
    db.refresh(request)
    return request


# ---------------------------------------------------------------------------
# Applicant / HR actions
# ---------------------------------------------------------------------------

def cancel(db: Session, request_id: int, actor: Employee, reason: Optional[str] = None) -> LeaveRequest:
    """
    Withdraw a pending request or reverse an approved one.

    Cancelling an already-cancelled request returns it unchanged, so the
    ledger is credited at most once.

    Raises:
        RequestLocked: the request was locked by a payroll close
        InvalidTransition: draft, rejected or recorded requests
    """
    effects = _Effects()
    with _transaction(db):
        request = _load_request(db, request_id)
        _require_applicant_or_hr(request, actor)
        if LeaveStatus(request.status) == LeaveStatus.CANCELLED:
            logger.info("Cancel ignored, already cancelled: leave_request_id=%s", request.id)
            return request
        if request.locked:
            raise RequestLocked(
                "Leave request is locked for payroll and can no longer be cancelled",
                {"leave_request_id": request.id, "locked_at": request.locked_at},
            )
        _assert_transition(request, LeaveStatus.CANCELLED)

        now = now_utc()
        before = LeaveStatus(request.status)
        credit = None
        if before == LeaveStatus.PENDING:
            for step in request.live_steps:
                if steps_sm.is_unresolved(step):
                    skipped = steps_sm.transition_step(
                        db, step, StepStatus.SKIPPED, actor.id, "Skipped: request cancelled", now=now
                    )
                    effects.step_actions.append((skipped, None))
        else:
            credit = ledger.credit(
                db, request.employee_id, request.leave_type, request.days,
                leave_request_id=request.id, actor_id=actor.id,
                remarks=f"Cancelled leave request {request.id}",
            )

        _transition(request, LeaveStatus.CANCELLED, "cancel")
        request.cancelled_at = now
        request.cancelled_by_id = actor.id
        request.cancel_reason = reason

        effects.audit(
            actor.id, "LEAVE_CANCEL", request.id,
            before=before, after=LeaveStatus.CANCELLED, reason=reason,
            credited_days=credit.days if credit and credit.applied else None,
        )
        if actor.id != request.employee_id:
            effects.notify(
                [request.employee_id],
                "Leave cancelled",
                f"Your {request.leave_type.value} leave from {request.start_date} to {request.end_date} "
                f"was cancelled by HR.",
                request.id,
                "LEAVE_DECIDED",
            )

    _dispatch(db, effects)
    db.refresh(request)
    return request


def resubmit(db: Session, request_id: int, actor: Employee, **corrections) -> LeaveRequest:
    """rejected -> pending with corrected fields and a new approval round."""
    unknown = set(corrections) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be corrected: {', '.join(sorted(unknown))}")

    effects = _Effects()
    with _transaction(db):
        request = _load_request(db, request_id)
        _require_applicant(request, actor)
        _assert_transition(request, LeaveStatus.PENDING)

        if corrections:
            _apply_corrections(request, corrections)
        request.current_round += 1
        created = _open_round(db, request)
        _transition(request, LeaveStatus.PENDING, "resubmit")
        request.submitted_at = now_utc()
        request.decided_at = None

        effects.audit(
            actor.id, "LEAVE_RESUBMIT", request.id,
            before=LeaveStatus.REJECTED, after=LeaveStatus.PENDING,
            round=request.current_round, corrected=sorted(corrections),
        )
        _notify_active_approvers(db, request, created[0], effects)

    _dispatch(db, effects)
    db.refresh(request)
    return request


def lock_request(db: Session, request_id: int, actor: Employee) -> LeaveRequest:
    _require_hr(actor)
    with _transaction(db):
        request = _load_request(db, request_id)
        if request.locked:
            return request
        if LeaveStatus(request.status) not in GRANTED_LEAVE_STATUSES:
            raise ValidationError("Only approved or recorded leave requests can be locked")
        request.locked = True
        request.locked_at = now_utc()

    log_audit(db, actor.id, "LEAVE_LOCK", "leave_request", request.id, {"status": request.status})
    return request


def close_payroll_period(db: Session, period_end: date, actor: Employee) -> List[int]:
    """Lock every granted request starting on or before period_end. Returns the locked ids."""
    _require_hr(actor)
    with _transaction(db):
        requests = (
            db.query(LeaveRequest)
            .filter(
                LeaveRequest.status.in_(GRANTED_LEAVE_STATUSES),
                LeaveRequest.locked == False,  # noqa: E712
                LeaveRequest.start_date <= period_end,
            )
            .with_for_update()
            .all()
        )
        now = now_utc()
        for request in requests:
            request.locked = True
            request.locked_at = now
        locked_ids = [r.id for r in requests]

    logger.info("Payroll period closed: period_end=%s locked=%s", period_end, len(locked_ids))
    log_audit(
        db, actor.id, "PAYROLL_PERIOD_CLOSE", "payroll_period", None,
        {"period_end": period_end, "locked_request_ids": locked_ids},
    )
    return locked_ids


# ---------------------------------------------------------------------------
# PSC/OHCS external clearance
# ---------------------------------------------------------------------------

def record_external_clearance(
    db: Session,
    request_id: int,
    actor: Employee,
    status: ExternalClearanceStatus,
    psc_reference_number: Optional[str] = None,
    ohcs_reference_number: Optional[str] = None,
    comments: Optional[str] = None,
) -> LeaveRequest:
    """
    Record the PSC/OHCS clearance outcome for a leave type that needs it.

    Raises:
        PermissionDenied: actor is not the chief director
        ValidationError: unknown status, the type needs no clearance, or the
            request is no longer open
    """
    if Role(actor.role) != Role.CHIEF_DIRECTOR:
        raise PermissionDenied("Only the Chief Director can record external clearance")
    try:
        status = ExternalClearanceStatus(status)
    except ValueError:
        raise ValidationError(
            f"Clearance status must be one of: {', '.join(s.value for s in ExternalClearanceStatus)}"
        )

    effects = _Effects()
    with _transaction(db):
        request = _load_request(db, request_id)
        if not request.requires_external_clearance:
            raise ValidationError(
                f"{LeaveType(request.leave_type).value} leave does not need external clearance",
                {"leave_request_id": request.id},
            )
        if LeaveStatus(request.status) not in (LeaveStatus.DRAFT, LeaveStatus.PENDING):
            raise ValidationError(
                f"Clearance cannot be recorded on a {LeaveStatus(request.status).value} request",
                {"leave_request_id": request.id, "status": request.status},
            )

        before = request.external_clearance_status
        request.external_clearance_status = status
        request.external_clearance_date = None if status == ExternalClearanceStatus.PENDING else now_utc()
        if psc_reference_number is not None:
            request.psc_reference_number = psc_reference_number
        if ohcs_reference_number is not None:
            request.ohcs_reference_number = ohcs_reference_number
        if (
            status == ExternalClearanceStatus.CLEARED
            and not request.psc_reference_number
            and not request.ohcs_reference_number
        ):
            logger.warning("External clearance recorded without a reference number: leave_request_id=%s", request.id)

        effects.audit(
            actor.id, "LEAVE_EXTERNAL_CLEARANCE", request.id,
            before=before, after=status,
            psc_reference_number=request.psc_reference_number,
            ohcs_reference_number=request.ohcs_reference_number,
            comments=comments,
        )
        effects.notify(
            [request.employee_id],
            "External clearance updated",
            f"PSC/OHCS clearance for your {LeaveType(request.leave_type).value} leave "
            f"from {request.start_date} to {request.end_date} is {status.value}.",
            request.id,
            "EXTERNAL_CLEARANCE",
        )

    _dispatch(db, effects)
    db.refresh(request)
    return request


def list_external_clearances(
    db: Session, actor: Employee, status: Optional[ExternalClearanceStatus] = None
) -> List[LeaveRequest]:
    if Role(actor.role) not in EXTERNAL_CLEARANCE_VIEWERS:
        raise PermissionDenied("Only the Chief Director or HR Director can view external clearances")
    query = db.query(LeaveRequest).filter(LeaveRequest.requires_external_clearance == True)  # noqa: E712
    if status is not None:
        query = query.filter(LeaveRequest.external_clearance_status == ExternalClearanceStatus(status))
    return query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc()).all()


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_request(db: Session, request_id: int) -> LeaveRequest:
    request = db.query(LeaveRequest).filter(LeaveRequest.id == request_id).first()
    if not request:
        raise NotFound(f"Leave request {request_id} not found")
    return request


def can_view(db: Session, request: LeaveRequest, actor: Employee) -> bool:
    """Applicant, HR and anyone on the approval chain may see a request."""
    if actor.id == request.employee_id or actor.is_hr:
        return True
    for step in request.steps:
        if actor.id in (step.approver_id, step.delegate_id, step.decided_by_id):
            return True
    active = steps_sm.active_step(request.live_steps)
    return active is not None and steps_sm.can_act(db, active, request, actor)


def list_requests(
    db: Session,
    employee_id: Optional[int] = None,
    status: Optional[LeaveStatus] = None,
) -> List[LeaveRequest]:
    query = db.query(LeaveRequest)
    if employee_id is not None:
        query = query.filter(LeaveRequest.employee_id == employee_id)
    if status is not None:
        query = query.filter(LeaveRequest.status == LeaveStatus(status))
    return query.order_by(LeaveRequest.start_date.desc(), LeaveRequest.id.desc()).all()


def list_pending_for_approver(db: Session, actor: Employee) -> List[ApprovalStep]:
    """Active steps of pending requests that actor may decide right now."""
    requests = (
        db.query(LeaveRequest)
        .filter(LeaveRequest.status == LeaveStatus.PENDING, LeaveRequest.employee_id != actor.id)
        .order_by(LeaveRequest.submitted_at, LeaveRequest.id)
        .all()
    )
    actionable = []
    for request in requests:
        step = steps_sm.active_step(request.live_steps)
        if step is not None and steps_sm.can_act(db, step, request, actor):
            actionable.append(step)
    return actionable


def get_steps(db: Session, request_id: int, all_rounds: bool = False) -> List[ApprovalStep]:
    request = get_request(db, request_id)
    if all_rounds:
        return sorted(request.steps, key=lambda s: (s.round, s.level))
    return request.live_steps


def get_step_history(db: Session, request_id: int) -> List[ApprovalStepAction]:
    get_request(db, request_id)
    return (
        db.query(ApprovalStepAction)
        .filter(ApprovalStepAction.leave_request_id == request_id)
        .order_by(ApprovalStepAction.action_at, ApprovalStepAction.id)
        .all()
    )
