"""
Approval Step Machine - per-level state machine for a leave request's sign-off chain.

    pending   -> approved | rejected | delegated | skipped
    delegated -> approved | skipped  (-> rejected when ALLOW_DELEGATE_REJECTION)

Only the lowest unresolved level of the live round may be acted on. Every
transition writes one ApprovalStepAction row inside the caller's transaction;
the matching audit record is written by `audit_step_action` once that
transaction has committed.
"""
import logging
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Sequence

from sqlalchemy.orm import Session

from leave_portal.core.config import settings
from leave_portal.core.exceptions import InvalidTransition, OutOfOrderApproval, PermissionDenied
from leave_portal.models.employee import Employee
from leave_portal.models.leave import (
    ApprovalStep,
    ApprovalStepAction,
    LeaveRequest,
    StepActionType,
    StepStatus,
    UNRESOLVED_STEP_STATUSES,
)
from leave_portal.services import org_directory
from leave_portal.services.audit_service import log_audit
from leave_portal.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)

STEP_TRANSITIONS: Dict[StepStatus, FrozenSet[StepStatus]] = {
    StepStatus.PENDING: frozenset({
        StepStatus.APPROVED,
        StepStatus.REJECTED,
        StepStatus.DELEGATED,
        StepStatus.SKIPPED,
    }),
    StepStatus.DELEGATED: frozenset({StepStatus.APPROVED, StepStatus.SKIPPED}),
}

ACTION_FOR_STATUS = {
    StepStatus.APPROVED: StepActionType.APPROVE,
    StepStatus.REJECTED: StepActionType.REJECT,
    StepStatus.DELEGATED: StepActionType.DELEGATE,
    StepStatus.SKIPPED: StepActionType.SKIP,
}


def allowed_targets(from_status: StepStatus, allow_delegate_rejection: Optional[bool] = None) -> FrozenSet[StepStatus]:
    if allow_delegate_rejection is None:
        allow_delegate_rejection = settings.ALLOW_DELEGATE_REJECTION
    targets = STEP_TRANSITIONS.get(StepStatus(from_status), frozenset())
    if from_status == StepStatus.DELEGATED and allow_delegate_rejection:
        targets = targets | {StepStatus.REJECTED}
    return targets


def is_unresolved(step: ApprovalStep) -> bool:
    return StepStatus(step.status) in UNRESOLVED_STEP_STATUSES


def active_step(steps: Sequence[ApprovalStep]) -> Optional[ApprovalStep]:
    """The lowest-level unresolved step, or None when every level is resolved."""
    unresolved = [s for s in steps if is_unresolved(s)]
    return min(unresolved, key=lambda s: s.level) if unresolved else None


def assert_actionable(step: ApprovalStep, steps: Sequence[ApprovalStep]) -> None:
    """Raise OutOfOrderApproval if a lower level is still unresolved."""
    active = active_step(steps)
    if active is not None and step.level > active.level:
        raise OutOfOrderApproval(step.level, active.level)


def eligible_approver_ids(db: Session, step: ApprovalStep, request: LeaveRequest) -> List[int]:
    """Who may decide this step right now."""
    if StepStatus(step.status) == StepStatus.DELEGATED:
        return [step.delegate_id]
    if step.approver_id is not None:
        return [step.approver_id]
    org_info = org_directory.to_org_info(request.employee)
    return [e.id for e in org_directory.find_approvers(db, step.approver_role, org_info)]


def authorize(db: Session, step: ApprovalStep, request: LeaveRequest, actor: Employee) -> None:
    """
    Check that actor may decide this step.

    Raises:
        PermissionDenied: self-approval, or actor is not the approver/delegate
    """
    if actor.id == request.employee_id:
        raise PermissionDenied("You cannot act on your own leave request")
    if actor.id not in eligible_approver_ids(db, step, request):
        if StepStatus(step.status) == StepStatus.DELEGATED:
            raise PermissionDenied("This approval has been delegated to another approver")
        raise PermissionDenied(
            f"You are not an approver for level {step.level} ({step.approver_role.value})",
            {"level": step.level, "approver_role": step.approver_role.value},
        )


def can_act(db: Session, step: ApprovalStep, request: LeaveRequest, actor: Employee) -> bool:
    try:
        authorize(db, step, request, actor)
    except PermissionDenied:
        return False
    return True


def transition_step(
    db: Session,
    step: ApprovalStep,
    to_status: StepStatus,
    actor_id: Optional[int],
    comment: Optional[str] = None,
    delegate_id: Optional[int] = None,
    now: Optional[datetime] = None,
    allow_delegate_rejection: Optional[bool] = None,
) -> ApprovalStepAction:
    """
    Apply one step transition and record it.

    Raises:
        InvalidTransition: edge not in the transition table (step untouched)
    """
    from_status = StepStatus(step.status)
    to_status = StepStatus(to_status)
    if to_status not in allowed_targets(from_status, allow_delegate_rejection):
        raise InvalidTransition("approval_step", from_status, to_status)

    now = now or now_utc()
    if to_status == StepStatus.DELEGATED:
        step.delegate_id = delegate_id
        step.delegated_at = now
    else:
        step.decided_by_id = actor_id
        step.decided_at = now
    if comment:
        step.comment = comment
    step.status = to_status

    action = ApprovalStepAction(
        step=step,
        leave_request_id=step.leave_request_id,
        actor_id=actor_id,
        action=ACTION_FOR_STATUS[to_status].value,
        from_status=from_status.value,
        to_status=to_status.value,
        comment=comment,
        action_at=now,
    )
    db.add(action)

    logger.info(
        "approval step transition: leave_request_id=%s level=%s before=%s after=%s actor_id=%s",
        step.leave_request_id, step.level, from_status.value, to_status.value, actor_id,
    )
    return action


def activate_next(steps: Sequence[ApprovalStep], now: Optional[datetime] = None) -> Optional[ApprovalStep]:
    """Stamp activated_at on the new active level (if it was not active yet)."""
    nxt = active_step(steps)
    if nxt is not None and nxt.activated_at is None:
        nxt.activated_at = now or now_utc()
    return nxt


def audit_step_action(db: Session, action: ApprovalStepAction, audit_action: Optional[str] = None) -> None:
    """Write the audit record for a committed step transition."""
    step = action.step
    log_audit(
        db,
        actor_id=action.actor_id,
        action=audit_action or f"APPROVAL_{action.action}",
        entity_type="approval_step",
        entity_id=action.step_id,
        meta={
            "leave_request_id": action.leave_request_id,
            "level": step.level,
            "round": step.round,
            "approver_role": step.approver_role,
            "from": action.from_status,
            "to": action.to_status,
            "delegate_id": step.delegate_id if action.action == StepActionType.DELEGATE.value else None,
            "comment": action.comment,
            "action_at": action.action_at,
        },
    )
