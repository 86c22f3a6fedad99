"""
Tests for per-level approval step transitions and delegation
"""
from datetime import date

import pytest
from leave_portal.core.exceptions import ConcurrentModification, InvalidTransition, PermissionDenied, ValidationError
from leave_portal.models.leave import LeaveStatus, LeaveType, StepStatus
from leave_portal.services import approval_step_machine as steps_sm
from leave_portal.services import leave_request_machine as machine


@pytest.fixture
def pending_request(db, org, annual_balance):
    return machine.submit(
        db, annual_balance.id, LeaveType.ANNUAL, date(2026, 3, 2), date(2026, 3, 6), 5, actor=annual_balance
    )


def test_transition_table():
    assert steps_sm.allowed_targets(StepStatus.PENDING) == {
        StepStatus.APPROVED, StepStatus.REJECTED, StepStatus.DELEGATED, StepStatus.SKIPPED,
    }
    assert steps_sm.allowed_targets(StepStatus.DELEGATED, allow_delegate_rejection=False) == {
        StepStatus.APPROVED, StepStatus.SKIPPED,
    }
    assert StepStatus.REJECTED in steps_sm.allowed_targets(StepStatus.DELEGATED, allow_delegate_rejection=True)
    assert steps_sm.allowed_targets(StepStatus.APPROVED) == frozenset()


def test_resolved_step_cannot_transition(db, org, pending_request):
    step = pending_request.live_steps[0]
    steps_sm.transition_step(db, step, StepStatus.APPROVED, org["manager"].id)

    with pytest.raises(InvalidTransition) as exc_info:
        steps_sm.transition_step(db, step, StepStatus.REJECTED, org["manager"].id)

    assert exc_info.value.details == {"machine": "approval_step", "from": "approved", "to": "rejected"}
    assert step.status == StepStatus.APPROVED
    db.rollback()


def test_active_step_is_lowest_unresolved(db, org, pending_request):
    steps = pending_request.live_steps

    assert steps_sm.active_step(steps).level == 1
    machine.approve(db, pending_request.id, 1, org["manager"])
    db.refresh(pending_request)
    assert steps_sm.active_step(pending_request.live_steps).level == 2


def test_delegate_can_approve_but_delegator_cannot(db, org, pending_request):
    request = machine.delegate(db, pending_request.id, 1, org["manager"], org["unit_head"].id, "On leave myself")
    step = request.live_steps[0]
    assert step.status == StepStatus.DELEGATED
    assert step.delegate_id == org["unit_head"].id

    with pytest.raises(PermissionDenied):
        machine.approve(db, request.id, 1, org["manager"])

    request = machine.approve(db, request.id, 1, org["unit_head"])
    step = request.live_steps[0]
    assert step.status == StepStatus.APPROVED
    assert step.decided_by_id == org["unit_head"].id


def test_delegate_cannot_reject_by_default(db, org, pending_request):
    machine.delegate(db, pending_request.id, 1, org["manager"], org["unit_head"].id)

    with pytest.raises(InvalidTransition):
        machine.reject(db, pending_request.id, 1, org["unit_head"], "No")

    request = machine.get_request(db, pending_request.id)
    assert request.status == LeaveStatus.PENDING
    assert request.live_steps[0].status == StepStatus.DELEGATED


def test_delegation_to_self_or_applicant_rejected(db, org, pending_request):
    with pytest.raises(ValidationError):
        machine.delegate(db, pending_request.id, 1, org["manager"], org["manager"].id)
    with pytest.raises(ValidationError):
        machine.delegate(db, pending_request.id, 1, org["manager"], org["staff"].id)


def test_delegation_to_inactive_employee_rejected(db, org, pending_request, new_employee):
    retired = new_employee("RET001", active=False)

    with pytest.raises(ValidationError):
        machine.delegate(db, pending_request.id, 1, org["manager"], retired.id)


def test_delegated_step_cannot_be_redelegated(db, org, pending_request):
    machine.delegate(db, pending_request.id, 1, org["manager"], org["unit_head"].id)

    with pytest.raises(InvalidTransition):
        machine.delegate(db, pending_request.id, 1, org["unit_head"], org["director"].id)


def test_every_transition_is_recorded(db, org, pending_request):
    machine.delegate(db, pending_request.id, 1, org["manager"], org["unit_head"].id)
    machine.approve(db, pending_request.id, 1, org["unit_head"])
    machine.approve(db, pending_request.id, 2, org["hr"])

    history = machine.get_step_history(db, pending_request.id)

    assert [(h.action, h.from_status, h.to_status) for h in history] == [
        ("DELEGATE", "pending", "delegated"),
        ("APPROVE", "delegated", "approved"),
        ("APPROVE", "pending", "approved"),
    ]
    assert [h.actor_id for h in history] == [org["manager"].id, org["unit_head"].id, org["hr"].id]


def test_pending_queue_for_approver(db, org, pending_request):
    assert [s.leave_request_id for s in machine.list_pending_for_approver(db, org["manager"])] == [pending_request.id]
    assert machine.list_pending_for_approver(db, org["hr"]) == []

    machine.approve(db, pending_request.id, 1, org["manager"])

    assert machine.list_pending_for_approver(db, org["manager"]) == []
    assert [s.level for s in machine.list_pending_for_approver(db, org["hr"])] == [2]


def test_stale_version_rejected(db, org, pending_request):
    seen = pending_request.version
    machine.cancel(db, pending_request.id, pending_request.employee)

    with pytest.raises(ConcurrentModification) as exc_info:
        machine.approve(db, pending_request.id, 1, org["manager"], expected_version=seen)

    assert exc_info.value.details["expected_version"] == seen
