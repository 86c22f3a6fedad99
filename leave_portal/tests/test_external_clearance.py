"""
Tests for PSC/OHCS external clearance on leave types that need it
"""
from datetime import date
from decimal import Decimal

import pytest
from fastapi import status
from leave_portal.core.exceptions import ExternalClearanceRequired, PermissionDenied, ValidationError
from leave_portal.models.audit_log import AuditLog
from leave_portal.models.leave import ExternalClearanceStatus, LeaveStatus, LeaveType, StepStatus
from leave_portal.models.notification import Notification
from leave_portal.services import balance_ledger as ledger
from leave_portal.services import leave_request_machine as machine

APRIL_6 = date(2026, 4, 6)
APRIL_10 = date(2026, 4, 10)


@pytest.fixture
def absence_balance(db, org):
    ledger.ensure_balance(db, org["staff"].id, LeaveType.LEAVE_OF_ABSENCE, opening=10)
    db.commit()
    return org["staff"]


def _submit_absence(db, staff):
    return machine.submit(
        db, staff.id, LeaveType.LEAVE_OF_ABSENCE, APRIL_6, APRIL_10, 5, "Family obligations abroad", actor=staff
    )


def _approve_below_chief(db, request, org):
    machine.approve(db, request.id, 1, org["manager"])
    machine.approve(db, request.id, 2, org["director"])
    return machine.approve(db, request.id, 3, org["hr"])


def test_clearance_type_starts_pending(db, org, absence_balance):
    request = _submit_absence(db, absence_balance)

    assert request.requires_external_clearance
    assert request.external_clearance_status == ExternalClearanceStatus.PENDING
    assert request.external_clearance_date is None
    assert request.live_steps[-1].approver_role.value == "CHIEF_DIRECTOR"


def test_annual_leave_needs_no_clearance(db, org, annual_balance):
    request = machine.submit(db, annual_balance.id, LeaveType.ANNUAL, APRIL_6, APRIL_10, 5, actor=annual_balance)

    assert not request.requires_external_clearance
    assert request.external_clearance_status is None
    with pytest.raises(ValidationError):
        machine.record_external_clearance(db, request.id, org["chief"], ExternalClearanceStatus.CLEARED)


def test_final_approval_blocked_until_cleared(db, org, absence_balance):
    request = _approve_below_chief(db, _submit_absence(db, absence_balance), org)

    with pytest.raises(ExternalClearanceRequired):
        machine.approve(db, request.id, 4, org["chief"])

    db.refresh(request)
    assert request.status == LeaveStatus.PENDING
    assert request.live_steps[3].status == StepStatus.PENDING
    assert ledger.get_balance(db, absence_balance.id, LeaveType.LEAVE_OF_ABSENCE) == Decimal("10")

    request = machine.record_external_clearance(
        db, request.id, org["chief"], ExternalClearanceStatus.CLEARED, psc_reference_number="PSC/2026/0412"
    )
    assert request.external_clearance_status == ExternalClearanceStatus.CLEARED
    assert request.external_clearance_date is not None
    assert request.psc_reference_number == "PSC/2026/0412"

    request = machine.approve(db, request.id, 4, org["chief"])
    assert request.status == LeaveStatus.APPROVED
    assert ledger.get_balance(db, absence_balance.id, LeaveType.LEAVE_OF_ABSENCE) == Decimal("5")


def test_rejected_clearance_still_blocks_approval(db, org, absence_balance):
    request = _approve_below_chief(db, _submit_absence(db, absence_balance), org)
    machine.record_external_clearance(
        db, request.id, org["chief"], ExternalClearanceStatus.REJECTED, ohcs_reference_number="OHCS/77"
    )

    with pytest.raises(ExternalClearanceRequired):
        machine.approve(db, request.id, 4, org["chief"])

    request = machine.reject(db, request.id, 4, org["chief"], "OHCS declined the release")
    assert request.status == LeaveStatus.REJECTED


def test_only_chief_director_records_clearance(db, org, absence_balance):
    request = _submit_absence(db, absence_balance)

    for actor in (org["hr"], org["hr_director"], absence_balance):
        with pytest.raises(PermissionDenied):
            machine.record_external_clearance(db, request.id, actor, ExternalClearanceStatus.CLEARED)


def test_clearance_closed_once_request_is_decided(db, org, absence_balance):
    request = _submit_absence(db, absence_balance)
    machine.cancel(db, request.id, absence_balance, "Trip called off")

    with pytest.raises(ValidationError):
        machine.record_external_clearance(db, request.id, org["chief"], ExternalClearanceStatus.CLEARED)


def test_clearance_is_audited_and_notified(db, org, absence_balance):
    request = _submit_absence(db, absence_balance)

    machine.record_external_clearance(
        db, request.id, org["chief"], ExternalClearanceStatus.CLEARED,
        psc_reference_number="PSC/2026/0412", comments="Cleared at March sitting",
    )

    audit = db.query(AuditLog).filter(AuditLog.action == "LEAVE_EXTERNAL_CLEARANCE").one()
    assert audit.actor_id == org["chief"].id
    assert audit.entity_id == request.id
    notes = db.query(Notification).filter(Notification.type == "EXTERNAL_CLEARANCE").all()
    assert [n.user_id for n in notes] == [absence_balance.id]


def test_clearance_queue_visibility(db, org, absence_balance, annual_balance):
    request = _submit_absence(db, absence_balance)
    machine.submit(db, annual_balance.id, LeaveType.ANNUAL, date(2026, 5, 4), date(2026, 5, 8), 5, actor=annual_balance)

    queue = machine.list_external_clearances(db, org["hr_director"])
    assert [r.id for r in queue] == [request.id]
    assert machine.list_external_clearances(db, org["chief"], ExternalClearanceStatus.CLEARED) == []

    with pytest.raises(PermissionDenied):
        machine.list_external_clearances(db, org["hr"])


def test_clearance_endpoints(client, db, org, absence_balance, headers_for):
    request = _submit_absence(db, absence_balance)
    url = f"/api/v1/leaves/{request.id}/external-clearance"

    response = client.post(url, json={"status": "cleared"}, headers=headers_for(org["hr"]))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post(
        url, json={"status": "cleared", "psc_reference_number": "PSC/2026/0412"}, headers=headers_for(org["chief"])
    )
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["external_clearance_status"] == "cleared"
    assert body["psc_reference_number"] == "PSC/2026/0412"

    response = client.get(
        "/api/v1/leaves/external-clearance", params={"status": "cleared"}, headers=headers_for(org["hr_director"])
    )
    assert response.status_code == status.HTTP_200_OK
    assert [item["id"] for item in response.json()["items"]] == [request.id]

    response = client.get("/api/v1/leaves/external-clearance", headers=headers_for(org["staff"]))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_final_approval_endpoint_reports_missing_clearance(client, db, org, absence_balance, headers_for):
    request = _approve_below_chief(db, _submit_absence(db, absence_balance), org)

    response = client.post(
        f"/api/v1/leaves/{request.id}/approve", json={"level": 4}, headers=headers_for(org["chief"])
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error_code"] == "EXTERNAL_CLEARANCE_REQUIRED"
