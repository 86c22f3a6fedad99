"""
Tests for concurrent writers on the same request and balance rows.

Each session loads the shared rows before the other commits; the second
writer must fail with ConcurrentModification instead of overwriting.
"""
from datetime import date
from decimal import Decimal

import pytest
from leave_portal.core.exceptions import ConcurrentModification
from leave_portal.models.balance import LeaveTransaction, LedgerEntryType
from leave_portal.models.employee import Employee
from leave_portal.models.leave import LeaveRequest, LeaveStatus, LeaveType, StepStatus
from leave_portal.services import balance_ledger as ledger
from leave_portal.services import leave_request_machine as machine


def _debits(session, employee_id):
    return (
        session.query(LeaveTransaction)
        .filter(
            LeaveTransaction.employee_id == employee_id,
            LeaveTransaction.entry_type == LedgerEntryType.DEBIT.value,
        )
        .all()
    )


def test_concurrent_final_approvals_debit_once(file_sessions):
    Session, ids = file_sessions
    setup = Session()
    staff = setup.get(Employee, ids["staff"])
    request = machine.submit(setup, staff.id, LeaveType.ANNUAL, date(2026, 3, 2), date(2026, 3, 6), 5, actor=staff)
    machine.approve(setup, request.id, 1, setup.get(Employee, ids["manager"]))
    request_id = request.id
    setup.close()

    first, second = Session(), Session()
    try:
        # both HR officers open the request before either decides
        assert machine.get_request(first, request_id).live_steps[1].status == StepStatus.PENDING
        assert machine.get_request(second, request_id).live_steps[1].status == StepStatus.PENDING

        approved = machine.approve(first, request_id, 2, first.get(Employee, ids["hr"]))
        assert approved.status == LeaveStatus.APPROVED

        with pytest.raises(ConcurrentModification):
            machine.approve(second, request_id, 2, second.get(Employee, ids["hr2"]))
    finally:
        first.close()
        second.close()

    check = Session()
    try:
        final = check.get(LeaveRequest, request_id)
        assert final.status == LeaveStatus.APPROVED
        assert final.live_steps[1].decided_by_id == ids["hr"]
        assert ledger.get_balance(check, ids["staff"], LeaveType.ANNUAL) == Decimal("15")
        assert len(_debits(check, ids["staff"])) == 1
    finally:
        check.close()


def test_concurrent_debits_on_one_balance(file_sessions):
    Session, ids = file_sessions
    setup = Session()
    requests = [
        LeaveRequest(
            employee_id=ids["staff"], leave_type=LeaveType.ANNUAL,
            start_date=start, end_date=end, days=Decimal("15"), status=LeaveStatus.APPROVED,
        )
        for start, end in ((date(2026, 3, 2), date(2026, 3, 20)), (date(2026, 5, 4), date(2026, 5, 22)))
    ]
    setup.add_all(requests)
    setup.commit()
    first_id, second_id = [r.id for r in requests]
    setup.close()

    first, second = Session(), Session()
    try:
        assert ledger.get_balance(first, ids["staff"], LeaveType.ANNUAL) == Decimal("20")
        assert ledger.get_balance(second, ids["staff"], LeaveType.ANNUAL) == Decimal("20")

        ledger.debit(first, ids["staff"], LeaveType.ANNUAL, 15, first_id)
        first.commit()

        with pytest.raises(ConcurrentModification):
            ledger.debit(second, ids["staff"], LeaveType.ANNUAL, 15, second_id)
        second.rollback()
    finally:
        first.close()
        second.close()

    check = Session()
    try:
        assert ledger.get_balance(check, ids["staff"], LeaveType.ANNUAL) == Decimal("5")
        assert [t.leave_request_id for t in _debits(check, ids["staff"])] == [first_id]
    finally:
        check.close()
