"""
Tests for leave date overlap detection
"""
from datetime import date

import pytest
from leave_portal.core.exceptions import OverlappingLeave, ValidationError
from leave_portal.models.leave import LeaveRequest, LeaveStatus, LeaveType
from leave_portal.services.overlap_detector import assert_no_overlap, find_overlaps


def _request(db, employee, start, end, status):
    request = LeaveRequest(
        employee_id=employee.id,
        leave_type=LeaveType.ANNUAL,
        start_date=start,
        end_date=end,
        days=(end - start).days + 1,
        status=status,
    )
    db.add(request)
    db.commit()
    return request


def test_shared_boundary_day_overlaps(db, org):
    existing = _request(db, org["staff"], date(2026, 3, 2), date(2026, 3, 6), LeaveStatus.APPROVED)

    overlaps = find_overlaps(db, org["staff"].id, date(2026, 3, 6), date(2026, 3, 10))

    assert [r.id for r in overlaps] == [existing.id]


def test_adjacent_ranges_do_not_overlap(db, org):
    _request(db, org["staff"], date(2026, 3, 2), date(2026, 3, 6), LeaveStatus.PENDING)

    assert find_overlaps(db, org["staff"].id, date(2026, 3, 7), date(2026, 3, 9)) == []


@pytest.mark.parametrize("status", [LeaveStatus.DRAFT, LeaveStatus.REJECTED, LeaveStatus.CANCELLED])
def test_inactive_requests_never_block(db, org, status):
    _request(db, org["staff"], date(2026, 3, 2), date(2026, 3, 6), status)

    assert find_overlaps(db, org["staff"].id, date(2026, 3, 3), date(2026, 3, 4)) == []


def test_recorded_requests_block(db, org):
    _request(db, org["staff"], date(2026, 3, 2), date(2026, 3, 6), LeaveStatus.RECORDED)

    assert len(find_overlaps(db, org["staff"].id, date(2026, 3, 1), date(2026, 3, 2))) == 1


def test_other_employees_and_excluded_request_ignored(db, org):
    own = _request(db, org["staff"], date(2026, 3, 2), date(2026, 3, 6), LeaveStatus.PENDING)
    _request(db, org["peer"], date(2026, 3, 2), date(2026, 3, 6), LeaveStatus.APPROVED)

    assert find_overlaps(db, org["staff"].id, date(2026, 3, 2), date(2026, 3, 6), exclude_request_id=own.id) == []


def test_assert_no_overlap_lists_conflicts(db, org):
    first = _request(db, org["staff"], date(2026, 3, 2), date(2026, 3, 3), LeaveStatus.APPROVED)
    second = _request(db, org["staff"], date(2026, 3, 5), date(2026, 3, 6), LeaveStatus.PENDING)

    with pytest.raises(OverlappingLeave) as exc_info:
        assert_no_overlap(db, org["staff"].id, date(2026, 3, 1), date(2026, 3, 31))

    conflicting = exc_info.value.details["overlapping"]
    assert [c["leave_request_id"] for c in conflicting] == [first.id, second.id]
    assert conflicting[1]["status"] == "pending"


def test_inverted_range_rejected(db, org):
    with pytest.raises(ValidationError):
        find_overlaps(db, org["staff"].id, date(2026, 3, 6), date(2026, 3, 2))
