"""
Overlap detection for leave date ranges
"""
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from leave_portal.core.exceptions import OverlappingLeave, ValidationError
from leave_portal.models.leave import LeaveRequest, OCCUPYING_LEAVE_STATUSES


def find_overlaps(
    db: Session,
    employee_id: int,
    start_date: date,
    end_date: date,
    exclude_request_id: Optional[int] = None,
) -> List[LeaveRequest]:
    """
    Return the employee's pending/approved/recorded requests that overlap
    [start_date, end_date]. Drafts, rejected and cancelled requests never block.
    """
    if start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")

    query = db.query(LeaveRequest).filter(
        LeaveRequest.employee_id == employee_id,
        LeaveRequest.status.in_(OCCUPYING_LEAVE_STATUSES),
        LeaveRequest.start_date <= end_date,
        LeaveRequest.end_date >= start_date,
    )
    if exclude_request_id is not None:
        query = query.filter(LeaveRequest.id != exclude_request_id)
    return query.order_by(LeaveRequest.start_date).all()


def assert_no_overlap(
    db: Session,
    employee_id: int,
    start_date: date,
    end_date: date,
    exclude_request_id: Optional[int] = None,
) -> None:
    """Raise OverlappingLeave listing every conflicting request"""
    overlaps = find_overlaps(db, employee_id, start_date, end_date, exclude_request_id)
    if overlaps:
        raise OverlappingLeave([
            {
                "leave_request_id": r.id,
                "leave_type": r.leave_type.value,
                "status": r.status.value,
                "start_date": r.start_date.isoformat(),
                "end_date": r.end_date.isoformat(),
            }
            for r in overlaps
        ])
