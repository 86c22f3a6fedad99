"""
Approval scheduler endpoint (called by cron or HR)
"""
from fastapi import APIRouter, Depends
from typing import Optional
from sqlalchemy.orm import Session
from leave_portal.core.deps import get_db, require_hr
from leave_portal.models.employee import Employee
from leave_portal.schemas.approval import ScanRequest, ScanResponse, ReminderEventOut
from leave_portal.services import escalation_scheduler

router = APIRouter()


@router.post("/scan", response_model=ScanResponse)
async def run_scan(
    payload: Optional[ScanRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_hr),
):
    """Send due reminders and, if configured, escalate overdue approval levels"""
    now = payload.now if payload else None
    events = escalation_scheduler.scan(db, now=now)
    items = [
        ReminderEventOut(
            kind=e.kind,
            leave_request_id=e.leave_request_id,
            level=e.level,
            recipient_ids=list(e.recipient_ids),
            age_hours=round(e.age_hours, 1),
        )
        for e in events
    ]
    return ScanResponse(events=items, total=len(items))
