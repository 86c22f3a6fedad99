"""
Scheduler and accrual job schemas
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field


class ScanRequest(BaseModel):
    now: Optional[datetime] = Field(None, description="Scan time override (defaults to now, UTC)")


class ReminderEventOut(BaseModel):
    kind: str
    leave_request_id: int
    level: Optional[int] = None
    recipient_ids: List[int]
    age_hours: float


class ScanResponse(BaseModel):
    events: List[ReminderEventOut]
    total: int


class AccrualRunRequest(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)


class AccrualRunResponse(BaseModel):
    month: str
    total_employees_processed: int
    policies_applied: int
    credited_count: int
    skipped_already_credited: int
    skipped_at_cap: int


class YearCloseRequest(BaseModel):
    year: int = Field(..., ge=2000, le=2100)


class YearCloseResponse(BaseModel):
    year: int
    policies_applied: int
    balances_processed: int
    carried_forward_count: int
    forfeited_count: int
    days_forfeited: float
    skipped_already_closed: int
