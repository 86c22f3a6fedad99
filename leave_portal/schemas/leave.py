"""
Leave request and approval step schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, field_serializer, model_validator
from pydantic import ConfigDict
from leave_portal.models.leave import LeaveType, LeaveStatus, StepStatus, ApproverRole, ExternalClearanceStatus
from leave_portal.utils.datetime_utils import iso_utc


class LeaveSubmitRequest(BaseModel):
    """Schema for creating (and by default submitting) a leave request"""
    leave_type: LeaveType = Field(..., description="Type of leave")
    start_date: date = Field(..., description="First day of leave")
    end_date: date = Field(..., description="Last day of leave")
    days: Decimal = Field(..., gt=0, description="Requested working days")
    reason: Optional[str] = Field(None, description="Reason for leave")
    employee_id: Optional[int] = Field(None, description="Applicant (HR only; defaults to the caller)")
    as_draft: bool = Field(False, description="Save as draft instead of submitting")

    @model_validator(mode="after")
    def check_dates(self) -> "LeaveSubmitRequest":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class LeaveUpdateRequest(BaseModel):
    """Draft edits and resubmission corrections; omitted fields are unchanged"""
    leave_type: Optional[LeaveType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    days: Optional[Decimal] = Field(None, gt=0)
    reason: Optional[str] = None


class ApproveRequest(BaseModel):
    level: int = Field(..., ge=1, description="Approval level being decided")
    comment: Optional[str] = Field(None, description="Optional comment")
    expected_version: Optional[int] = Field(None, description="Request version the approver saw")


class RejectRequest(BaseModel):
    level: int = Field(..., ge=1, description="Approval level being decided")
    comment: str = Field(..., min_length=1, description="Reason for rejection")
    expected_version: Optional[int] = Field(None, description="Request version the approver saw")


class DelegateRequest(BaseModel):
    level: int = Field(..., ge=1)
    delegate_id: int = Field(..., description="Employee who will decide this level")
    comment: Optional[str] = None
    expected_version: Optional[int] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, description="Reason for cancellation")


class ExternalClearanceRequest(BaseModel):
    """PSC/OHCS clearance outcome recorded by the Chief Director"""
    status: ExternalClearanceStatus = Field(..., description="pending, cleared or rejected")
    psc_reference_number: Optional[str] = Field(None, max_length=50)
    ohcs_reference_number: Optional[str] = Field(None, max_length=50)
    comments: Optional[str] = None


class PayrollCloseRequest(BaseModel):
    period_end: date = Field(..., description="Last day of the closed payroll period")


class PayrollCloseResponse(BaseModel):
    period_end: date
    locked_count: int
    locked_request_ids: List[int]


class ApprovalStepOut(BaseModel):
    id: int
    round: int
    level: int
    approver_role: ApproverRole
    approver_id: Optional[int] = None
    status: StepStatus
    delegate_id: Optional[int] = None
    delegated_at: Optional[datetime] = None
    decided_by_id: Optional[int] = None
    decided_at: Optional[datetime] = None
    comment: Optional[str] = None
    activated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("delegated_at", "decided_at", "activated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)


class LeaveOut(BaseModel):
    id: int
    employee_id: int
    leave_type: LeaveType
    start_date: date
    end_date: date
    days: Decimal
    reason: Optional[str] = None
    status: LeaveStatus
    current_round: int
    requires_external_clearance: bool
    external_clearance_status: Optional[ExternalClearanceStatus] = None
    external_clearance_date: Optional[datetime] = None
    psc_reference_number: Optional[str] = None
    ohcs_reference_number: Optional[str] = None
    record_only: bool
    payroll_impact: bool
    locked: bool
    submitted_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by_id: Optional[int] = None
    cancel_reason: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime
    steps: List[ApprovalStepOut] = Field(default_factory=list, description="Steps of the current round")

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_request(cls, request) -> "LeaveOut":
        out = cls.model_validate(request)
        out.steps = [ApprovalStepOut.model_validate(s) for s in request.live_steps]
        return out

    @field_serializer(
        "submitted_at", "decided_at", "cancelled_at", "external_clearance_date", "created_at", "updated_at",
        when_used="always",
    )
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)


class LeaveListResponse(BaseModel):
    items: List[LeaveOut]
    total: int


class PendingApprovalOut(BaseModel):
    """An approval step awaiting the caller, with its request"""
    step: ApprovalStepOut
    leave: LeaveOut


class StepActionOut(BaseModel):
    id: int
    step_id: int
    leave_request_id: int
    actor_id: Optional[int] = None
    action: str
    from_status: str
    to_status: str
    comment: Optional[str] = None
    action_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("action_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)
