"""
Leave policy schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, field_serializer
from pydantic import ConfigDict
from leave_portal.models.leave import LeaveType
from leave_portal.utils.datetime_utils import iso_utc


class PolicyValidateRequest(BaseModel):
    leave_type: LeaveType
    max_days: int = Field(..., ge=0)


class PolicyValidateResponse(BaseModel):
    valid: bool
    statutory_minimum: Optional[int] = None
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    legal_reference: Optional[str] = None


class PolicyCreateRequest(BaseModel):
    leave_type: LeaveType
    max_days: int = Field(..., ge=0, description="Annual entitlement in days")
    accrual_per_month: Decimal = Field(Decimal("0"), ge=0)
    carryover_max: int = Field(0, ge=0)
    required_approval_levels: int = Field(1, ge=1)


class PolicyOut(BaseModel):
    id: int
    leave_type: LeaveType
    version: int
    max_days: int
    accrual_per_month: Decimal
    carryover_max: int
    required_approval_levels: int
    active: bool
    created_by_id: Optional[int] = None
    activated_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("activated_at", "created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)
