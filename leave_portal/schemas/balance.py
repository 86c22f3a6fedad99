"""
Balance ledger schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, field_serializer
from pydantic import ConfigDict
from leave_portal.models.leave import LeaveType
from leave_portal.utils.datetime_utils import iso_utc


class BalanceOut(BaseModel):
    leave_type: LeaveType
    remaining: Decimal

    model_config = ConfigDict(from_attributes=True)


class BalancesResponse(BaseModel):
    employee_id: int
    balances: List[BalanceOut]


class LedgerEntryOut(BaseModel):
    id: int
    leave_type: LeaveType
    leave_request_id: Optional[int] = None
    entry_type: str
    days: Decimal
    balance_after: Optional[Decimal] = None
    actor_id: Optional[int] = None
    remarks: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)


class BalanceAdjustRequest(BaseModel):
    """Manual HR credit (opening balances, corrections)"""
    employee_id: int
    leave_type: LeaveType
    days: Decimal = Field(..., gt=0)
    remarks: str = Field(..., min_length=1, description="Why the balance is being adjusted")


class BalanceAdjustResponse(BaseModel):
    employee_id: int
    leave_type: LeaveType
    days: Decimal
    balance_after: Optional[Decimal] = None
