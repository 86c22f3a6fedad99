"""
Versioned leave policy model.

A new policy row is created inactive; activation deactivates the previously
active version for the same leave type. Old versions stay for audit.
"""
from sqlalchemy import (
    Column,
    Integer,
    DateTime,
    Boolean,
    Numeric,
    ForeignKey,
    Enum as SQLEnum,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from leave_portal.db.base import Base
from leave_portal.models.leave import LeaveType


class LeavePolicy(Base):
    __tablename__ = "leave_policies"

    id = Column(Integer, primary_key=True, index=True)
    leave_type = Column(
        SQLEnum(LeaveType, name="leave_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )
    version = Column(Integer, nullable=False, default=1)
    max_days = Column(Integer, nullable=False)  # annual entitlement
    accrual_per_month = Column(Numeric(5, 2), nullable=False, default=0)
    carryover_max = Column(Integer, nullable=False, default=0)
    required_approval_levels = Column(Integer, nullable=False, default=1)
    active = Column(Boolean, nullable=False, default=False, index=True)
    created_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    activated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    created_by = relationship("Employee", foreign_keys=[created_by_id])

    __table_args__ = (
        UniqueConstraint("leave_type", "version", name="uq_leave_policies_type_version"),
        CheckConstraint("max_days >= 0", name="check_max_days_non_negative"),
        CheckConstraint("required_approval_levels >= 1", name="check_required_levels_positive"),
    )
