"""
Leave models: requests, their approval steps and the per-step action trail
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    Numeric,
    Enum as SQLEnum,
    Boolean,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import enum
from leave_portal.db.base import Base


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class LeaveType(str, enum.Enum):
    ANNUAL = "Annual"
    SICK = "Sick"
    MATERNITY = "Maternity"
    PATERNITY = "Paternity"
    COMPASSIONATE = "Compassionate"
    STUDY = "Study"
    STUDY_WITH_PAY = "StudyWithPay"
    STUDY_WITHOUT_PAY = "StudyWithoutPay"
    SPECIAL_SERVICE = "SpecialService"
    TRAINING = "Training"
    UNPAID = "Unpaid"
    LEAVE_OF_ABSENCE = "LeaveOfAbsence"
    SECONDMENT = "Secondment"


# Leave types not tracked against a balance
BALANCE_EXEMPT_LEAVE_TYPES = frozenset({LeaveType.UNPAID})

# PSC/OHCS-governed types that need external clearance
EXTERNAL_CLEARANCE_LEAVE_TYPES = frozenset({
    LeaveType.STUDY,
    LeaveType.STUDY_WITH_PAY,
    LeaveType.STUDY_WITHOUT_PAY,
    LeaveType.LEAVE_OF_ABSENCE,
    LeaveType.SECONDMENT,
})

# Types that always need a director-level sign-off regardless of duration
DIRECTOR_SIGNOFF_LEAVE_TYPES = frozenset({
    LeaveType.MATERNITY,
    LeaveType.SPECIAL_SERVICE,
    LeaveType.STUDY,
    LeaveType.STUDY_WITH_PAY,
    LeaveType.STUDY_WITHOUT_PAY,
    LeaveType.LEAVE_OF_ABSENCE,
    LeaveType.SECONDMENT,
})

# Types that change what payroll pays out for the period
PAYROLL_IMPACT_LEAVE_TYPES = frozenset({
    LeaveType.UNPAID,
    LeaveType.STUDY_WITHOUT_PAY,
    LeaveType.LEAVE_OF_ABSENCE,
})


class LeaveStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    RECORDED = "recorded"


# Statuses the overlap detector treats as occupying the calendar
OCCUPYING_LEAVE_STATUSES = (LeaveStatus.PENDING, LeaveStatus.APPROVED, LeaveStatus.RECORDED)

# Approved-equivalent statuses (balance already debited, lockable)
GRANTED_LEAVE_STATUSES = frozenset({LeaveStatus.APPROVED, LeaveStatus.RECORDED})


class ExternalClearanceStatus(str, enum.Enum):
    PENDING = "pending"
    CLEARED = "cleared"
    REJECTED = "rejected"


class StepStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELEGATED = "delegated"
    SKIPPED = "skipped"


UNRESOLVED_STEP_STATUSES = frozenset({StepStatus.PENDING, StepStatus.DELEGATED})


class ApproverRole(str, enum.Enum):
    MANAGER = "MANAGER"
    UNIT_HEAD = "UNIT_HEAD"
    DIRECTOR = "DIRECTOR"
    HR_OFFICER = "HR_OFFICER"
    HR_DIRECTOR = "HR_DIRECTOR"
    CHIEF_DIRECTOR = "CHIEF_DIRECTOR"


class StepActionType(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    DELEGATE = "DELEGATE"
    SKIP = "SKIP"


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type = Column(SQLEnum(LeaveType, name="leave_type", values_callable=_enum_values), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    days = Column(Numeric(6, 2), nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(
        SQLEnum(LeaveStatus, name="leave_status", values_callable=_enum_values),
        nullable=False,
        default=LeaveStatus.DRAFT,
        index=True,
    )
    current_round = Column(Integer, nullable=False, default=1)
    requires_external_clearance = Column(Boolean, nullable=False, default=False)
    external_clearance_status = Column(
        SQLEnum(ExternalClearanceStatus, name="external_clearance_status", values_callable=_enum_values),
        nullable=True,
    )
    external_clearance_date = Column(DateTime(timezone=True), nullable=True)
    psc_reference_number = Column(String(50), nullable=True)
    ohcs_reference_number = Column(String(50), nullable=True)
    record_only = Column(Boolean, nullable=False, default=False)  # approval ends in RECORDED
    payroll_impact = Column(Boolean, nullable=False, default=False)
    locked = Column(Boolean, nullable=False, default=False)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    cancel_reason = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    employee = relationship("Employee", foreign_keys=[employee_id], back_populates="leave_requests")
    cancelled_by = relationship("Employee", foreign_keys=[cancelled_by_id])
    steps = relationship(
        "ApprovalStep",
        back_populates="leave_request",
        order_by="ApprovalStep.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_leave_requests_employee_dates", "employee_id", "start_date", "end_date"),
        CheckConstraint("start_date <= end_date", name="check_start_date_le_end_date"),
        CheckConstraint("days > 0", name="check_days_positive"),
    )

    @property
    def live_steps(self):
        """Approval steps of the current submission round, ordered by level."""
        return sorted((s for s in self.steps if s.round == self.current_round), key=lambda s: s.level)


class ApprovalStep(Base):
    __tablename__ = "approval_steps"

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=False, index=True)
    round = Column(Integer, nullable=False, default=1)
    level = Column(Integer, nullable=False)
    approver_role = Column(SQLEnum(ApproverRole, name="approver_role"), nullable=False)
    approver_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    status = Column(
        SQLEnum(StepStatus, name="step_status", values_callable=_enum_values),
        nullable=False,
        default=StepStatus.PENDING,
        index=True,
    )
    delegate_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    delegated_at = Column(DateTime(timezone=True), nullable=True)
    decided_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    comment = Column(Text, nullable=True)
    activated_at = Column(DateTime(timezone=True), nullable=True)  # when this level became actionable
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)

    leave_request = relationship("LeaveRequest", back_populates="steps")
    approver = relationship("Employee", foreign_keys=[approver_id])
    delegate = relationship("Employee", foreign_keys=[delegate_id])
    decided_by = relationship("Employee", foreign_keys=[decided_by_id])
    actions = relationship("ApprovalStepAction", back_populates="step", order_by="ApprovalStepAction.id")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("leave_request_id", "round", "level", name="uq_approval_steps_request_round_level"),
        CheckConstraint("level >= 1", name="check_level_positive"),
    )


class ApprovalStepAction(Base):
    """Immutable trail of every approval step transition."""
    __tablename__ = "approval_step_actions"

    id = Column(Integer, primary_key=True, index=True)
    step_id = Column(Integer, ForeignKey("approval_steps.id"), nullable=False, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("employees.id"), nullable=True)  # NULL = scheduler
    action = Column(String(20), nullable=False)
    from_status = Column(String(20), nullable=False)
    to_status = Column(String(20), nullable=False)
    comment = Column(Text, nullable=True)
    action_at = Column(DateTime(timezone=True), nullable=False)

    step = relationship("ApprovalStep", back_populates="actions")
    actor = relationship("Employee", foreign_keys=[actor_id])
