"""
Leave balance ledger: current remaining days plus the journal of every movement
"""
from sqlalchemy import (
    Column,
    Integer,
    DateTime,
    ForeignKey,
    String,
    Text,
    Numeric,
    Enum as SQLEnum,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import enum
from leave_portal.db.base import Base
from leave_portal.models.leave import LeaveType


class LedgerEntryType(str, enum.Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"
    ACCRUAL = "ACCRUAL"
    ADJUSTMENT = "ADJUSTMENT"
    FORFEIT = "FORFEIT"  # year-end lapse above the carryover cap


class LeaveBalance(Base):
    """One row per (employee_id, leave_type). Never negative."""
    __tablename__ = "leave_balances"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type = Column(
        SQLEnum(LeaveType, name="leave_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    remaining = Column(Numeric(6, 2), nullable=False, default=0)
    last_accrual_month = Column(String(7), nullable=True)  # YYYY-MM
    last_year_closed = Column(Integer, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    employee = relationship("Employee", backref="leave_balances")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type", name="uq_leave_balances_employee_type"),
        CheckConstraint("remaining >= 0", name="check_remaining_non_negative"),
    )


class LeaveTransaction(Base):
    """Ledger journal: debit on approval, credit on cancel, accrual, manual adjustment, year-end forfeit."""
    __tablename__ = "leave_transactions"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type = Column(
        SQLEnum(LeaveType, name="leave_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=True, index=True)
    entry_type = Column(String(20), nullable=False)  # LedgerEntryType value
    days = Column(Numeric(6, 2), nullable=False)  # always positive; entry_type carries direction
    balance_after = Column(Numeric(6, 2), nullable=True)  # NULL for balance-exempt types
    actor_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)

    employee = relationship("Employee", foreign_keys=[employee_id])
    leave_request = relationship("LeaveRequest", foreign_keys=[leave_request_id])
    actor = relationship("Employee", foreign_keys=[actor_id])

    __table_args__ = (
        # At most one debit and one credit per request; NULL request ids are not constrained
        UniqueConstraint("leave_request_id", "entry_type", name="uq_leave_transactions_request_entry"),
    )
