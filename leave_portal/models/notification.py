"""
In-app notifications and the reminder dedup log
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship
import enum
from leave_portal.db.base import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String, nullable=True)  # e.g. "APPROVAL_REQUIRED", "LEAVE_DECIDED", "REMINDER"
    link = Column(String, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("Employee", foreign_keys=[user_id])


class ReminderKind(str, enum.Enum):
    APPROVER = "APPROVER"
    HR = "HR"


class ReminderLog(Base):
    """One row per reminder sent; the scheduler dedups against it."""
    __tablename__ = "reminder_logs"

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=False)
    level = Column(Integer, nullable=True)  # NULL for HR aggregate reminders
    kind = Column(String(20), nullable=False)
    recipient_ids = Column(JSON, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_reminder_logs_request_level_kind", "leave_request_id", "level", "kind"),
    )
