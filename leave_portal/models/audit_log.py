"""
Audit log model
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from leave_portal.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("employees.id"), nullable=True)  # NULL = system (scheduler, accrual job)
    action = Column(String, nullable=False, index=True)  # e.g. "LEAVE_SUBMIT", "APPROVAL_ESCALATED", "POLICY_ACTIVATE"
    entity_type = Column(String, nullable=False)  # e.g. "leave_request", "approval_step", "leave_policy"
    entity_id = Column(Integer, nullable=True, index=True)
    meta_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
