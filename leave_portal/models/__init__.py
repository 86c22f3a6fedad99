"""
Database models
"""
from leave_portal.models.employee import Employee, Role, DutyStation, HR_ROLES
from leave_portal.models.audit_log import AuditLog
from leave_portal.models.leave import (
    LeaveRequest,
    ApprovalStep,
    ApprovalStepAction,
    LeaveType,
    LeaveStatus,
    StepStatus,
    ApproverRole,
    StepActionType,
    ExternalClearanceStatus,
    BALANCE_EXEMPT_LEAVE_TYPES,
    EXTERNAL_CLEARANCE_LEAVE_TYPES,
    DIRECTOR_SIGNOFF_LEAVE_TYPES,
    PAYROLL_IMPACT_LEAVE_TYPES,
)
from leave_portal.models.balance import LeaveBalance, LeaveTransaction, LedgerEntryType
from leave_portal.models.policy import LeavePolicy
from leave_portal.models.notification import Notification, ReminderLog, ReminderKind

__all__ = [
    "Employee",
    "Role",
    "DutyStation",
    "HR_ROLES",
    "AuditLog",
    "LeaveRequest",
    "ApprovalStep",
    "ApprovalStepAction",
    "LeaveType",
    "LeaveStatus",
    "StepStatus",
    "ApproverRole",
    "StepActionType",
    "ExternalClearanceStatus",
    "BALANCE_EXEMPT_LEAVE_TYPES",
    "EXTERNAL_CLEARANCE_LEAVE_TYPES",
    "DIRECTOR_SIGNOFF_LEAVE_TYPES",
    "PAYROLL_IMPACT_LEAVE_TYPES",
    "LeaveBalance",
    "LeaveTransaction",
    "LedgerEntryType",
    "LeavePolicy",
    "Notification",
    "ReminderLog",
    "ReminderKind",
]
