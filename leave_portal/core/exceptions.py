"""
Domain exceptions for the leave workflow engine.

Services raise these; the API layer turns them into JSON responses
(see leave_portal.core.errors). None of them should be retried automatically
except ConcurrentModification, which is safe to retry once after re-reading.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional


class LeaveWorkflowError(Exception):
    status_code = 400
    error_code = "LEAVE_WORKFLOW_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(LeaveWorkflowError):
    """Malformed input or missing required fields."""
    status_code = 400
    error_code = "VALIDATION_ERROR"


class NotFound(LeaveWorkflowError):
    status_code = 404
    error_code = "NOT_FOUND"


class PermissionDenied(LeaveWorkflowError):
    status_code = 403
    error_code = "PERMISSION_DENIED"


class InvalidTransition(LeaveWorkflowError):
    """State machine contract violation; state is left unchanged."""
    status_code = 409
    error_code = "INVALID_TRANSITION"

    def __init__(self, machine: str, from_state: Any, to_state: Any, message: Optional[str] = None):
        self.machine = machine
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            message or f"Invalid {machine} transition: {_state(from_state)} -> {_state(to_state)}",
            {"machine": machine, "from": _state(from_state), "to": _state(to_state)},
        )


class OutOfOrderApproval(LeaveWorkflowError):
    status_code = 409
    error_code = "OUT_OF_ORDER_APPROVAL"

    def __init__(self, requested_level: int, active_level: Optional[int]):
        self.requested_level = requested_level
        self.active_level = active_level
        super().__init__(
            f"Level {requested_level} cannot be acted on while level {active_level} is unresolved",
            {"requested_level": requested_level, "active_level": active_level},
        )


class InsufficientBalance(LeaveWorkflowError):
    status_code = 422
    error_code = "INSUFFICIENT_BALANCE"

    def __init__(self, leave_type: Any, current_balance: Decimal, requested: Decimal):
        self.current_balance = current_balance
        self.requested = requested
        super().__init__(
            f"Insufficient {_state(leave_type)} leave balance. "
            f"Available: {current_balance} days, Requested: {requested} days",
            {
                "leave_type": _state(leave_type),
                "current_balance": float(current_balance),
                "requested": float(requested),
            },
        )


class OverlappingLeave(LeaveWorkflowError):
    status_code = 409
    error_code = "OVERLAPPING_LEAVE"

    def __init__(self, overlapping: List[Dict[str, Any]]):
        self.overlapping = overlapping
        first = overlapping[0]
        super().__init__(
            f"Leave request overlaps with existing leave from {first['start_date']} to {first['end_date']}",
            {"overlapping": overlapping},
        )


class StatutoryMinimumViolation(LeaveWorkflowError):
    status_code = 422
    error_code = "STATUTORY_MINIMUM_VIOLATION"

    def __init__(self, leave_type: Any, attempted: Any, statutory_minimum: Any, errors: List[str]):
        self.statutory_minimum = statutory_minimum
        self.attempted = attempted
        super().__init__(
            errors[0] if errors else f"{_state(leave_type)} policy is below the statutory minimum",
            {
                "leave_type": _state(leave_type),
                "attempted_max_days": attempted,
                "statutory_minimum": statutory_minimum,
                "errors": errors,
            },
        )


class ConcurrentModification(LeaveWorkflowError):
    """Optimistic-lock conflict. Safe to retry once after re-reading state."""
    status_code = 409
    error_code = "CONCURRENT_MODIFICATION"


class OrgInfoNotFound(LeaveWorkflowError):
    status_code = 422
    error_code = "ORG_INFO_NOT_FOUND"


class RequestLocked(LeaveWorkflowError):
    status_code = 423
    error_code = "REQUEST_LOCKED"


class ExternalClearanceRequired(LeaveWorkflowError):
    """PSC/OHCS clearance has not been recorded as cleared yet."""
    status_code = 409
    error_code = "EXTERNAL_CLEARANCE_REQUIRED"


def _state(value: Any) -> Any:
    return getattr(value, "value", value)
