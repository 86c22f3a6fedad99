"""
Policy Gate - statutory minimum check for leave policy parameters.

`validate` is pure: it reads only the table it is given (or the configured
STATUTORY_MINIMUMS). `enforce` is the compliance control used at policy
creation and activation: a rejection is audited and logged, never silent.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from leave_portal.core.config import settings
from leave_portal.core.exceptions import StatutoryMinimumViolation
from leave_portal.models.leave import LeaveType
from leave_portal.services.audit_service import log_audit

logger = logging.getLogger(__name__)

LABOUR_ACT = "Labour Act, 2003 (Act 651)"
PSC_CONDITIONS = "Public Services Commission Conditions of Service"

LEGAL_REFERENCES = {
    LeaveType.ANNUAL.value: f"{LABOUR_ACT}, Section 57",
    LeaveType.MATERNITY.value: f"{LABOUR_ACT}, Section 58",
    LeaveType.PATERNITY.value: PSC_CONDITIONS,
    LeaveType.SICK.value: PSC_CONDITIONS,
    LeaveType.COMPASSIONATE.value: PSC_CONDITIONS,
}


@dataclass(frozen=True)
class GateResult:
    valid: bool
    statutory_minimum: Optional[int]
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    legal_reference: Optional[str] = None


def validate(
    leave_type: LeaveType,
    max_days: int,
    minimums: Optional[Dict[str, int]] = None,
    advisory_types: Optional[Iterable[str]] = None,
) -> GateResult:
    """
    Check max_days against the statutory minimum for leave_type.

    Args:
        leave_type: Leave type being configured
        max_days: Proposed maximum annual days
        minimums: Statutory table keyed by leave type value (defaults to settings)
        advisory_types: Types whose minimum only produces a warning (defaults to settings)

    Returns:
        GateResult; valid is False only when errors were produced
    """
    leave_type = LeaveType(leave_type)
    table = settings.STATUTORY_MINIMUMS if minimums is None else minimums
    advisory = set(settings.STATUTORY_ADVISORY_TYPES if advisory_types is None else advisory_types)

    minimum = table.get(leave_type.value)
    if minimum is None:
        return GateResult(valid=True, statutory_minimum=None)

    errors: List[str] = []
    warnings: List[str] = []
    reference = LEGAL_REFERENCES.get(leave_type.value, PSC_CONDITIONS)
    if max_days < minimum:
        if leave_type.value in advisory:
            warnings.append(
                f"{leave_type.value} leave is recommended to be at least {minimum} days per year "
                f"per Public Service standards. Current: {max_days} days."
            )
        else:
            errors.append(
                f"{leave_type.value} leave cannot be less than {minimum} days. "
                f"This violates {reference}. Minimum required: {minimum} days."
            )

    return GateResult(
        valid=not errors,
        statutory_minimum=minimum,
        errors=errors,
        warnings=warnings,
        legal_reference=reference,
    )


def enforce(
    db: Session,
    leave_type: LeaveType,
    max_days: int,
    actor_id: Optional[int],
    context: Optional[Dict[str, Any]] = None,
    minimums: Optional[Dict[str, int]] = None,
) -> GateResult:
    """Validate and, on failure, audit + log + raise StatutoryMinimumViolation."""
    result = validate(leave_type, max_days, minimums)
    if result.valid:
        return result

    leave_type = LeaveType(leave_type)
    logger.warning(
        "Statutory minimum violation: leave_type=%s attempted_max_days=%s statutory_minimum=%s actor_id=%s",
        leave_type.value, max_days, result.statutory_minimum, actor_id,
    )
    log_audit(
        db,
        actor_id=actor_id,
        action="POLICY_STATUTORY_REJECTED",
        entity_type="leave_policy",
        meta={
            "leave_type": leave_type,
            "attempted_max_days": max_days,
            "statutory_minimum": result.statutory_minimum,
            "legal_reference": result.legal_reference,
            "errors": result.errors,
            **(context or {}),
        },
    )
    raise StatutoryMinimumViolation(leave_type, max_days, result.statutory_minimum, result.errors)
