"""
Leave policy service - versioned policy management behind the Policy Gate
"""
import logging
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from leave_portal.core.exceptions import NotFound, ValidationError
from leave_portal.models.leave import LeaveType
from leave_portal.models.policy import LeavePolicy
from leave_portal.services import policy_gate
from leave_portal.services.audit_service import log_audit
from leave_portal.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


def get_active_policy(db: Session, leave_type: LeaveType) -> Optional[LeavePolicy]:
    return (
        db.query(LeavePolicy)
        .filter(LeavePolicy.leave_type == LeaveType(leave_type), LeavePolicy.active == True)  # noqa: E712
        .first()
    )


def list_policies(db: Session, leave_type: Optional[LeaveType] = None) -> List[LeavePolicy]:
    query = db.query(LeavePolicy)
    if leave_type is not None:
        query = query.filter(LeavePolicy.leave_type == LeaveType(leave_type))
    return query.order_by(LeavePolicy.leave_type, LeavePolicy.version).all()


def create_policy(
    db: Session,
    leave_type: LeaveType,
    max_days: int,
    accrual_per_month: Union[float, Decimal] = 0,
    carryover_max: int = 0,
    required_approval_levels: int = 1,
    actor_id: Optional[int] = None,
) -> LeavePolicy:
    """
    Create the next (inactive) version of a leave type's policy.

    Raises:
        ValidationError: Malformed parameters
        StatutoryMinimumViolation: max_days below the statutory minimum
    """
    leave_type = LeaveType(leave_type)
    if max_days < 0 or carryover_max < 0 or Decimal(str(accrual_per_month)) < 0:
        raise ValidationError("Policy day counts cannot be negative")
    if required_approval_levels < 1:
        raise ValidationError("required_approval_levels must be at least 1")

    policy_gate.enforce(db, leave_type, max_days, actor_id, context={"operation": "create"})

    latest = (
        db.query(func.max(LeavePolicy.version))
        .filter(LeavePolicy.leave_type == leave_type)
        .scalar()
    )
    policy = LeavePolicy(
        leave_type=leave_type,
        version=(latest or 0) + 1,
        max_days=max_days,
        accrual_per_month=Decimal(str(accrual_per_month)),
        carryover_max=carryover_max,
        required_approval_levels=required_approval_levels,
        active=False,
        created_by_id=actor_id,
    )
    db.add(policy)
    db.commit()
    db.refresh(policy)

    logger.info("Leave policy created: leave_type=%s version=%s max_days=%s", leave_type.value, policy.version, max_days)
    log_audit(
        db,
        actor_id=actor_id,
        action="POLICY_CREATE",
        entity_type="leave_policy",
        entity_id=policy.id,
        meta={"leave_type": leave_type, "version": policy.version, "max_days": max_days},
    )
    return policy


def activate_policy_version(db: Session, policy_id: int, actor_id: Optional[int] = None) -> LeavePolicy:
    """
    Activate a policy version, deactivating the current one for that leave type.

    The gate runs again here because the statutory table may have changed
    since the version was created.
    """
    policy = db.query(LeavePolicy).filter(LeavePolicy.id == policy_id).first()
    if not policy:
        raise NotFound(f"Leave policy {policy_id} not found")
    if policy.active:
        return policy

    policy_gate.enforce(
        db, policy.leave_type, policy.max_days, actor_id,
        context={"operation": "activate", "policy_id": policy.id, "version": policy.version},
    )

    previous = get_active_policy(db, policy.leave_type)
    if previous:
        previous.active = False
    policy.active = True
    policy.activated_at = now_utc()
    db.commit()
    db.refresh(policy)

    logger.info("Leave policy activated: leave_type=%s version=%s", policy.leave_type.value, policy.version)
    log_audit(
        db,
        actor_id=actor_id,
        action="POLICY_ACTIVATE",
        entity_type="leave_policy",
        entity_id=policy.id,
        meta={
            "leave_type": policy.leave_type,
            "version": policy.version,
            "previous_version": previous.version if previous else None,
        },
    )
    return policy
