"""
Leave policy endpoints
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from leave_portal.core.deps import get_db, get_current_user, require_hr
from leave_portal.models.employee import Employee
from leave_portal.models.leave import LeaveType
from leave_portal.schemas.policy import (
    PolicyValidateRequest,
    PolicyValidateResponse,
    PolicyCreateRequest,
    PolicyOut,
)
from leave_portal.services import policy_gate
from leave_portal.services import policy_service

router = APIRouter()


@router.post("/validate", response_model=PolicyValidateResponse)
async def validate_policy(
    payload: PolicyValidateRequest,
    current_user: Employee = Depends(get_current_user),
):
    """Dry run of the statutory minimum check; nothing is stored or audited"""
    result = policy_gate.validate(payload.leave_type, payload.max_days)
    return PolicyValidateResponse(
        valid=result.valid,
        statutory_minimum=result.statutory_minimum,
        errors=result.errors,
        warnings=result.warnings,
        legal_reference=result.legal_reference,
    )


@router.post("", response_model=PolicyOut, status_code=status.HTTP_201_CREATED)
async def create_policy(
    payload: PolicyCreateRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_hr),
):
    return policy_service.create_policy(
        db,
        payload.leave_type,
        payload.max_days,
        payload.accrual_per_month,
        payload.carryover_max,
        payload.required_approval_levels,
        actor_id=current_user.id,
    )


@router.post("/{policy_id}/activate", response_model=PolicyOut)
async def activate_policy(
    policy_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_hr),
):
    return policy_service.activate_policy_version(db, policy_id, actor_id=current_user.id)


@router.get("", response_model=List[PolicyOut])
async def list_policies(
    leave_type: Optional[LeaveType] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    return policy_service.list_policies(db, leave_type)
