"""
Leave balance endpoints
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from leave_portal.core.deps import get_db, get_current_user, require_hr
from leave_portal.core.exceptions import PermissionDenied
from leave_portal.models.balance import LedgerEntryType
from leave_portal.models.employee import Employee
from leave_portal.models.leave import LeaveType
from leave_portal.schemas.balance import (
    BalanceOut,
    BalancesResponse,
    LedgerEntryOut,
    BalanceAdjustRequest,
    BalanceAdjustResponse,
)
from leave_portal.services import balance_ledger as ledger
from leave_portal.services import org_directory
from leave_portal.services.audit_service import log_audit

router = APIRouter()


def _require_self_or_hr(employee_id: int, current_user: Employee) -> None:
    if employee_id != current_user.id and not current_user.is_hr:
        raise PermissionDenied("You can only view your own leave balances")


@router.get("/me", response_model=BalancesResponse)
async def my_balances(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    balances = [BalanceOut.model_validate(b) for b in ledger.get_balances(db, current_user.id)]
    return BalancesResponse(employee_id=current_user.id, balances=balances)


@router.get("/{employee_id}", response_model=BalancesResponse)
async def employee_balances(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    _require_self_or_hr(employee_id, current_user)
    org_directory.get_employee(db, employee_id)
    balances = [BalanceOut.model_validate(b) for b in ledger.get_balances(db, employee_id)]
    return BalancesResponse(employee_id=employee_id, balances=balances)


@router.get("/{employee_id}/transactions", response_model=List[LedgerEntryOut])
async def employee_transactions(
    employee_id: int,
    leave_type: Optional[LeaveType] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Ledger journal, newest first"""
    _require_self_or_hr(employee_id, current_user)
    return ledger.get_transactions(db, employee_id, leave_type, limit)


@router.post("/adjust", response_model=BalanceAdjustResponse)
async def adjust_balance(
    payload: BalanceAdjustRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_hr),
):
    """Manual HR credit, journaled as an ADJUSTMENT entry"""
    org_directory.get_employee(db, payload.employee_id)
    try:
        result = ledger.credit(
            db,
            payload.employee_id,
            payload.leave_type,
            payload.days,
            actor_id=current_user.id,
            entry_type=LedgerEntryType.ADJUSTMENT,
            remarks=payload.remarks,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    log_audit(
        db,
        actor_id=current_user.id,
        action="BALANCE_ADJUST",
        entity_type="leave_balance",
        entity_id=payload.employee_id,
        meta={
            "leave_type": payload.leave_type,
            "days": payload.days,
            "balance_after": result.balance_after,
            "remarks": payload.remarks,
        },
    )
    return BalanceAdjustResponse(
        employee_id=payload.employee_id,
        leave_type=payload.leave_type,
        days=result.days,
        balance_after=result.balance_after,
    )
