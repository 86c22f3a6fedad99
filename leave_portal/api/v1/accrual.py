"""
Monthly accrual and year-end carry-forward endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from leave_portal.core.deps import get_db, require_hr
from leave_portal.models.employee import Employee
from leave_portal.schemas.approval import (
    AccrualRunRequest,
    AccrualRunResponse,
    YearCloseRequest,
    YearCloseResponse,
)
from leave_portal.services.accrual_service import run_monthly_accrual, run_year_close

router = APIRouter()


@router.post("/run", response_model=AccrualRunResponse)
async def run_accrual(
    payload: AccrualRunRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_hr),
):
    """Credit the month's accrual for every active policy (HR only)"""
    return run_monthly_accrual(db, payload.year, payload.month, actor_id=current_user.id)


@router.post("/year-close", response_model=YearCloseResponse)
async def close_year(
    payload: YearCloseRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_hr),
):
    """Carry balances forward into the next year, forfeiting days above each policy's cap (HR only)"""
    return run_year_close(db, payload.year, actor_id=current_user.id)
