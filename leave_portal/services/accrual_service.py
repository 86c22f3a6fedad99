"""
Accrual service - monthly leave crediting and year-end carry-forward through
the Balance Ledger.

Each active policy with a non-zero accrual_per_month credits every active
employee once per month, capped at max_days + carryover_max. At year close each
balance keeps at most carryover_max days; the excess is journaled as FORFEIT.
"""
import logging
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from leave_portal.core.exceptions import ValidationError
from leave_portal.models.balance import LeaveBalance, LedgerEntryType
from leave_portal.models.employee import Employee
from leave_portal.models.policy import LeavePolicy
from leave_portal.services import balance_ledger as ledger
from leave_portal.services import org_directory
from leave_portal.services.audit_service import log_audit
from leave_portal.services.notification_service import notify

logger = logging.getLogger(__name__)


def run_monthly_accrual(db: Session, year: int, month: int, actor_id: Optional[int]) -> Dict:
    """
    Run monthly accrual for (year, month).

    Returns counters: employees processed, entries credited, and how many
    were skipped because already accrued or already at the cap.
    """
    if month < 1 or month > 12:
        raise ValidationError(f"Invalid month: {month}. Must be between 1 and 12.")
    month_key = f"{year:04d}-{month:02d}"

    policies = (
        db.query(LeavePolicy)
        .filter(LeavePolicy.active == True, LeavePolicy.accrual_per_month > 0)  # noqa: E712
        .all()
    )
    employees = db.query(Employee).filter(Employee.active == True).order_by(Employee.id).all()  # noqa: E712

    credited_count = 0
    skipped_already_credited = 0
    skipped_at_cap = 0

    for employee in employees:
        for policy in policies:
            row = ledger.ensure_balance(db, employee.id, policy.leave_type)
            if row.last_accrual_month is not None and row.last_accrual_month >= month_key:
                skipped_already_credited += 1
                continue

            cap = Decimal(policy.max_days + policy.carryover_max)
            amount = min(Decimal(policy.accrual_per_month), cap - Decimal(row.remaining))
            row.last_accrual_month = month_key
            if amount <= 0:
                skipped_at_cap += 1
                continue

            ledger.credit(
                db,
                employee.id,
                policy.leave_type,
                amount,
                actor_id=actor_id,
                entry_type=LedgerEntryType.ACCRUAL,
                remarks=f"Monthly accrual {month_key}",
            )
            credited_count += 1

    db.commit()

    summary = {
        "month": month_key,
        "total_employees_processed": len(employees),
        "policies_applied": len(policies),
        "credited_count": credited_count,
        "skipped_already_credited": skipped_already_credited,
        "skipped_at_cap": skipped_at_cap,
    }
    logger.info("Monthly accrual complete: %s", summary)
    log_audit(
        db=db,
        actor_id=actor_id,
        action="ACCRUAL_RUN",
        entity_type="accrual",
        meta=summary,
    )
    return summary


def run_year_close(db: Session, year: int, actor_id: Optional[int]) -> Dict:
    """
    Close leave year `year`: carry forward up to carryover_max per balance and
    forfeit the rest. Balances already closed for `year` are skipped, so a
    re-run only picks up rows it has not seen.
    """
    policies = (
        db.query(LeavePolicy)
        .filter(LeavePolicy.active == True)  # noqa: E712
        .order_by(LeavePolicy.leave_type)
        .all()
    )

    balances_processed = 0
    carried_forward_count = 0
    forfeited_count = 0
    days_forfeited = Decimal("0")
    skipped_already_closed = 0

    for policy in policies:
        rows = (
            db.query(LeaveBalance)
            .join(Employee, Employee.id == LeaveBalance.employee_id)
            .filter(LeaveBalance.leave_type == policy.leave_type, Employee.active == True)  # noqa: E712
            .order_by(LeaveBalance.employee_id)
            .all()
        )
        cap = Decimal(policy.carryover_max or 0)
        for row in rows:
            if row.last_year_closed is not None and row.last_year_closed >= year:
                skipped_already_closed += 1
                continue

            balances_processed += 1
            remaining = Decimal(row.remaining)
            excess = remaining - min(remaining, cap)
            if excess > 0:
                ledger.forfeit(
                    db,
                    row.employee_id,
                    policy.leave_type,
                    excess,
                    actor_id=actor_id,
                    remarks=f"Year close {year}: above carryover cap of {cap}",
                )
                forfeited_count += 1
                days_forfeited += excess
            if remaining - excess > 0:
                carried_forward_count += 1
            row.last_year_closed = year

    db.commit()

    summary = {
        "year": year,
        "policies_applied": len(policies),
        "balances_processed": balances_processed,
        "carried_forward_count": carried_forward_count,
        "forfeited_count": forfeited_count,
        "days_forfeited": float(days_forfeited),
        "skipped_already_closed": skipped_already_closed,
    }
    logger.info("Year close complete: %s", summary)
    log_audit(
        db=db,
        actor_id=actor_id,
        action="YEAR_CLOSE_RUN",
        entity_type="accrual",
        meta=summary,
    )
    notify(
        db,
        [e.id for e in org_directory.find_hr_staff(db)],
        f"Year close {year}: {balances_processed} balances processed, "
        f"{summary['days_forfeited']:g} days forfeited above the carryover caps.",
        title="Leave year closed",
        type="YEAR_CLOSE",
    )
    return summary
