"""
Balance Ledger - the only code path that changes a LeaveBalance.

- One LeaveBalance row per (employee, leave type); remaining never goes negative.
- Every movement is journaled in leave_transactions (DEBIT, CREDIT, ACCRUAL,
  ADJUSTMENT, FORFEIT).
- Debit/credit are tagged with the originating leave request: a request is
  debited at most once and credited back at most once, and only after a debit.
- Balance-exempt types (Unpaid) are journaled without touching a balance row.
- Functions flush but never commit; the caller's state transition and the
  ledger write commit together.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from leave_portal.core.exceptions import (
    ConcurrentModification,
    InsufficientBalance,
    ValidationError,
)
from leave_portal.models.balance import LeaveBalance, LeaveTransaction, LedgerEntryType
from leave_portal.models.leave import BALANCE_EXEMPT_LEAVE_TYPES, LeaveType

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class LedgerResult:
    applied: bool
    employee_id: int
    leave_type: LeaveType
    entry_type: LedgerEntryType
    days: Decimal
    balance_after: Optional[Decimal]
    transaction_id: Optional[int] = None


@dataclass(frozen=True)
class BalanceCheck:
    sufficient: bool
    current_balance: Decimal


def _to_days(days: Union[int, float, str, Decimal]) -> Decimal:
    try:
        amount = Decimal(str(days))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid day count: {days!r}")
    if amount <= ZERO:
        raise ValidationError("Day count must be greater than zero", {"days": str(days)})
    return amount


def is_balance_exempt(leave_type: LeaveType) -> bool:
    return LeaveType(leave_type) in BALANCE_EXEMPT_LEAVE_TYPES


def _flush(db: Session) -> None:
    try:
        db.flush()
    except StaleDataError:
        raise ConcurrentModification("Leave balance was modified concurrently; re-read and retry")
    except IntegrityError:
        raise ConcurrentModification("Ledger entry was written concurrently; re-read and retry")


def _lock_balance(db: Session, employee_id: int, leave_type: LeaveType) -> Optional[LeaveBalance]:
    """Read the balance row under SELECT ... FOR UPDATE (no-op on sqlite)."""
    return (
        db.query(LeaveBalance)
        .filter(LeaveBalance.employee_id == employee_id, LeaveBalance.leave_type == leave_type)
        .with_for_update()
        .first()
    )


def _find_entry(db: Session, leave_request_id: int, entry_type: LedgerEntryType) -> Optional[LeaveTransaction]:
    return (
        db.query(LeaveTransaction)
        .filter(
            LeaveTransaction.leave_request_id == leave_request_id,
            LeaveTransaction.entry_type == entry_type.value,
        )
        .first()
    )


def _result_from_entry(entry: LeaveTransaction, applied: bool) -> LedgerResult:
    return LedgerResult(
        applied=applied,
        employee_id=entry.employee_id,
        leave_type=LeaveType(entry.leave_type),
        entry_type=LedgerEntryType(entry.entry_type),
        days=Decimal(entry.days),
        balance_after=Decimal(entry.balance_after) if entry.balance_after is not None else None,
        transaction_id=entry.id,
    )


def get_balance(db: Session, employee_id: int, leave_type: LeaveType) -> Decimal:
    """Current remaining days (0 when no row exists)."""
    row = (
        db.query(LeaveBalance)
        .filter(LeaveBalance.employee_id == employee_id, LeaveBalance.leave_type == LeaveType(leave_type))
        .first()
    )
    return Decimal(row.remaining) if row else ZERO


def get_balances(db: Session, employee_id: int) -> List[LeaveBalance]:
    return (
        db.query(LeaveBalance)
        .filter(LeaveBalance.employee_id == employee_id)
        .order_by(LeaveBalance.leave_type)
        .all()
    )


def ensure_balance(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    opening: Union[int, float, str, Decimal] = 0,
    actor_id: Optional[int] = None,
) -> LeaveBalance:
    """
    Get or create the balance row for (employee_id, leave_type).

    A newly created row starts at `opening`; a non-zero opening amount is
    journaled as an ADJUSTMENT so the journal always sums to the balance.
    """
    leave_type = LeaveType(leave_type)
    row = _lock_balance(db, employee_id, leave_type)
    if row:
        return row

    opening_amount = Decimal(str(opening))
    if opening_amount < ZERO:
        raise ValidationError("Opening balance cannot be negative")

    row = LeaveBalance(employee_id=employee_id, leave_type=leave_type, remaining=opening_amount)
    db.add(row)
    if opening_amount > ZERO:
        db.add(LeaveTransaction(
            employee_id=employee_id,
            leave_type=leave_type,
            entry_type=LedgerEntryType.ADJUSTMENT.value,
            days=opening_amount,
            balance_after=opening_amount,
            actor_id=actor_id,
            remarks="Opening balance",
        ))
    _flush(db)
    return row


def check_sufficient(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    days: Union[int, float, str, Decimal],
) -> BalanceCheck:
    """Pre-check used at submission time; exempt types are always sufficient."""
    amount = _to_days(days)
    current = get_balance(db, employee_id, leave_type)
    if is_balance_exempt(leave_type):
        return BalanceCheck(sufficient=True, current_balance=current)
    return BalanceCheck(sufficient=current - amount >= ZERO, current_balance=current)


def debit(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    days: Union[int, float, str, Decimal],
    leave_request_id: int,
    actor_id: Optional[int] = None,
    remarks: Optional[str] = None,
) -> LedgerResult:
    """
    Debit `days` for an approved leave request.

    Returns the original result with applied=False if this request was already
    debited.

    Raises:
        ValidationError: days <= 0
        InsufficientBalance: balance would go negative (non-exempt types)
        ConcurrentModification: the balance row changed underneath us
    """
    amount = _to_days(days)
    leave_type = LeaveType(leave_type)

    existing = _find_entry(db, leave_request_id, LedgerEntryType.DEBIT)
    if existing:
        logger.info("Ledger debit already applied for leave_request_id=%s", leave_request_id)
        return _result_from_entry(existing, applied=False)

    balance_after = None
    if not is_balance_exempt(leave_type):
        row = _lock_balance(db, employee_id, leave_type)
        current = Decimal(row.remaining) if row else ZERO
        if current - amount < ZERO:
            raise InsufficientBalance(leave_type, current, amount)
        balance_after = current - amount
        row.remaining = balance_after

    entry = LeaveTransaction(
        employee_id=employee_id,
        leave_type=leave_type,
        leave_request_id=leave_request_id,
        entry_type=LedgerEntryType.DEBIT.value,
        days=amount,
        balance_after=balance_after,
        actor_id=actor_id,
        remarks=remarks or f"Approved leave request {leave_request_id}",
    )
    db.add(entry)
    _flush(db)

    logger.info(
        "Ledger debit: employee_id=%s leave_type=%s days=%s balance_after=%s leave_request_id=%s",
        employee_id, leave_type.value, amount, balance_after, leave_request_id,
    )
    return _result_from_entry(entry, applied=True)


def credit(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    days: Union[int, float, str, Decimal],
    leave_request_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    entry_type: LedgerEntryType = LedgerEntryType.CREDIT,
    remarks: Optional[str] = None,
) -> LedgerResult:
    """
    Credit `days` back to the balance.

    A credit tagged with a leave request is a compensating entry: it must match
    a prior DEBIT for the same request, employee, leave type and amount, and is
    applied at most once (a repeat returns applied=False). Untagged credits are
    accruals or manual adjustments.
    """
    amount = _to_days(days)
    leave_type = LeaveType(leave_type)
    entry_type = LedgerEntryType(entry_type)
    if entry_type == LedgerEntryType.DEBIT:
        raise ValidationError("Use debit() for DEBIT entries")

    if leave_request_id is not None:
        existing = _find_entry(db, leave_request_id, entry_type)
        if existing:
            logger.info("Ledger credit already applied for leave_request_id=%s", leave_request_id)
            return _result_from_entry(existing, applied=False)

        prior_debit = _find_entry(db, leave_request_id, LedgerEntryType.DEBIT)
        if (
            prior_debit is None
            or prior_debit.employee_id != employee_id
            or LeaveType(prior_debit.leave_type) != leave_type
            or Decimal(prior_debit.days) != amount
        ):
            raise ValidationError(
                "Compensating credit does not match a prior debit",
                {"leave_request_id": leave_request_id, "days": float(amount)},
            )

    balance_after = None
    if not is_balance_exempt(leave_type):
        row = ensure_balance(db, employee_id, leave_type)
        balance_after = Decimal(row.remaining) + amount
        row.remaining = balance_after

    entry = LeaveTransaction(
        employee_id=employee_id,
        leave_type=leave_type,
        leave_request_id=leave_request_id,
        entry_type=entry_type.value,
        days=amount,
        balance_after=balance_after,
        actor_id=actor_id,
        remarks=remarks,
    )
    db.add(entry)
    _flush(db)

    logger.info(
        "Ledger %s: employee_id=%s leave_type=%s days=%s balance_after=%s leave_request_id=%s",
        entry_type.value.lower(), employee_id, leave_type.value, amount, balance_after, leave_request_id,
    )
    return _result_from_entry(entry, applied=True)


def forfeit(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    days: Union[int, float, str, Decimal],
    actor_id: Optional[int] = None,
    remarks: Optional[str] = None,
) -> LedgerResult:
    """Lapse `days` from the balance at year end (not tied to a leave request)."""
    amount = _to_days(days)
    leave_type = LeaveType(leave_type)
    if is_balance_exempt(leave_type):
        raise ValidationError(f"{leave_type.value} leave has no balance to forfeit")

    row = _lock_balance(db, employee_id, leave_type)
    current = Decimal(row.remaining) if row else ZERO
    if current - amount < ZERO:
        raise InsufficientBalance(leave_type, current, amount)
    row.remaining = current - amount

    entry = LeaveTransaction(
        employee_id=employee_id,
        leave_type=leave_type,
        entry_type=LedgerEntryType.FORFEIT.value,
        days=amount,
        balance_after=row.remaining,
        actor_id=actor_id,
        remarks=remarks,
    )
    db.add(entry)
    _flush(db)

    logger.info(
        "Ledger forfeit: employee_id=%s leave_type=%s days=%s balance_after=%s",
        employee_id, leave_type.value, amount, row.remaining,
    )
    return _result_from_entry(entry, applied=True)


def get_transactions(
    db: Session,
    employee_id: int,
    leave_type: Optional[LeaveType] = None,
    limit: int = 200,
) -> List[LeaveTransaction]:
    query = db.query(LeaveTransaction).filter(LeaveTransaction.employee_id == employee_id)
    if leave_type is not None:
        query = query.filter(LeaveTransaction.leave_type == LeaveType(leave_type))
    return query.order_by(LeaveTransaction.id.desc()).limit(limit).all()
