"""
Escalation/Reminder Scheduler - the single periodic scan over open approvals.

One scan runs three passes, in order:

1. Approver reminders: the active level of each pending request (its delegate
   when delegated), once older than REMINDER_THRESHOLD_HOURS, at most once
   per (request, level) per REMINDER_DEDUP_HOURS.
2. HR aggregate reminders: pending requests older than
   HR_REMINDER_THRESHOLD_DAYS, at most once per request per HR_REMINDER_DEDUP_HOURS.
3. Escalation (only when ESCALATION_THRESHOLD_HOURS is set): the active level is
   skipped and the next level activated. The last level is never skipped; HR is
   told about it instead.

Each reminder's log row and audit record are committed before anything is
sent, and every mutation re-reads the step under lock first, so a scan racing
a manual approval neither double-notifies nor escalates a resolved step.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from leave_portal.core.config import settings
from leave_portal.core.exceptions import ValidationError
from leave_portal.models.leave import ApprovalStep, LeaveRequest, LeaveStatus, StepStatus
from leave_portal.models.notification import ReminderKind, ReminderLog
from leave_portal.services import approval_step_machine as steps_sm
from leave_portal.services import org_directory
from leave_portal.services.audit_service import log_audit
from leave_portal.services.notification_service import notify
from leave_portal.utils.datetime_utils import ensure_utc, hours_between, now_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanConfig:
    reminder_threshold_hours: int = 24
    reminder_dedup_hours: int = 12
    hr_reminder_threshold_days: int = 3
    hr_reminder_dedup_hours: int = 24
    escalation_threshold_hours: Optional[int] = None

    @classmethod
    def from_settings(cls) -> "ScanConfig":
        return cls(
            reminder_threshold_hours=settings.REMINDER_THRESHOLD_HOURS,
            reminder_dedup_hours=settings.REMINDER_DEDUP_HOURS,
            hr_reminder_threshold_days=settings.HR_REMINDER_THRESHOLD_DAYS,
            hr_reminder_dedup_hours=settings.HR_REMINDER_DEDUP_HOURS,
            escalation_threshold_hours=settings.ESCALATION_THRESHOLD_HOURS,
        )


@dataclass(frozen=True)
class ReminderEvent:
    kind: str  # APPROVER_REMINDER, HR_REMINDER, ESCALATED, FINAL_LEVEL_OVERDUE
    leave_request_id: int
    level: Optional[int]
    recipient_ids: Tuple[int, ...]
    age_hours: float


def _active_steps(db: Session, statuses=(StepStatus.PENDING,)) -> List[Tuple[LeaveRequest, ApprovalStep]]:
    requests = (
        db.query(LeaveRequest)
        .filter(LeaveRequest.status == LeaveStatus.PENDING)
        .order_by(LeaveRequest.id)
        .all()
    )
    pairs = []
    for request in requests:
        step = steps_sm.active_step(request.live_steps)
        if step is not None and StepStatus(step.status) in statuses:
            pairs.append((request, step))
    return pairs


def _recently_sent(
    db: Session, request_id: int, level: Optional[int], kind: ReminderKind, now: datetime, window_hours: int
) -> bool:
    query = db.query(ReminderLog).filter(
        ReminderLog.leave_request_id == request_id,
        ReminderLog.kind == kind.value,
    )
    query = query.filter(ReminderLog.level.is_(None)) if level is None else query.filter(ReminderLog.level == level)
    last = query.order_by(ReminderLog.sent_at.desc()).first()
    return last is not None and ensure_utc(last.sent_at) > now - timedelta(hours=window_hours)


def _still_open(db: Session, request: LeaveRequest, step: ApprovalStep, status: StepStatus) -> bool:
    """Re-read request and step under lock right before mutating."""
    db.query(LeaveRequest).filter(LeaveRequest.id == request.id).with_for_update().populate_existing().one()
    db.query(ApprovalStep).filter(ApprovalStep.id == step.id).with_for_update().populate_existing().one()
    return (
        LeaveStatus(request.status) == LeaveStatus.PENDING
        and step.round == request.current_round
        and StepStatus(step.status) == status
    )


def _write_reminder(
    db: Session,
    request: LeaveRequest,
    level: Optional[int],
    kind: ReminderKind,
    recipients: List[int],
    now: datetime,
    audit_action: str,
    entity_type: str,
    entity_id: int,
    age_hours: float,
) -> None:
    """Commit the reminder log row, then its audit record."""
    db.add(ReminderLog(
        leave_request_id=request.id,
        level=level,
        kind=kind.value,
        recipient_ids=recipients,
        sent_at=now,
    ))
    db.commit()
    log_audit(
        db,
        actor_id=None,
        action=audit_action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta={
            "leave_request_id": request.id,
            "level": level,
            "recipient_ids": recipients,
            "age_hours": round(age_hours, 1),
        },
        created_at=now,
    )


def _hr_ids(db: Session) -> List[int]:
    return [e.id for e in org_directory.find_hr_staff(db)]


def _approver_reminders(db: Session, now: datetime, config: ScanConfig) -> List[ReminderEvent]:
    events = []
    for request, step in _active_steps(db, (StepStatus.PENDING, StepStatus.DELEGATED)):
        status = StepStatus(step.status)
        # a delegate's clock starts at the delegation
        started = step.delegated_at if status == StepStatus.DELEGATED else step.activated_at
        age = hours_between(started or request.submitted_at, now)
        if age < config.reminder_threshold_hours:
            continue
        if _recently_sent(db, request.id, step.level, ReminderKind.APPROVER, now, config.reminder_dedup_hours):
            continue
        if not _still_open(db, request, step, status):
            db.rollback()
            continue

        recipients = steps_sm.eligible_approver_ids(db, step, request) or _hr_ids(db)
        _write_reminder(
            db, request, step.level, ReminderKind.APPROVER, recipients, now,
            "APPROVAL_REMINDER", "approval_step", step.id, age,
        )
        notify(
            db,
            recipients,
            f"Leave request {request.id} has been awaiting your level {step.level} approval "
            f"for {int(age)} hours.",
            title="Leave approval reminder",
            link=f"/leaves/{request.id}",
            type="REMINDER",
        )
        events.append(ReminderEvent("APPROVER_REMINDER", request.id, step.level, tuple(recipients), age))
    return events


def _hr_reminders(db: Session, now: datetime, config: ScanConfig) -> List[ReminderEvent]:
    threshold_hours = config.hr_reminder_threshold_days * 24
    requests = (
        db.query(LeaveRequest)
        .filter(LeaveRequest.status == LeaveStatus.PENDING)
        .order_by(LeaveRequest.id)
        .all()
    )
    events = []
    for request in requests:
        age = hours_between(request.submitted_at, now)
        if age < threshold_hours:
            continue
        if _recently_sent(db, request.id, None, ReminderKind.HR, now, config.hr_reminder_dedup_hours):
            continue
        recipients = _hr_ids(db)
        if not recipients:
            logger.warning("No HR staff to remind about leave_request_id=%s", request.id)
            continue

        _write_reminder(
            db, request, None, ReminderKind.HR, recipients, now,
            "HR_PENDING_REMINDER", "leave_request", request.id, age,
        )
        notify(
            db,
            recipients,
            f"Leave request {request.id} has been pending for {int(age // 24)} days.",
            title="Pending leave request",
            link=f"/leaves/{request.id}",
            type="REMINDER",
        )
        events.append(ReminderEvent("HR_REMINDER", request.id, None, tuple(recipients), age))
    return events


def _escalate(db: Session, now: datetime, config: ScanConfig) -> List[ReminderEvent]:
    events = []
    for request, step in _active_steps(db):
        age = hours_between(step.activated_at or request.submitted_at, now)
        if age < config.escalation_threshold_hours:
            continue

        last_level = max(s.level for s in request.live_steps)
        if step.level == last_level:
            if _recently_sent(db, request.id, step.level, ReminderKind.HR, now, config.hr_reminder_dedup_hours):
                continue
            recipients = _hr_ids(db)
            if not recipients:
                continue
            _write_reminder(
                db, request, step.level, ReminderKind.HR, recipients, now,
                "APPROVAL_FINAL_LEVEL_OVERDUE", "approval_step", step.id, age,
            )
            notify(
                db,
                recipients,
                f"Final approval level {step.level} of leave request {request.id} is overdue "
                f"({int(age)} hours) and cannot be escalated further.",
                title="Overdue leave approval",
                link=f"/leaves/{request.id}",
                type="ESCALATION",
            )
            events.append(ReminderEvent("FINAL_LEVEL_OVERDUE", request.id, step.level, tuple(recipients), age))
            continue

        try:
            if not _still_open(db, request, step, StepStatus.PENDING):
                db.rollback()
                continue
            action = steps_sm.transition_step(
                db, step, StepStatus.SKIPPED, None,
                f"Auto-escalated after {int(age)} hours without action", now=now,
            )
            nxt = steps_sm.activate_next(request.live_steps, now)
            db.commit()
        except (StaleDataError, IntegrityError):
            db.rollback()
            logger.info("Escalation lost a race: leave_request_id=%s level=%s", request.id, step.level)
            continue

        steps_sm.audit_step_action(db, action, "APPROVAL_ESCALATED")
        recipients = steps_sm.eligible_approver_ids(db, nxt, request) if nxt is not None else []
        notify(
            db,
            recipients,
            f"Leave request {request.id} was escalated to you after level {step.level} "
            f"went {int(age)} hours without action.",
            title="Escalated leave approval",
            link=f"/leaves/{request.id}",
            type="ESCALATION",
        )
        logger.info(
            "Escalated leave_request_id=%s from level %s to level %s",
            request.id, step.level, nxt.level if nxt is not None else None,
        )
        events.append(ReminderEvent("ESCALATED", request.id, step.level, tuple(recipients), age))
    return events


def scan(db: Session, now: Optional[datetime] = None, config: Optional[ScanConfig] = None) -> List[ReminderEvent]:
    """
    Run one scheduler pass.

    Args:
        db: Database session
        now: Scan time (defaults to now, UTC)
        config: Thresholds (defaults to settings)

    Returns:
        The reminders and escalations emitted by this scan
    """
    now = ensure_utc(now) if now is not None else now_utc()
    config = config or ScanConfig.from_settings()
    if (
        config.escalation_threshold_hours is not None
        and config.escalation_threshold_hours <= config.reminder_threshold_hours
    ):
        raise ValidationError("Escalation threshold must be greater than the reminder threshold")

    events = _approver_reminders(db, now, config)
    events += _hr_reminders(db, now, config)
    if config.escalation_threshold_hours is not None:
        events += _escalate(db, now, config)

    logger.info("Approval scan complete: now=%s events=%s", now.isoformat(), len(events))
    return events
