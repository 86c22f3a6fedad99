"""
Tests for the audit sink and in-app notifications
"""
from datetime import date, datetime, timezone

from leave_portal.models.audit_log import AuditLog
from leave_portal.models.leave import LeaveStatus, LeaveType
from leave_portal.services.audit_service import log_audit, record
from leave_portal.services.notification_service import list_notifications, notify


def test_audit_meta_is_json_safe(db, org):
    entry = log_audit(
        db, org["hr"].id, "LEAVE_CANCEL", "leave_request", 42,
        {"after": LeaveStatus.CANCELLED, "leave_type": LeaveType.ANNUAL, "on": date(2026, 3, 2)},
    )

    assert entry.meta_json == {"after": "cancelled", "leave_type": "Annual", "on": "2026-03-02"}


def test_record_splits_entity_from_details(db, org):
    when = datetime(2026, 3, 2, 8, 30, tzinfo=timezone.utc)

    entry = record(
        db, "APPROVAL_REMINDER", None,
        {"entity_type": "approval_step", "entity_id": 7, "level": 1},
        timestamp=when,
    )

    assert entry.entity_type == "approval_step"
    assert entry.entity_id == 7
    assert entry.actor_id is None
    assert entry.meta_json == {"level": 1}


def test_failed_audit_write_is_swallowed(db, org):
    assert log_audit(db, 9999, "LEAVE_SUBMIT", "leave_request", 1) is None
    assert db.query(AuditLog).count() == 0


def test_notify_deduplicates_recipients(db, org):
    created = notify(db, [org["staff"].id, org["staff"].id, None], "Hello", title="Greeting")

    assert len(created) == 1
    assert [n.title for n in list_notifications(db, org["staff"].id)] == ["Greeting"]


def test_failed_notification_is_swallowed(db, org):
    assert notify(db, [9999], "Nobody home") == []
    assert list_notifications(db, org["staff"].id) == []


def test_unread_filter(db, org):
    first, = notify(db, [org["staff"].id], "First")
    notify(db, [org["staff"].id], "Second")
    first.is_read = True
    db.commit()

    assert [n.message for n in list_notifications(db, org["staff"].id, unread_only=True)] == ["Second"]
