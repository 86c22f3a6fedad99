"""
Audit logging service
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leave_portal.models.audit_log import AuditLog
from leave_portal.utils.datetime_utils import now_utc
from leave_portal.utils.json_serializer import sanitize_for_json

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    actor_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    meta: Optional[Dict[str, Any]] = None,
    created_at: Optional[datetime] = None,
) -> Optional[AuditLog]:
    """
    Create an audit log entry

    Called after the state change it describes has been committed, so a
    failing audit write is logged and rolled back on its own; it never undoes
    the transition.

    Args:
        db: Database session
        actor_id: ID of the employee performing the action (None = system)
        action: Action type (e.g. "LEAVE_SUBMIT", "APPROVAL_ESCALATED")
        entity_type: Type of entity (e.g. "leave_request", "approval_step")
        entity_id: ID of the affected entity (optional)
        meta: Additional metadata as dictionary (optional)
        created_at: Override the timestamp (defaults to now, UTC)

    Returns:
        Created AuditLog instance, or None if the write failed
    """
    safe_meta = sanitize_for_json(meta) if meta is not None else None

    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_json=safe_meta,
        created_at=created_at or now_utc(),
    )
    try:
        db.add(audit_log)
        db.commit()
        db.refresh(audit_log)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "Audit write failed: action=%s entity_type=%s entity_id=%s", action, entity_type, entity_id
        )
        return None
    return audit_log


def record(
    db: Session,
    action: str,
    actor: Optional[int],
    details: Dict[str, Any],
    timestamp: Optional[datetime] = None,
) -> Optional[AuditLog]:
    """Audit sink entry point: `details` must carry entity_type and may carry entity_id."""
    details = dict(details)
    entity_type = details.pop("entity_type", "leave_request")
    entity_id = details.pop("entity_id", None)
    return log_audit(db, actor, action, entity_type, entity_id, details or None, created_at=timestamp)
