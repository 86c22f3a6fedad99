"""
In-app notification service.

Delivery beyond the in-app inbox (email, push) is handled by an external
transport reading these rows. Sending is fire-and-forget: a failure here is
logged and never fails the workflow operation that triggered it.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leave_portal.models.notification import Notification
from leave_portal.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


def notify(
    db: Session,
    user_ids: Iterable[int],
    message: str,
    title: str = "Leave update",
    link: Optional[str] = None,
    type: Optional[str] = None,
) -> List[Notification]:
    recipients = sorted({uid for uid in user_ids if uid is not None})
    if not recipients:
        return []

    created_at = now_utc()
    notifications = [
        Notification(
            user_id=uid,
            title=title,
            message=message,
            type=type,
            link=link,
            is_read=False,
            created_at=created_at,
        )
        for uid in recipients
    ]
    try:
        db.add_all(notifications)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Notification write failed for users=%s title=%s", recipients, title)
        return []

    logger.debug("Notified users=%s title=%s", recipients, title)
    return notifications


def list_notifications(db: Session, user_id: int, unread_only: bool = False) -> List[Notification]:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()
