"""
Notification inbox endpoint
"""
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from leave_portal.core.deps import get_db, get_current_user
from leave_portal.models.employee import Employee
from leave_portal.schemas.notification import NotificationOut
from leave_portal.services.notification_service import list_notifications

router = APIRouter()


@router.get("/me", response_model=List[NotificationOut])
async def my_notifications(
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    return list_notifications(db, current_user.id, unread_only)
