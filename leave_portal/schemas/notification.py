"""
Notification schemas
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, field_serializer
from pydantic import ConfigDict
from leave_portal.utils.datetime_utils import iso_utc


class NotificationOut(BaseModel):
    id: int
    title: str
    message: str
    type: Optional[str] = None
    link: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)
