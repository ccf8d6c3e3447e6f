from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from algomakers.models.notification_model import NotificationType, NotificationPriority


class NotificationRead(BaseModel):
    id: str
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    target_id: Optional[str] = None
    data: Optional[dict] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True
