from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid

from algomakers.models.user_model import UserRole


class NotificationType(str, Enum):
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_EXPIRED = "PAYMENT_EXPIRED"
    PAYMENT_UNDERPAID = "PAYMENT_UNDERPAID"
    SUBSCRIPTION_CONFIRMED = "SUBSCRIPTION_CONFIRMED"
    ADMIN_PAYMENT_EVENT = "ADMIN_PAYMENT_EVENT"


class NotificationPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Notification(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    # Either a single recipient or every user holding target_role
    user_id: Optional[str] = Field(default=None, foreign_key="user.id", index=True)
    target_role: Optional[UserRole] = None
    target_id: Optional[str] = None
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority = Field(default=NotificationPriority.MEDIUM)
    data: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
