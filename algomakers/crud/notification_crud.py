from typing import List, Optional
from sqlmodel import Session, select
from sqlalchemy import or_
from fastapi import HTTPException, status
from algomakers.models.notification_model import Notification, NotificationType, NotificationPriority
from algomakers.models.user_model import User, UserRole
import logging

logger = logging.getLogger(__name__)


class NotificationCRUD:
    def __init__(self, session: Session):
        self.session = session

    def notify_user(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        target_id: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            priority=priority,
            target_id=target_id,
            data=data or {},
        )
        self.session.add(notification)
        return notification

    def notify_admins(
        self,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        target_id: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> Notification:
        notification = Notification(
            target_role=UserRole.ADMIN,
            type=NotificationType.ADMIN_PAYMENT_EVENT,
            title=title,
            message=message,
            priority=priority,
            target_id=target_id,
            data=data or {},
        )
        self.session.add(notification)
        logger.info(f"Admin notification: {title} - {message}")
        return notification

    def get_user_notifications(self, user: User, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = select(Notification).where(
            or_(Notification.user_id == user.id, Notification.target_role == user.role)
        )
        if unread_only:
            query = query.where(Notification.is_read == False)
        query = query.order_by(Notification.created_at.desc()).limit(limit)
        return list(self.session.exec(query))

    def mark_as_read(self, user: User, notification_id: str) -> Notification:
        notification = self.session.get(Notification, notification_id)
        if not notification or (
            notification.user_id != user.id and notification.target_role != user.role
        ):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Notification not found"
            )
        notification.is_read = True
        self.session.add(notification)
        self.session.commit()
        self.session.refresh(notification)
        return notification
