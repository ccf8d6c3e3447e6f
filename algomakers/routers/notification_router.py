from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from typing import List

from algomakers.db.session import get_session
from algomakers.dependencies import get_current_user
from algomakers.models.user_model import User
from algomakers.schemas.notification_schema import NotificationRead
from algomakers.crud.notification_crud import NotificationCRUD

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationRead])
def list_notifications(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
):
    return NotificationCRUD(session).get_user_notifications(current_user, unread_only, limit)


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    return NotificationCRUD(session).mark_as_read(current_user, notification_id)
