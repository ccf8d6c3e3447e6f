from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from typing import List, Optional

from algomakers.db.session import get_session
from algomakers.dependencies import get_current_user
from algomakers.models.user_model import User
from algomakers.models.subscription_model import SubscriptionStatus
from algomakers.schemas.subscription_schema import SubscriptionRead
from algomakers.crud.subscription_crud import get_user_subscriptions

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


@router.get("", response_model=List[SubscriptionRead])
def list_my_subscriptions(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    status: Optional[SubscriptionStatus] = Query(None),
):
    return get_user_subscriptions(session, current_user.id, status)
