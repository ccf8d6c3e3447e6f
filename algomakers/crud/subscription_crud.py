from sqlmodel import Session, select
from typing import List, Optional
from algomakers.models.subscription_model import Subscription, SubscriptionStatus


def get_user_subscriptions(
    session: Session,
    user_id: str,
    status: Optional[SubscriptionStatus] = None,
) -> List[Subscription]:
    query = select(Subscription).where(Subscription.user_id == user_id)
    if status:
        query = query.where(Subscription.status == status)
    return list(session.exec(query.order_by(Subscription.created_at.desc())))
