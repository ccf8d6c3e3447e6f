from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from algomakers.models.subscription_model import SubscriptionPeriod, SubscriptionStatus, InviteStatus


class SubscriptionRead(BaseModel):
    id: str
    user_id: str
    pair_id: str
    period: SubscriptionPeriod
    start_date: datetime
    expiry_date: datetime
    status: SubscriptionStatus
    invite_status: InviteStatus
    base_price: float
    discount_rate: float
    payment_id: Optional[str] = None

    class Config:
        from_attributes = True
