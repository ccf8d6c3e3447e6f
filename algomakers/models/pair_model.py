from datetime import datetime
from typing import Optional, Tuple
from sqlmodel import SQLModel, Field
import uuid

from algomakers.models.subscription_model import SubscriptionPeriod


class Pair(SQLModel, table=True):

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    symbol: str = Field(unique=True, index=True)
    name: Optional[str] = None
    timeframe: Optional[str] = None
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    price_one_month: float = Field(default=0, ge=0)
    price_three_months: float = Field(default=0, ge=0)
    price_six_months: float = Field(default=0, ge=0)
    price_twelve_months: float = Field(default=0, ge=0)
    # percent
    discount_one_month: float = Field(default=0, ge=0, le=100)
    discount_three_months: float = Field(default=0, ge=0, le=100)
    discount_six_months: float = Field(default=0, ge=0, le=100)
    discount_twelve_months: float = Field(default=0, ge=0, le=100)

    def price_for(self, period: SubscriptionPeriod) -> Tuple[float, float]:
        """Return (base price, discount percent) for a subscription period."""
        suffix = {
            SubscriptionPeriod.ONE_MONTH: "one_month",
            SubscriptionPeriod.THREE_MONTHS: "three_months",
            SubscriptionPeriod.SIX_MONTHS: "six_months",
            SubscriptionPeriod.TWELVE_MONTHS: "twelve_months",
        }[period]
        return getattr(self, f"price_{suffix}"), getattr(self, f"discount_{suffix}")
