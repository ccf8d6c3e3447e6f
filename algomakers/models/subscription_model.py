import calendar
from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field
import uuid


class SubscriptionPeriod(str, Enum):
    ONE_MONTH = "ONE_MONTH"
    THREE_MONTHS = "THREE_MONTHS"
    SIX_MONTHS = "SIX_MONTHS"
    TWELVE_MONTHS = "TWELVE_MONTHS"

    @property
    def months(self) -> int:
        return {
            SubscriptionPeriod.ONE_MONTH: 1,
            SubscriptionPeriod.THREE_MONTHS: 3,
            SubscriptionPeriod.SIX_MONTHS: 6,
            SubscriptionPeriod.TWELVE_MONTHS: 12,
        }[self]

    @classmethod
    def from_plan(cls, period: Optional[str] = None, months: Optional[int] = None) -> "SubscriptionPeriod":
        """Resolve a plan's period, accepting enum names or a month count."""
        if period:
            normalized = period.strip().upper().replace(" ", "_").replace("-", "_")
            if normalized in cls.__members__:
                return cls[normalized]
        by_months = {member.months: member for member in cls}
        if months in by_months:
            return by_months[months]
        return cls.ONE_MONTH

    def expiry_from(self, start: datetime) -> datetime:
        month_index = start.month - 1 + self.months
        year = start.year + month_index // 12
        month = month_index % 12 + 1
        day = min(start.day, calendar.monthrange(year, month)[1])
        return start.replace(year=year, month=month, day=day)


class SubscriptionStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    PAID = "PAID"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"


class InviteStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    COMPLETED = "COMPLETED"


class Subscription(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    pair_id: str = Field(foreign_key="pair.id", index=True)
    period: SubscriptionPeriod = Field(default=SubscriptionPeriod.ONE_MONTH)
    start_date: datetime = Field(default_factory=datetime.utcnow)
    expiry_date: datetime
    status: SubscriptionStatus = Field(default=SubscriptionStatus.PENDING, index=True)
    invite_status: InviteStatus = Field(default=InviteStatus.PENDING)
    base_price: float = Field(default=0, ge=0)
    discount_rate: float = Field(default=0, ge=0)
    # Set once the payment succeeds
    payment_id: Optional[str] = Field(default=None, foreign_key="payment.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
