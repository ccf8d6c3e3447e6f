from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Union
from datetime import datetime

from algomakers.models.payment_model import PaymentNetwork, PaymentStatus
from algomakers.models.subscription_model import SubscriptionPeriod


class Plan(BaseModel):
    period: Optional[str] = None
    months: Optional[int] = Field(default=None, gt=0)
    price: Optional[float] = Field(default=None, ge=0)


class OrderItemInput(BaseModel):
    """A line item priced by the client, used instead of the pair's list price."""
    pair_id: str
    base_price: float = Field(ge=0)
    discount_rate: float = Field(default=0, ge=0, le=100)
    period: Optional[SubscriptionPeriod] = None


class OrderData(BaseModel):
    pair_ids: Optional[List[str]] = None
    plan: Optional[Plan] = None
    tradingview_username: Optional[str] = None
    duration: Optional[str] = None
    payment_items: Optional[List[OrderItemInput]] = None

    class Config:
        extra = "allow"


class CreateInvoiceRequest(BaseModel):
    amount: float = Field(gt=0)
    currency: str = Field(min_length=1)
    network: str = Field(min_length=1)
    pair_ids: Optional[List[str]] = None
    order_data: OrderData

    def resolved_pair_ids(self) -> List[str]:
        return self.pair_ids or self.order_data.pair_ids or []

    def resolved_period(self) -> SubscriptionPeriod:
        plan = self.order_data.plan
        if plan:
            return SubscriptionPeriod.from_plan(plan.period, plan.months)
        return SubscriptionPeriod.from_plan(self.order_data.duration)


class InvoicePair(BaseModel):
    pair_id: str
    symbol: str
    period: SubscriptionPeriod
    base_price: float
    discount_rate: float
    final_price: float


class InvoicePaymentSummary(BaseModel):
    id: str
    pairs: List[InvoicePair]


class InvoiceResponse(BaseModel):
    id: str
    order_id: str
    amount: float
    currency: str
    network: str
    status: str = "pending"
    expires_at: datetime
    invoice_url: str
    payment: InvoicePaymentSummary


class NowPaymentsWebhook(BaseModel):
    payment_id: Optional[str] = None
    payment_status: str
    order_id: Optional[str] = None
    invoice_id: Optional[str] = None
    purchase_id: Optional[str] = None
    pay_address: Optional[str] = None
    price_amount: Optional[float] = None
    price_currency: Optional[str] = None
    pay_amount: Optional[float] = None
    pay_currency: Optional[str] = None
    actually_paid: Optional[float] = None
    outcome_amount: Optional[float] = None
    outcome_currency: Optional[str] = None
    order_description: Optional[str] = None
    payin_hash: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    class Config:
        extra = "allow"

    @field_validator("payment_id", "invoice_id", "purchase_id", "order_id", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        # The gateway sends numeric ids
        return str(v) if v is not None else v

    @property
    def paid_amount(self) -> Optional[float]:
        return self.actually_paid or self.pay_amount

    @property
    def event_key(self) -> str:
        key = f"{self.payment_id or self.order_id}:{self.payment_status}"
        # Each top-up of an underpaid payment is a new event
        if self.payment_status.lower() == "partially_paid":
            key = f"{key}:{self.paid_amount}"
        return key


class PaymentStatusResponse(BaseModel):
    status: str
    invoice_id: str
    gateway_status: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    actually_paid: Optional[float] = None
    message: Optional[str] = None
    updated_at: datetime


class PaymentItemRead(BaseModel):
    id: str
    pair_id: str
    period: SubscriptionPeriod
    base_price: float
    discount_rate: float
    final_price: float

    class Config:
        from_attributes = True


class PaymentRead(BaseModel):
    id: str
    user_id: str
    total_amount: float
    network: PaymentNetwork
    status: PaymentStatus
    order_id: str
    invoice_id: Optional[str] = None
    invoice_url: Optional[str] = None
    payment_id: Optional[str] = None
    tx_hash: Optional[str] = None
    actually_paid: Optional[float] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentDetail(PaymentRead):
    order_data: Optional[dict] = None
    items: List[PaymentItemRead] = []


class PaymentStats(BaseModel):
    total_amount: float
    total_paid: float
    total_payments: int
    status_breakdown: dict


class PaymentListResponse(BaseModel):
    payments: List[PaymentRead]
    total_count: int
    stats: PaymentStats


class BillingStats(BaseModel):
    total_spent: float
    total_payments: int
    active_subscriptions: int
    pending_payments: int


class BillingResponse(BaseModel):
    payments: List[PaymentRead]
    stats: BillingStats
