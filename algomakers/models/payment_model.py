from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid

from algomakers.models.subscription_model import SubscriptionPeriod


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    UNDERPAID = "UNDERPAID"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"


class PaymentNetwork(str, Enum):
    USDT = "USDT"
    BTC = "BTC"
    ETH = "ETH"
    USDT_TRC20 = "USDT_TRC20"
    USDT_ERC20 = "USDT_ERC20"
    USDT_BEP20 = "USDT_BEP20"

    @classmethod
    def from_network(cls, network: str) -> "PaymentNetwork":
        return {
            "trc20": cls.USDT_TRC20,
            "erc20": cls.USDT_ERC20,
            "bep20": cls.USDT_BEP20,
            "usdt": cls.USDT,
            "btc": cls.BTC,
            "bitcoin": cls.BTC,
            "eth": cls.ETH,
            "ethereum": cls.ETH,
        }.get(network.lower(), cls.USDT_TRC20)


class Payment(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    total_amount: float = Field(gt=0)
    network: PaymentNetwork = Field(default=PaymentNetwork.USDT_TRC20)
    status: PaymentStatus = Field(default=PaymentStatus.PENDING, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    # Canonical correlation id, sent to the gateway and echoed on every callback
    order_id: str = Field(unique=True, index=True)

    # NOWPayments-specific fields
    invoice_id: Optional[str] = Field(default=None, index=True)
    invoice_url: Optional[str] = None
    payment_id: Optional[str] = Field(default=None, index=True)
    pay_currency: Optional[str] = None
    tx_hash: Optional[str] = None
    actually_paid: Optional[float] = None

    order_data: Optional[dict] = Field(default=None, sa_column=Column(JSON))


class PaymentItem(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    payment_id: str = Field(foreign_key="payment.id", index=True)
    pair_id: str = Field(foreign_key="pair.id", index=True)
    period: SubscriptionPeriod = Field(default=SubscriptionPeriod.ONE_MONTH)
    base_price: float = Field(default=0, ge=0)
    discount_rate: float = Field(default=0, ge=0)
    final_price: float = Field(default=0, ge=0)
