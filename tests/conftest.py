import os

os.environ["DATABASE_URL"] = "sqlite:///./test_algomakers.db"
os.environ["ENVIRONMENT"] = "development"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["NOWPAYMENTS_API_KEY"] = "test-api-key"
os.environ["NOWPAYMENTS_IPN_KEY"] = "test-ipn-key"
os.environ["NOWPAYMENTS_API_URL"] = "https://api.nowpayments.test"
os.environ["NEXTAUTH_URL"] = "https://algomakers.test"

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session

from algomakers.core.cache import dashboard_cache, dashboard_versions
from algomakers.core.security import create_access_token
from algomakers.db.session import engine
from algomakers.main import app
from algomakers.models.pair_model import Pair
from algomakers.models.payment_model import Payment, PaymentItem, PaymentStatus, PaymentNetwork
from algomakers.models.subscription_model import Subscription, SubscriptionPeriod, SubscriptionStatus
from algomakers.models.user_model import User, UserRole


@pytest.fixture(autouse=True)
def setup_db():
    SQLModel.metadata.create_all(engine)
    dashboard_cache.clear()
    dashboard_versions.clear()
    yield
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_user(db):
    def _make_user(email="trader@example.com", role=UserRole.USER, password="Secret123"):
        user = User(
            email=email,
            name="Test Trader",
            hashed_password=User.get_password_hash(password),
            role=role,
            tradingview_username="trader_tv",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email="staff@example.com", role=UserRole.ADMIN)


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}


@pytest.fixture
def btc_pair(db):
    pair = Pair(
        symbol="BTCUSD",
        name="Bitcoin",
        timeframe="4H",
        price_one_month=30,
        discount_one_month=10,
        price_three_months=80,
    )
    db.add(pair)
    db.commit()
    db.refresh(pair)
    return pair


@pytest.fixture
def eth_pair(db):
    pair = Pair(symbol="ETHUSD", name="Ethereum", timeframe="1H", price_one_month=25)
    db.add(pair)
    db.commit()
    db.refresh(pair)
    return pair


@pytest.fixture
def pending_order(db, user, btc_pair):
    """A checkout as left by invoice creation: PENDING payment, item and subscription."""
    now = datetime.utcnow()
    subscription = Subscription(
        user_id=user.id,
        pair_id=btc_pair.id,
        period=SubscriptionPeriod.ONE_MONTH,
        start_date=now,
        expiry_date=SubscriptionPeriod.ONE_MONTH.expiry_from(now),
        base_price=30,
        discount_rate=10,
    )
    payment = Payment(
        user_id=user.id,
        total_amount=27,
        network=PaymentNetwork.USDT_TRC20,
        status=PaymentStatus.PENDING,
        order_id="order_1700000000000_abc123xyz",
        invoice_id="5077125051",
        invoice_url="https://nowpayments.io/payment/?iid=5077125051",
        expires_at=now + timedelta(minutes=20),
        order_data={"pair_ids": [btc_pair.id]},
    )
    db.add(subscription)
    db.add(payment)
    db.add(PaymentItem(
        payment_id=payment.id,
        pair_id=btc_pair.id,
        period=SubscriptionPeriod.ONE_MONTH,
        base_price=30,
        discount_rate=10,
        final_price=27,
    ))
    db.commit()
    return {"payment_id": payment.id, "subscription_id": subscription.id, "order_id": payment.order_id,
            "invoice_id": payment.invoice_id, "user_id": user.id}


@pytest.fixture
def headers_for():
    return auth_headers
