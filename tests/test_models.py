from datetime import datetime

import pytest

from algomakers.crud.payment_crud import client_status, generate_order_id, map_gateway_status
from algomakers.models.payment_model import PaymentNetwork, PaymentStatus
from algomakers.models.subscription_model import SubscriptionPeriod
from algomakers.schemas.payment_schema import NowPaymentsWebhook


def test_expiry_clamps_to_month_end():
    start = datetime(2024, 1, 31, 12, 30)

    assert SubscriptionPeriod.ONE_MONTH.expiry_from(start) == datetime(2024, 2, 29, 12, 30)
    assert SubscriptionPeriod.THREE_MONTHS.expiry_from(start) == datetime(2024, 4, 30, 12, 30)
    assert SubscriptionPeriod.TWELVE_MONTHS.expiry_from(start) == datetime(2025, 1, 31, 12, 30)


def test_expiry_crosses_year_boundary():
    assert SubscriptionPeriod.SIX_MONTHS.expiry_from(datetime(2024, 9, 15)) == datetime(2025, 3, 15)


@pytest.mark.parametrize("period, months, expected", [
    ("THREE_MONTHS", None, SubscriptionPeriod.THREE_MONTHS),
    ("six months", None, SubscriptionPeriod.SIX_MONTHS),
    (None, 12, SubscriptionPeriod.TWELVE_MONTHS),
    ("monthly", 3, SubscriptionPeriod.THREE_MONTHS),
    (None, None, SubscriptionPeriod.ONE_MONTH),
    (None, 7, SubscriptionPeriod.ONE_MONTH),
])
def test_period_from_plan(period, months, expected):
    assert SubscriptionPeriod.from_plan(period, months) == expected


def test_network_from_checkout_name():
    assert PaymentNetwork.from_network("TRC20") == PaymentNetwork.USDT_TRC20
    assert PaymentNetwork.from_network("bep20") == PaymentNetwork.USDT_BEP20
    assert PaymentNetwork.from_network("bitcoin") == PaymentNetwork.BTC
    assert PaymentNetwork.from_network("unknown") == PaymentNetwork.USDT_TRC20


def test_order_id_format():
    order_id = generate_order_id()
    prefix, millis, suffix = order_id.split("_")

    assert prefix == "order"
    assert millis.isdigit()
    assert len(suffix) == 9
    assert generate_order_id() != order_id


@pytest.mark.parametrize("gateway_status, expected", [
    ("waiting", PaymentStatus.PENDING),
    ("sending", PaymentStatus.PENDING),
    ("CONFIRMED", PaymentStatus.PAID),
    ("finished", PaymentStatus.PAID),
    ("partially_paid", PaymentStatus.UNDERPAID),
    ("failed", PaymentStatus.FAILED),
    ("expired", PaymentStatus.EXPIRED),
    ("something_new", PaymentStatus.PENDING),
    (None, PaymentStatus.PENDING),
])
def test_gateway_status_mapping(gateway_status, expected):
    assert map_gateway_status(gateway_status) == expected


def test_webhook_payload_coerces_numeric_ids():
    webhook = NowPaymentsWebhook(
        payment_id=6120338842,
        invoice_id=4522625843,
        payment_status="finished",
        order_id="order_1",
        pay_amount=27.1,
        fee={"currency": "usdttrc20"},
    )

    assert webhook.payment_id == "6120338842"
    assert webhook.invoice_id == "4522625843"
    assert webhook.paid_amount == 27.1
    assert webhook.event_key == "6120338842:finished"


@pytest.mark.parametrize("local_status, gateway_status, expected", [
    (PaymentStatus.PAID, "finished", "confirmed"),
    (PaymentStatus.PAID, "confirmed", "confirmed"),
    (PaymentStatus.PENDING, "confirming", "confirming"),
    (PaymentStatus.PENDING, "waiting", "pending"),
    (PaymentStatus.UNDERPAID, "partially_paid", "pending"),
    (PaymentStatus.EXPIRED, "refunded", "expired"),
    (PaymentStatus.FAILED, "failed", "failed"),
])
def test_client_status(local_status, gateway_status, expected):
    assert client_status(local_status, gateway_status) == expected


def test_partial_payment_event_key_includes_paid_amount():
    first = NowPaymentsWebhook(payment_id=1, payment_status="partially_paid", order_id="order_1", actually_paid=10)
    top_up = NowPaymentsWebhook(payment_id=1, payment_status="partially_paid", order_id="order_1", actually_paid=15)

    assert first.event_key == "1:partially_paid:10.0"
    assert first.event_key != top_up.event_key
