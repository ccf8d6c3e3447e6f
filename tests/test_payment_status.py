import pytest
from sqlmodel import Session, select

import algomakers.routers.payment_router as payment_router
from algomakers.core.cache import dashboard_cache, set_cached_dashboard
from algomakers.db.session import engine
from algomakers.models.audit_model import AuditLog, AuditAction
from algomakers.models.payment_model import Payment, PaymentStatus
from algomakers.models.subscription_model import Subscription, SubscriptionStatus


def gateway_result(payment_status, **extra):
    result = {
        "success": True,
        "payment_id": "6120338842",
        "payment_status": payment_status,
        "pay_amount": 27.1,
        "pay_currency": "usdttrc20",
        "actually_paid": 0,
        "tx_hash": None,
        "data": {},
    }
    result.update(extra)
    return result


@pytest.fixture
def poll(mocker):
    def _poll(result):
        return mocker.patch.object(payment_router.nowpayments_service, "get_payment_status", return_value=result)
    return _poll


def test_unknown_invoice(client, user, headers_for, poll):
    gateway = poll(gateway_result("finished"))

    response = client.get("/api/payments/status/999999", headers=headers_for(user))

    assert response.status_code == 404
    assert response.json() == {"status": "not_found", "invoice_id": "999999"}
    gateway.assert_not_called()


def test_finished_payment_is_reconciled(client, user, pending_order, headers_for, poll):
    gateway = poll(gateway_result("finished", actually_paid=27.1, tx_hash="0xbeef"))
    set_cached_dashboard(user.id, {"total_spent": 0})

    response = client.get(f"/api/payments/status/{pending_order['invoice_id']}", headers=headers_for(user))

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "confirmed"
    assert body["gateway_status"] == "finished"
    assert body["invoice_id"] == pending_order["invoice_id"]
    assert body["actually_paid"] == 27.1
    # No gateway payment id yet, so the invoice id is polled
    gateway.assert_called_once_with(pending_order["invoice_id"])
    assert user.id not in dashboard_cache

    with Session(engine) as session:
        payment = session.get(Payment, pending_order["payment_id"])
        assert payment.status == PaymentStatus.PAID
        assert payment.tx_hash == "0xbeef"
        assert payment.payment_id == "6120338842"
        subscription = session.get(Subscription, pending_order["subscription_id"])
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.payment_id == payment.id
        audit = session.exec(select(AuditLog).where(AuditLog.action == AuditAction.PROCESS_PAYMENT)).one()
        assert audit.details["source"] == "status_poll"


def test_unchanged_status_does_not_write(client, user, pending_order, headers_for, poll):
    poll(gateway_result("waiting"))
    set_cached_dashboard(user.id, {"total_spent": 0})

    response = client.get(f"/api/payments/status/{pending_order['invoice_id']}", headers=headers_for(user))

    assert response.status_code == 200
    assert response.json()["status"] == "pending"
    assert user.id in dashboard_cache
    with Session(engine) as session:
        payment = session.get(Payment, pending_order["payment_id"])
        assert payment.updated_at is None
        assert session.exec(select(AuditLog)).all() == []


@pytest.mark.parametrize("gateway_status, expected, local_status", [
    ("sending", "pending", PaymentStatus.PENDING),
    ("confirming", "confirming", PaymentStatus.PENDING),
    ("partially_paid", "pending", PaymentStatus.UNDERPAID),
    ("failed", "failed", PaymentStatus.FAILED),
    ("refunded", "expired", PaymentStatus.EXPIRED),
])
def test_gateway_statuses_are_mapped(
    client, user, pending_order, headers_for, poll, gateway_status, expected, local_status
):
    poll(gateway_result(gateway_status))

    response = client.get(f"/api/payments/status/{pending_order['invoice_id']}", headers=headers_for(user))

    assert response.json()["status"] == expected
    with Session(engine) as session:
        assert session.get(Payment, pending_order["payment_id"]).status == local_status
        subscription = session.get(Subscription, pending_order["subscription_id"])
        assert subscription.status == SubscriptionStatus.PENDING


def test_gateway_unreachable_reports_pending(client, user, pending_order, headers_for, poll):
    poll({"success": False, "error": "Connection error", "data": None})

    response = client.get(f"/api/payments/status/{pending_order['invoice_id']}", headers=headers_for(user))

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "pending"
    assert body["message"] == "Payment not yet initiated"
    with Session(engine) as session:
        assert session.get(Payment, pending_order["payment_id"]).status == PaymentStatus.PENDING


def test_known_gateway_payment_id_is_polled(client, user, pending_order, headers_for, poll, db):
    payment = db.get(Payment, pending_order["payment_id"])
    payment.payment_id = "6120338842"
    db.add(payment)
    db.commit()
    gateway = poll(gateway_result("waiting"))

    client.get(f"/api/payments/status/{pending_order['invoice_id']}", headers=headers_for(user))

    gateway.assert_called_once_with("6120338842")


def test_other_users_payment_is_forbidden(client, make_user, pending_order, headers_for, poll):
    gateway = poll(gateway_result("finished"))
    stranger = make_user(email="stranger@example.com")

    response = client.get(f"/api/payments/status/{pending_order['invoice_id']}", headers=headers_for(stranger))

    assert response.status_code == 403
    gateway.assert_not_called()


def test_staff_can_poll_any_payment(client, admin, pending_order, headers_for, poll):
    poll(gateway_result("finished"))

    response = client.get(f"/api/payments/status/{pending_order['invoice_id']}", headers=headers_for(admin))

    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"


def test_status_requires_authentication(client, pending_order):
    response = client.get(f"/api/payments/status/{pending_order['invoice_id']}")

    assert response.status_code == 401


def test_paid_payment_keeps_reporting_confirmed(client, user, pending_order, headers_for, poll):
    poll(gateway_result("finished"))
    client.get(f"/api/payments/status/{pending_order['invoice_id']}", headers=headers_for(user))

    response = client.get(f"/api/payments/status/{pending_order['invoice_id']}", headers=headers_for(user))

    assert response.json()["status"] == "confirmed"
    with Session(engine) as session:
        audits = session.exec(select(AuditLog).where(AuditLog.action == AuditAction.PROCESS_PAYMENT)).all()
        assert len(audits) == 1


def test_status_without_api_key(client, user, pending_order, headers_for, poll, mocker):
    gateway = poll(gateway_result("finished"))
    mocker.patch.object(payment_router.nowpayments_service, "api_key", None)

    response = client.get(f"/api/payments/status/{pending_order['invoice_id']}", headers=headers_for(user))

    assert response.status_code == 500
    assert response.json()["detail"] == "NOWPayments API key not configured"
    gateway.assert_not_called()
    with Session(engine) as session:
        assert session.get(Payment, pending_order["payment_id"]).status == PaymentStatus.PENDING
