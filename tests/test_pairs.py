from sqlmodel import Session, select

from algomakers.db.session import engine
from algomakers.models.audit_model import AuditLog, AuditAction


def test_list_active_pairs(client, btc_pair, eth_pair, db):
    eth_pair.is_active = False
    db.add(eth_pair)
    db.commit()

    response = client.get("/api/pairs")

    assert response.status_code == 200
    assert [p["symbol"] for p in response.json()] == ["BTCUSD"]


def test_staff_creates_pair(client, admin, headers_for):
    response = client.post(
        "/api/pairs",
        json={"symbol": "solusd", "name": "Solana", "price_one_month": 20, "discount_one_month": 5},
        headers=headers_for(admin),
    )

    assert response.status_code == 201
    assert response.json()["symbol"] == "SOLUSD"
    with Session(engine) as session:
        entry = session.exec(select(AuditLog).where(AuditLog.action == AuditAction.CREATE_PAIR)).one()
        assert entry.actor_id == admin.id


def test_duplicate_pair(client, admin, btc_pair, headers_for):
    response = client.post("/api/pairs", json={"symbol": "btcusd"}, headers=headers_for(admin))

    assert response.status_code == 409


def test_users_cannot_create_pairs(client, user, headers_for):
    response = client.post("/api/pairs", json={"symbol": "SOLUSD"}, headers=headers_for(user))

    assert response.status_code == 403


def test_inactive_pair_cannot_be_bought(client, user, btc_pair, db, headers_for):
    btc_pair.is_active = False
    db.add(btc_pair)
    db.commit()

    response = client.post(
        "/api/payments/create-invoice",
        json={"amount": 30, "currency": "usd", "network": "trc20", "pair_ids": ["BTCUSD"], "order_data": {}},
        headers=headers_for(user),
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Pair is not available for purchase: BTCUSD"
