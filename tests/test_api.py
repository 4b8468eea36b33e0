import asyncio
import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from app.config import settings
from app.earnings_service import promote_pending_to_available
from app.order_split_service import split_order
from app.retry import RetryPolicy
from app.settings_service import PayoutConfig, default_commission_config
from models.orders import OrderStatus
from models.payouts import Payout, PayoutStatus
from models.seller_earnings import EarningStatus, SellerEarning
from models.sub_orders import SubOrder
from models.users import UserRole
from routers import stripe_webhook as stripe_webhook_router

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def webhook(client, monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", WEBHOOK_SECRET)

    def _post(event_type, intent, secret=WEBHOOK_SECRET):
        payload = json.dumps({"id": "evt_test", "type": event_type, "data": {"object": intent}})
        timestamp = int(time.time())
        signature = hmac.new(
            secret.encode("utf-8"),
            f"{timestamp}.{payload}".encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return client.post(
            "/webhooks/stripe",
            content=payload,
            headers={"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"},
        )

    return _post


@pytest.fixture
def seller(make_user):
    return make_user(UserRole.SELLER)


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)


def _succeeded(order):
    return {"id": order.payment_intent_id, "object": "payment_intent", "amount_received": int(order.amount)}


def _make_available(db):
    promote_pending_to_available(db, now=datetime.now(timezone.utc) + timedelta(days=30))


# ---------------------------------------------------------
# Health
# ---------------------------------------------------------
def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


# ---------------------------------------------------------
# Checkout
# ---------------------------------------------------------
def test_checkout_snapshots_basket(client, make_user, make_product):
    seller_a = make_user(UserRole.SELLER)
    seller_b = make_user(UserRole.SELLER)
    mug = make_product(seller_a, price=1000, title="Mug")
    print_ = make_product(seller_b, price=2500, title="Print")

    r = client.post(
        "/checkout/orders",
        json={
            "guest_email": "buyer@example.com",
            "lines": [{"product_id": mug.id, "quantity": 2}, {"product_id": print_.id, "quantity": 1}],
        },
    )

    assert r.status_code == 201, r.text
    body = r.json()
    assert body["client_secret"] is None
    assert body["order"]["status"] == "pending_payment"
    assert body["order"]["amount"] == 4500
    assert [line["seller_id"] for line in body["order"]["basket"]] == [seller_a.id, seller_b.id]


def test_checkout_rejects_unknown_product(client):
    r = client.post(
        "/checkout/orders",
        json={"guest_email": "buyer@example.com", "lines": [{"product_id": 9999, "quantity": 1}]},
    )
    assert r.status_code == 400


def test_checkout_requires_exactly_one_buyer(client, make_user, make_product):
    product = make_product(make_user(UserRole.SELLER))
    r = client.post("/checkout/orders", json={"lines": [{"product_id": product.id, "quantity": 1}]})
    assert r.status_code == 400


# ---------------------------------------------------------
# Stripe webhook
# ---------------------------------------------------------
def test_webhook_marks_paid_and_splits(db, webhook, make_user, make_order):
    seller_a = make_user(UserRole.SELLER)
    seller_b = make_user(UserRole.SELLER)
    order = make_order([(seller_a.id, 1000, 2), (seller_b.id, 1000, 1)], status=OrderStatus.PENDING_PAYMENT)

    r = webhook("payment_intent.succeeded", _succeeded(order))

    assert r.status_code == 200, r.text
    body = r.json()
    assert body["split"] == "ok"
    assert body["was_already_paid"] is False
    assert len(body["sub_order_ids"]) == 2

    db.refresh(order)
    assert order.status == OrderStatus.PAID
    assert order.paid_at is not None
    assert db.query(SellerEarning).count() == 2


def test_webhook_redelivery_does_not_split_twice(db, webhook, seller, make_order):
    order = make_order([(seller.id, 1000, 1)], status=OrderStatus.PENDING_PAYMENT)

    first = webhook("payment_intent.succeeded", _succeeded(order)).json()
    second = webhook("payment_intent.succeeded", _succeeded(order)).json()

    assert second["was_already_paid"] is True
    assert second["sub_order_ids"] == first["sub_order_ids"]
    assert db.query(SubOrder).count() == 1
    assert db.query(SellerEarning).count() == 1


def test_webhook_bad_signature(db, webhook, seller, make_order):
    order = make_order([(seller.id, 1000, 1)], status=OrderStatus.PENDING_PAYMENT)

    r = webhook("payment_intent.succeeded", _succeeded(order), secret="whsec_wrong")

    assert r.status_code == 400
    db.refresh(order)
    assert order.status == OrderStatus.PENDING_PAYMENT


def test_webhook_missing_signature(client, monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", WEBHOOK_SECRET)
    r = client.post("/webhooks/stripe", content="{}")
    assert r.status_code == 400


def test_webhook_amount_mismatch_is_not_paid(db, webhook, seller, make_order):
    order = make_order([(seller.id, 1000, 1)], status=OrderStatus.PENDING_PAYMENT)
    intent = _succeeded(order)
    intent["amount_received"] = 1

    r = webhook("payment_intent.succeeded", intent)

    assert r.status_code == 200
    assert r.json()["ignored"] == "amount_mismatch"
    db.refresh(order)
    assert order.status == OrderStatus.PENDING_PAYMENT
    assert db.query(SubOrder).count() == 0


def test_webhook_unknown_intent_is_ignored(webhook):
    r = webhook("payment_intent.succeeded", {"id": "pi_unknown", "amount_received": 100})
    assert r.status_code == 200
    assert r.json()["ignored"] == "order not found"


def test_webhook_ignores_other_events(webhook):
    r = webhook("charge.refunded", {"id": "ch_1"})
    assert r.status_code == 200
    assert r.json()["ignored"] == "charge.refunded"


def test_webhook_payment_failed(db, webhook, seller, make_order):
    order = make_order([(seller.id, 1000, 1)], status=OrderStatus.PENDING_PAYMENT)

    r = webhook("payment_intent.payment_failed", {"id": order.payment_intent_id})

    assert r.json()["status"] == "failed"
    db.refresh(order)
    assert order.status == OrderStatus.FAILED


def test_missing_seller_quarantines_then_admin_resplits(
    db, client, webhook, seller, admin, make_order, token_for
):
    order = make_order([(seller.id, 1000, 1), (None, 500, 1)], status=OrderStatus.PENDING_PAYMENT)

    body = webhook("payment_intent.succeeded", _succeeded(order)).json()

    assert body["split"] == "failed"
    assert body["error"] == "MissingSellerIdError"
    db.refresh(order)
    assert order.status == OrderStatus.PAID
    assert order.split_error.startswith("MissingSellerIdError")
    assert db.query(SubOrder).count() == 0

    quarantined = client.get("/admin/orders/quarantined", headers=token_for(admin)).json()
    assert [o["id"] for o in quarantined] == [order.id]

    # Still broken: stays quarantined
    r = client.post(f"/admin/orders/{order.id}/split", headers=token_for(admin))
    assert r.status_code == 422

    order.basket = [dict(line, seller_id=seller.id) for line in order.basket]
    db.commit()

    r = client.post(f"/admin/orders/{order.id}/split", headers=token_for(admin))
    assert r.status_code == 200, r.text
    assert len(r.json()["sub_orders"]) == 1
    db.refresh(order)
    assert order.split_error is None


def test_admin_split_requires_paid_order(client, admin, seller, make_order, token_for):
    order = make_order([(seller.id, 1000, 1)], status=OrderStatus.PENDING_PAYMENT)
    r = client.post(f"/admin/orders/{order.id}/split", headers=token_for(admin))
    assert r.status_code == 409

    r = client.post("/admin/orders/9999/split", headers=token_for(admin))
    assert r.status_code == 404


# ---------------------------------------------------------
# Seller earnings & payouts
# ---------------------------------------------------------
@pytest.fixture
def funded_seller(db, webhook, seller, make_order):
    """Seller with 8500 cents available (10000 gross at the default 15%)."""
    order = make_order([(seller.id, 10000, 1)], status=OrderStatus.PENDING_PAYMENT)
    webhook("payment_intent.succeeded", _succeeded(order))
    _make_available(db)
    return seller


def test_seller_dashboard(client, funded_seller, token_for):
    r = client.get("/seller/earnings", headers=token_for(funded_seller))

    assert r.status_code == 200, r.text
    body = r.json()
    assert body["balance"]["available"] == 8500
    assert body["balance"]["commission"] == 1500
    assert len(body["earnings"]) == 1
    assert body["earnings"][0]["status"] == "available"
    assert body["payouts"] == []


def test_seller_dashboard_requires_seller_token(client, admin, token_for):
    assert client.get("/seller/earnings").status_code in (401, 403)
    assert client.get("/seller/earnings", headers=token_for(admin)).status_code == 403
    assert client.get("/seller/earnings", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_payout_request_errors(client, funded_seller, token_for):
    headers = token_for(funded_seller)

    r = client.post("/seller/payouts/request", json={"amount": 10000, "method": "bank_transfer"}, headers=headers)
    assert r.status_code == 409
    assert r.json()["detail"]["available"] == 8500

    r = client.post("/seller/payouts/request", json={"amount": 500, "method": "bank_transfer"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "BelowMinimumPayoutError"

    r = client.post("/seller/payouts/request", json={"amount": 0, "method": "bank_transfer"}, headers=headers)
    assert r.status_code == 422


def test_payout_full_cycle(db, client, funded_seller, admin, token_for):
    seller_headers = token_for(funded_seller)
    admin_headers = token_for(admin)

    r = client.post(
        "/seller/payouts/request",
        json={"amount": 5000, "method": "paypal", "account_details": {"email": "seller@example.com"}},
        headers=seller_headers,
    )
    assert r.status_code == 200, r.text
    payout = r.json()
    assert payout["status"] == "pending_approval"
    assert sum(item["amount"] for item in payout["items"]) == 5000

    balance = client.get("/seller/earnings", headers=seller_headers).json()["balance"]
    assert (balance["available"], balance["reserved"]) == (3500, 5000)

    pending = client.get("/admin/payouts", params={"status_filter": "pending_approval"}, headers=admin_headers)
    assert [p["id"] for p in pending.json()] == [payout["id"]]

    r = client.post(f"/admin/payouts/{payout['id']}/approve", headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "approved"

    r = client.post(f"/admin/payouts/{payout['id']}/approve", headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["detail"]["current_status"] == "approved"

    r = client.post(
        f"/admin/payouts/{payout['id']}/complete",
        json={"transfer_reference": "PAYPAL-123"},
        headers=admin_headers,
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "completed"
    assert r.json()["transfer_reference"] == "PAYPAL-123"

    balance = client.get("/seller/earnings", headers=seller_headers).json()["balance"]
    assert (balance["available"], balance["reserved"], balance["paid"]) == (3500, 0, 5000)

    payouts = client.get("/seller/payouts", headers=seller_headers).json()
    assert [p["status"] for p in payouts] == ["completed"]


def test_admin_reject(db, client, funded_seller, admin, token_for):
    r = client.post(
        "/seller/payouts/request",
        json={"amount": 8500, "method": "bank_transfer"},
        headers=token_for(funded_seller),
    )
    payout_id = r.json()["id"]

    r = client.post(f"/admin/payouts/{payout_id}/reject", json={"reason": "KYC missing"}, headers=token_for(admin))

    assert r.status_code == 200
    assert r.json()["failure_reason"] == "KYC missing"
    assert db.query(Payout).one().status == PayoutStatus.REJECTED
    earning = db.query(SellerEarning).one()
    assert (int(earning.reserved_amount), earning.status) == (0, EarningStatus.AVAILABLE)


def test_admin_unknown_payout(client, admin, token_for):
    assert client.post("/admin/payouts/999/approve", headers=token_for(admin)).status_code == 404
    assert client.post("/admin/payouts/999/complete", json={}, headers=token_for(admin)).status_code == 404


# ---------------------------------------------------------
# Admin settings & sweep
# ---------------------------------------------------------
def test_commission_settings_roundtrip(client, admin, token_for):
    headers = token_for(admin)

    r = client.get("/admin/commission-settings", headers=headers)
    assert r.status_code == 200
    assert float(r.json()["default_rate"]) == 15.0

    r = client.put(
        "/admin/commission-settings",
        json={"default_rate": "12.5", "seller_custom_rates": {"42": "5"}},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    assert float(r.json()["default_rate"]) == 12.5
    assert float(r.json()["seller_custom_rates"]["42"]) == 5.0

    r = client.put("/admin/commission-settings", json={"seller_custom_rates": {"42": "140"}}, headers=headers)
    assert r.status_code == 400


def test_new_commission_rate_applies_to_next_split(db, client, webhook, seller, admin, make_order, token_for):
    client.put("/admin/commission-settings", json={"default_rate": "20"}, headers=token_for(admin))
    order = make_order([(seller.id, 10000, 1)], status=OrderStatus.PENDING_PAYMENT)

    webhook("payment_intent.succeeded", _succeeded(order))

    assert int(db.query(SellerEarning).one().net_amount) == 8000


def test_payout_settings_roundtrip(client, admin, token_for):
    headers = token_for(admin)

    r = client.put("/admin/payout-settings", json={"minimum_payout_amount": 5000}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["minimum_payout_amount"] == 5000
    assert r.json()["holding_period_days"] == 7

    r = client.put(
        "/admin/payout-settings",
        json={"minimum_payout_amount": 10, "maximum_payout_amount": 5},
        headers=headers,
    )
    assert r.status_code in (400, 422)


def test_admin_routes_reject_seller_token(client, seller, token_for):
    assert client.get("/admin/payouts", headers=token_for(seller)).status_code == 403
    assert client.post("/admin/earnings/process", headers=token_for(seller)).status_code == 403


def test_manual_sweep(db, client, admin, seller, make_order, token_for):
    order = make_order([(seller.id, 1000, 1)])

    split_order(
        db,
        order.id,
        default_commission_config(),
        PayoutConfig(holding_period_days=0, minimum_payout_amount=0, maximum_payout_amount=100),
        now=datetime.now(timezone.utc) - timedelta(minutes=1),
    )

    r = client.post("/admin/earnings/process", headers=token_for(admin))

    assert r.status_code == 200
    assert r.json()["count"] == 1
    assert r.json()["total_amount"] == 850


# ---------------------------------------------------------
# Webhook plumbing
# ---------------------------------------------------------
def test_webhook_db_work_runs_off_the_event_loop(monkeypatch, webhook, seller, make_order):
    order = make_order([(seller.id, 1000, 1)], status=OrderStatus.PENDING_PAYMENT)
    seen = []

    def confirm(db, intent_id, amount_received=None):
        try:
            asyncio.get_running_loop()
            seen.append("event loop")
        except RuntimeError:
            seen.append("worker thread")
        return {"ok": True, "status": "paid"}

    monkeypatch.setattr(stripe_webhook_router, "confirm_payment", confirm)

    r = webhook("payment_intent.succeeded", _succeeded(order))

    assert r.status_code == 200
    assert seen == ["worker thread"]


def test_webhook_answers_503_when_database_stays_down(monkeypatch, webhook, seller, make_order):
    order = make_order([(seller.id, 1000, 1)], status=OrderStatus.PENDING_PAYMENT)
    calls = []

    def down(db, intent_id, amount_received=None):
        calls.append(intent_id)
        raise OperationalError("UPDATE orders", {}, Exception("server closed the connection"))

    monkeypatch.setattr(stripe_webhook_router, "confirm_payment", down)
    monkeypatch.setattr(stripe_webhook_router, "WEBHOOK_RETRY", RetryPolicy(max_attempts=3, backoff_seconds=0))

    r = webhook("payment_intent.succeeded", _succeeded(order))

    assert r.status_code == 503
    assert calls == [order.payment_intent_id] * 3


def test_webhook_signed_but_not_json(client, monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", WEBHOOK_SECRET)
    payload = "not json"
    timestamp = int(time.time())
    signature = hmac.new(
        WEBHOOK_SECRET.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()

    r = client.post(
        "/webhooks/stripe",
        content=payload,
        headers={"Stripe-Signature": f"t={timestamp},v1={signature}"},
    )

    assert r.status_code == 400


# ---------------------------------------------------------
# Refunds
# ---------------------------------------------------------
def test_admin_refund(db, client, funded_seller, admin, token_for):
    order_id = db.query(SellerEarning).one().order_id

    r = client.post(
        f"/admin/orders/{order_id}/refunds",
        json={"seller_id": funded_seller.id, "amount": 2000, "reason": "returned"},
        headers=token_for(admin),
    )

    assert r.status_code == 200, r.text
    body = r.json()
    assert (body["adjusted"], body["shortfall"], body["net_amount"]) == (2000, 0, 6500)
    assert body["earning_status"] == "available"
    assert body["order_status"] == "partially_refunded"

    balance = client.get("/seller/earnings", headers=token_for(funded_seller)).json()["balance"]
    assert (balance["available"], balance["refunded"]) == (6500, 2000)


def test_admin_refund_errors(client, admin, seller, make_order, token_for):
    headers = token_for(admin)

    r = client.post("/admin/orders/9999/refunds", json={"seller_id": seller.id, "amount": 100}, headers=headers)
    assert r.status_code == 404

    unpaid = make_order([(seller.id, 1000, 1)], status=OrderStatus.PENDING_PAYMENT)
    r = client.post(f"/admin/orders/{unpaid.id}/refunds", json={"seller_id": seller.id, "amount": 100}, headers=headers)
    assert r.status_code == 409

    r = client.post(f"/admin/orders/{unpaid.id}/refunds", json={"seller_id": seller.id, "amount": 0}, headers=headers)
    assert r.status_code == 422

    r = client.post(f"/admin/orders/{unpaid.id}/refunds", json={"seller_id": seller.id, "amount": 100}, headers=token_for(seller))
    assert r.status_code == 403
