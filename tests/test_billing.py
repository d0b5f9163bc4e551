import json
import time
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import stripe
from httpx import AsyncClient

from greekdash.config import settings
from greekdash.models import AuditLog, DuesPayment, Subscription, Transaction
from greekdash.services.billing_service import map_subscription_status, plan_from_price_id


@pytest.fixture
def stripe_settings(monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test")
    monkeypatch.setattr(settings, "STRIPE_BASIC_PRICE_ID", "price_basic_monthly")
    monkeypatch.setattr(settings, "STRIPE_PRO_PRICE_ID", "price_pro_monthly")


@pytest.fixture
def stripe_calls(monkeypatch, stripe_settings):
    """Remplace les appels réseau Stripe et enregistre leurs arguments"""
    calls = {}

    def fake_customer_create(**kwargs):
        calls["customer"] = kwargs
        return {"id": "cus_test_1"}

    def fake_checkout_create(**kwargs):
        calls["checkout"] = kwargs
        return {"id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}

    def fake_portal_create(**kwargs):
        calls["portal"] = kwargs
        return {"id": "bps_test_1", "url": "https://billing.stripe.test/session"}

    monkeypatch.setattr(stripe.Customer, "create", fake_customer_create)
    monkeypatch.setattr(stripe.checkout.Session, "create", fake_checkout_create)
    monkeypatch.setattr(stripe.billing_portal.Session, "create", fake_portal_create)
    return calls


def _send_event(monkeypatch, event: dict):
    monkeypatch.setattr(stripe.Webhook, "construct_event", lambda payload, sig, secret: event)


def _signed(payload: str, secret: str = "whsec_test") -> dict:
    """En-tête Stripe-Signature valide pour le corps donné"""
    timestamp = int(time.time())
    signature = stripe.WebhookSignature._compute_signature(f"{timestamp}.{payload}", secret)
    return {"stripe-signature": f"t={timestamp},v1={signature}"}


# ============== Abonnement ==============

@pytest.mark.asyncio
async def test_billing_overview(client: AsyncClient, owner_headers, member, make_user, add_member, chapter, make_event):
    add_member(chapter, make_user("pledge@example.com"), "PENDING_MEMBER")
    make_event(chapter)

    response = await client.get("/api/v1/chapters/alpha/billing/", headers=owner_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["plan"] == "FREE"
    assert data["status"] == "ACTIVE"
    assert data["has_customer"] is False
    assert data["features"]["basic_finance"] is True
    assert data["features"]["budgeting"] is False
    assert data["stats"] == {"member_count": 2, "pending_member_count": 1, "event_count": 1}


@pytest.mark.asyncio
async def test_billing_overview_admin_only(client: AsyncClient, member_headers):
    response = await client.get("/api/v1/chapters/alpha/billing/", headers=member_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_upgrade_returns_checkout_url(client: AsyncClient, db_session, chapter, owner_headers, stripe_calls):
    response = await client.post("/api/v1/chapters/alpha/billing/", headers=owner_headers, json={"plan": "PRO"})

    assert response.status_code == 200
    assert response.json()["checkout_url"] == "https://checkout.stripe.test/cs_test_1"
    assert stripe_calls["customer"]["email"] == "owner@example.com"
    assert stripe_calls["checkout"]["mode"] == "subscription"
    assert stripe_calls["checkout"]["line_items"] == [{"price": "price_pro_monthly", "quantity": 1}]

    db_session.refresh(chapter)
    assert chapter.stripe_customer_id == "cus_test_1"
    assert chapter.plan == "FREE"


@pytest.mark.asyncio
async def test_plan_change_requires_owner(client: AsyncClient, admin_headers, stripe_calls):
    response = await client.post("/api/v1/chapters/alpha/billing/", headers=admin_headers, json={"plan": "BASIC"})

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_downgrade_to_free(client: AsyncClient, db_session, chapter, owner_headers, set_plan):
    set_plan(chapter, "PRO")

    response = await client.post("/api/v1/chapters/alpha/billing/", headers=owner_headers, json={"plan": "FREE"})

    assert response.status_code == 200
    assert response.json()["plan"] == "FREE"
    assert response.json()["checkout_url"] is None

    transaction = db_session.query(Transaction).filter(Transaction.chapter_id == chapter.id).one()
    assert transaction.type == "OTHER"
    assert Decimal(transaction.amount) == Decimal("0")
    assert transaction.meta == {"kind": "PLAN_CHANGE", "from": "PRO", "to": "FREE"}

    audit = db_session.query(AuditLog).filter(AuditLog.action == "CHAPTER_SUBSCRIPTION_CHANGED").one()
    assert audit.target_type == "SUBSCRIPTION"


@pytest.mark.asyncio
async def test_checkout_without_stripe_config(client: AsyncClient, owner_headers):
    response = await client.post(
        "/api/v1/chapters/alpha/billing/checkout",
        headers=owner_headers,
        json={"plan_id": "basic"},
    )

    assert response.status_code == 500
    assert response.json()["code"] == "BILLING_NOT_CONFIGURED"


@pytest.mark.asyncio
async def test_checkout_rejects_unknown_plan(client: AsyncClient, owner_headers, stripe_calls):
    response = await client.post(
        "/api/v1/chapters/alpha/billing/checkout",
        headers=owner_headers,
        json={"plan_id": "enterprise"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_portal_requires_customer(client: AsyncClient, db_session, chapter, owner_headers, stripe_calls):
    missing = await client.post("/api/v1/chapters/alpha/billing/portal", headers=owner_headers)
    assert missing.status_code == 400

    chapter.stripe_customer_id = "cus_existing"
    db_session.commit()

    response = await client.post("/api/v1/chapters/alpha/billing/portal", headers=owner_headers)
    assert response.json() == {"url": "https://billing.stripe.test/session"}
    assert stripe_calls["portal"]["customer"] == "cus_existing"


@pytest.mark.asyncio
async def test_dues_checkout(client: AsyncClient, db_session, chapter, member, member_headers, set_plan, stripe_calls):
    set_plan(chapter, "BASIC")
    chapter.stripe_customer_id = "cus_existing"
    dues = DuesPayment(
        chapter_id=chapter.id,
        user_id=member.id,
        amount=Decimal("125.50"),
        due_date=datetime.utcnow() + timedelta(days=14),
    )
    db_session.add(dues)
    db_session.commit()

    response = await client.post(
        f"/api/v1/chapters/alpha/finance/dues/{dues.id}/checkout",
        headers=member_headers,
    )

    assert response.status_code == 200
    assert response.json()["session_id"] == "cs_test_1"
    line_item = stripe_calls["checkout"]["line_items"][0]
    assert line_item["price_data"]["unit_amount"] == 12550
    assert stripe_calls["checkout"]["metadata"]["dues_payment_id"] == str(dues.id)


# ============== Webhooks ==============

@pytest.mark.asyncio
async def test_webhook_without_secret(client: AsyncClient, chapter):
    response = await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1,v1=x"})

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_webhook_without_signature(client: AsyncClient, stripe_settings):
    response = await client.post("/api/v1/webhooks/stripe", content=b"{}")

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_SIGNATURE"


@pytest.mark.asyncio
async def test_webhook_bad_signature(client: AsyncClient, monkeypatch, stripe_settings):
    def reject(payload, sig, secret):
        raise stripe.SignatureVerificationError("No signatures found", sig)

    monkeypatch.setattr(stripe.Webhook, "construct_event", reject)

    response = await client.post(
        "/api/v1/webhooks/stripe",
        content=b"{}",
        headers={"stripe-signature": "t=1,v1=bad"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid webhook signature"


@pytest.mark.asyncio
async def test_webhook_subscription_updated(client: AsyncClient, db_session, chapter, monkeypatch, stripe_settings):
    chapter.stripe_customer_id = "cus_alpha"
    db_session.commit()
    _send_event(monkeypatch, {
        "id": "evt_1",
        "type": "customer.subscription.updated",
        "data": {"object": {
            "id": "sub_123",
            "customer": "cus_alpha",
            "status": "past_due",
            "items": {"data": [{"price": {"id": "price_pro_monthly"}}]},
        }},
    })

    response = await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "sig"})

    assert response.json() == {"received": True}
    subscription = db_session.query(Subscription).filter(Subscription.chapter_id == chapter.id).one()
    db_session.refresh(subscription)
    assert subscription.plan == "PRO"
    assert subscription.status == "PAST_DUE"
    assert subscription.stripe_subscription_id == "sub_123"


@pytest.mark.asyncio
async def test_webhook_subscription_deleted(client: AsyncClient, db_session, chapter, set_plan, monkeypatch, stripe_settings):
    set_plan(chapter, "BASIC")
    chapter.stripe_customer_id = "cus_alpha"
    db_session.commit()
    _send_event(monkeypatch, {
        "id": "evt_2",
        "type": "customer.subscription.deleted",
        "data": {"object": {"id": "sub_123", "customer": "cus_alpha", "status": "canceled"}},
    })

    await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "sig"})

    db_session.refresh(chapter.subscription)
    assert chapter.subscription.plan == "FREE"
    assert chapter.subscription.status == "CANCELED"


@pytest.mark.asyncio
async def test_webhook_checkout_completed_is_idempotent(
    client: AsyncClient, db_session, chapter, member, monkeypatch, stripe_settings
):
    dues = DuesPayment(
        chapter_id=chapter.id,
        user_id=member.id,
        amount=Decimal("90.00"),
        due_date=datetime.utcnow() + timedelta(days=14),
    )
    db_session.add(dues)
    db_session.commit()
    _send_event(monkeypatch, {
        "id": "evt_3",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_1",
            "payment_status": "paid",
            "payment_intent": "pi_123",
            "metadata": {"dues_payment_id": str(dues.id), "chapter_id": str(chapter.id)},
        }},
    })

    for _ in range(2):
        response = await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "sig"})
        assert response.status_code == 200

    db_session.refresh(dues)
    assert dues.is_paid
    assert dues.stripe_payment_id == "pi_123"
    transactions = db_session.query(Transaction).filter(Transaction.dues_payment_id == dues.id).all()
    assert len(transactions) == 1
    assert transactions[0].meta["source"] == "checkout"


@pytest.mark.asyncio
async def test_webhook_unhandled_event_acknowledged(client: AsyncClient, monkeypatch, stripe_settings):
    _send_event(monkeypatch, {"id": "evt_4", "type": "invoice.created", "data": {"object": {}}})

    response = await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "sig"})

    assert response.status_code == 200


@pytest.fixture
def unpaid_dues(db_session, chapter, member):
    dues = DuesPayment(
        chapter_id=chapter.id,
        user_id=member.id,
        amount=Decimal("90.00"),
        due_date=datetime.utcnow() + timedelta(days=14),
    )
    db_session.add(dues)
    db_session.commit()
    return dues


def _payment_intent_event(dues: DuesPayment, chapter_id) -> str:
    return json.dumps({
        "id": "evt_pi_1",
        "object": "event",
        "type": "payment_intent.succeeded",
        "data": {"object": {
            "id": "pi_456",
            "object": "payment_intent",
            "amount_received": 9000,
            "metadata": {"dues_payment_id": str(dues.id), "chapter_id": str(chapter_id)},
        }},
    })


@pytest.mark.asyncio
async def test_webhook_signed_payment_intent_pays_dues(
    client: AsyncClient, db_session, chapter, unpaid_dues, stripe_settings
):
    payload = _payment_intent_event(unpaid_dues, chapter.id)

    response = await client.post("/api/v1/webhooks/stripe", content=payload, headers=_signed(payload))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    db_session.refresh(unpaid_dues)
    assert unpaid_dues.is_paid
    assert unpaid_dues.stripe_payment_id == "pi_456"
    transaction = db_session.query(Transaction).filter(Transaction.dues_payment_id == unpaid_dues.id).one()
    assert Decimal(transaction.amount) == Decimal("90.00")
    assert transaction.meta["source"] == "payment_intent"


@pytest.mark.asyncio
async def test_webhook_rejects_tampered_payload(
    client: AsyncClient, db_session, chapter, unpaid_dues, stripe_settings
):
    payload = _payment_intent_event(unpaid_dues, chapter.id)
    headers = _signed(payload)
    tampered = payload.replace("9000", "1")

    response = await client.post("/api/v1/webhooks/stripe", content=tampered, headers=headers)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_SIGNATURE"
    db_session.refresh(unpaid_dues)
    assert not unpaid_dues.is_paid


@pytest.mark.asyncio
async def test_webhook_ignores_malformed_dues_metadata(
    client: AsyncClient, db_session, unpaid_dues, monkeypatch, stripe_settings
):
    _send_event(monkeypatch, {
        "id": "evt_5",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_2",
            "payment_status": "paid",
            "payment_intent": "pi_789",
            "metadata": {"dues_payment_id": "order-42"},
        }},
    })

    response = await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "sig"})

    assert response.status_code == 200
    assert db_session.query(Transaction).count() == 0


# ============== Conversions ==============

@pytest.mark.parametrize("stripe_status, expected", [
    ("active", "ACTIVE"),
    ("trialing", "TRIALING"),
    ("incomplete", "INCOMPLETE"),
    ("unpaid", "ACTIVE"),
    (None, "ACTIVE"),
])
def test_map_subscription_status(stripe_status, expected):
    assert map_subscription_status(stripe_status) == expected


def test_plan_from_price_id(stripe_settings):
    assert plan_from_price_id("price_basic_monthly") == "BASIC"
    assert plan_from_price_id("price_pro_monthly") == "PRO"
    assert plan_from_price_id("price_unknown") == "FREE"
    assert plan_from_price_id(None) == "FREE"
