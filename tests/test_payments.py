import hashlib
import hmac
import json
import time
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from app.core.exceptions import UpstreamError, ValidationError
from app.db.store import USERS
from app.services.payments_service import resolve_id_type
from tests.fakes import API, auth_headers, run

CHECKOUT_BODY = {"successUrl": "https://app.test/ok", "cancelUrl": "https://app.test/cancel"}


def post_webhook(client, event=None, signature="t=1,v1=abc", error=None):
    with patch.object(stripe.Webhook, "construct_event", return_value=event, side_effect=error) as construct:
        response = client.post(
            f"{API}/payments/webhook",
            content=b'{"id": "evt_1"}',
            headers={"stripe-signature": signature} if signature else {},
        )
    return response, construct


# Webhooks

def test_webhook_with_bad_signature_changes_nothing(client, store, add_user):
    add_user("alice", stripe_customer_id="cus_1", subscription_status="active")
    error = stripe.SignatureVerificationError("No signatures found", "t=1,v1=abc")

    response, _ = post_webhook(client, error=error)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid signature"}
    assert run(store.get(USERS, "alice"))["subscription_status"] == "active"


def test_webhook_with_invalid_payload(client):
    response, _ = post_webhook(client, error=ValueError("bad json"))
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid payload"


def test_webhook_without_signature(client):
    response, construct = post_webhook(client, signature=None)
    assert response.status_code == 400
    assert response.json()["error"] == "Missing Stripe signature"
    construct.assert_not_called()


def test_webhook_verifies_raw_body(client):
    event = {"type": "invoice.paid", "data": {"object": {}}}
    response, construct = post_webhook(client, event=event)

    assert response.status_code == 200
    assert response.json() == {"received": True}
    construct.assert_called_once_with(b'{"id": "evt_1"}', "t=1,v1=abc", "whsec_test")


def test_checkout_completed_links_user_by_email(client, store, add_user):
    add_user("alice")
    event = {
        "type": "checkout.session.completed",
        "data": {"object": {
            "customer": "cus_9",
            "subscription": "sub_9",
            "customer_details": {"email": "alice@example.com"},
        }},
    }

    response, _ = post_webhook(client, event=event)

    assert response.status_code == 200
    user = run(store.get(USERS, "alice"))
    assert user["stripe_customer_id"] == "cus_9"
    assert user["stripe_subscription_id"] == "sub_9"
    assert user["subscription_created_at"] is not None


def test_checkout_completed_falls_back_to_customer_id(client, store, add_user):
    add_user("alice", stripe_customer_id="cus_9")
    event = {
        "type": "checkout.session.completed",
        "data": {"object": {
            "customer": "cus_9",
            "subscription": "sub_9",
            "customer_details": {"email": "other@example.com"},
        }},
    }

    post_webhook(client, event=event)

    user = run(store.get(USERS, "alice"))
    assert user["stripe_subscription_id"] == "sub_9"
    assert user["email"] == "alice@example.com"


def test_checkout_completed_for_unknown_user_is_acknowledged(client, store, add_user):
    add_user("alice")
    event = {
        "type": "checkout.session.completed",
        "data": {"object": {
            "customer": "cus_x",
            "subscription": "sub_x",
            "customer_details": {"email": "nobody@example.com"},
        }},
    }

    response, _ = post_webhook(client, event=event)

    assert response.status_code == 200
    assert "stripe_subscription_id" not in run(store.get(USERS, "alice"))


def test_subscription_updated_and_deleted(client, store, add_user):
    add_user("alice", stripe_customer_id="cus_1", subscription_status="trialing")

    post_webhook(client, event={
        "type": "customer.subscription.updated",
        "data": {"object": {"customer": "cus_1", "status": "past_due"}},
    })
    assert run(store.get(USERS, "alice"))["subscription_status"] == "past_due"

    post_webhook(client, event={
        "type": "customer.subscription.deleted",
        "data": {"object": {"customer": "cus_1", "status": "canceled"}},
    })
    user = run(store.get(USERS, "alice"))
    assert user["subscription_status"] == "canceled"
    assert user["subscription_canceled_at"] is not None


# Checkout and portal

def test_checkout_creates_user_and_customer(client, store):
    customer = SimpleNamespace(id="cus_new")
    session = SimpleNamespace(id="cs_1", url="https://checkout.test/cs_1")

    with patch.object(stripe.Customer, "create", return_value=customer) as create_customer, \
            patch.object(stripe.checkout.Session, "create", return_value=session) as create_session:
        response = client.post(
            f"{API}/payments/create-checkout-session",
            json={**CHECKOUT_BODY, "firstName": "Alice", "lastName": "Smith"},
            headers=auth_headers("alice"),
        )

    assert response.status_code == 200
    assert response.json() == {"success": True, "sessionId": "cs_1", "url": "https://checkout.test/cs_1"}

    user = run(store.get(USERS, "alice"))
    assert user["stripe_customer_id"] == "cus_new"
    assert user["display_name"] == "Alice Smith"

    assert create_customer.call_args.kwargs["idempotency_key"] == "customer-create-alice"
    assert create_customer.call_args.kwargs["metadata"] == {"firebaseUserId": "alice"}
    session_kwargs = create_session.call_args.kwargs
    assert session_kwargs["customer"] == "cus_new"
    assert session_kwargs["mode"] == "subscription"
    assert session_kwargs["line_items"] == [{"price": "price_test", "quantity": 1}]
    assert session_kwargs["subscription_data"] == {"trial_period_days": 7}
    assert "customer_email" not in session_kwargs


def test_checkout_reuses_stored_customer(client, add_user):
    add_user("alice", stripe_customer_id="cus_1")
    session = SimpleNamespace(id="cs_1", url="https://checkout.test/cs_1")

    with patch.object(stripe.Customer, "create") as create_customer, \
            patch.object(stripe.checkout.Session, "create", return_value=session) as create_session:
        client.post(f"{API}/payments/create-checkout-session", json=CHECKOUT_BODY, headers=auth_headers("alice"))

    create_customer.assert_not_called()
    assert create_session.call_args.kwargs["customer"] == "cus_1"


def test_checkout_falls_back_to_email_when_customer_creation_fails(client, add_user):
    add_user("alice")
    session = SimpleNamespace(id="cs_1", url="https://checkout.test/cs_1")

    with patch.object(stripe.Customer, "create", side_effect=stripe.APIConnectionError("down")), \
            patch.object(stripe.checkout.Session, "create", return_value=session) as create_session:
        response = client.post(
            f"{API}/payments/create-checkout-session", json=CHECKOUT_BODY, headers=auth_headers("alice")
        )

    assert response.status_code == 200
    assert create_session.call_args.kwargs["customer_email"] == "alice@example.com"
    assert "customer" not in create_session.call_args.kwargs


def test_checkout_for_another_user_is_forbidden(client):
    response = client.post(
        f"{API}/payments/create-checkout-session",
        json={**CHECKOUT_BODY, "userId": "bob"},
        headers=auth_headers("alice"),
    )
    assert response.status_code == 403


def test_concurrent_customer_creation_keeps_first_id(services, add_user):
    add_user("alice", stripe_customer_id=None)
    payments = services.payments

    assert run(payments._store_customer_id("alice", "cus_first")) == "cus_first"
    assert run(payments._store_customer_id("alice", "cus_second")) == "cus_first"


def test_resolve_customer_without_user_or_email(services):
    with pytest.raises(ValidationError):
        run(services.payments.resolve_customer("ghost"))


def test_portal_without_customer(client, add_user):
    add_user("alice")
    response = client.post(
        f"{API}/payments/create-customer-portal",
        json={"returnUrl": "https://app.test/account"},
        headers=auth_headers("alice"),
    )
    assert response.status_code == 400


def test_portal_for_stored_customer(client, add_user):
    add_user("alice", stripe_customer_id="cus_1")
    portal = SimpleNamespace(url="https://billing.test/p")

    with patch.object(stripe.billing_portal.Session, "create", return_value=portal) as create_portal:
        response = client.post(
            f"{API}/payments/create-customer-portal",
            json={"returnUrl": "https://app.test/account"},
            headers=auth_headers("alice"),
        )

    assert response.json() == {"success": True, "url": "https://billing.test/p"}
    assert create_portal.call_args.kwargs["customer"] == "cus_1"


def test_portal_not_configured(services):
    error = stripe.InvalidRequestError("No configuration provided and your test mode default configuration has not been created.", None)
    with patch.object(stripe.billing_portal.Session, "create", side_effect=error):
        with pytest.raises(UpstreamError) as exc_info:
            services.payments.create_portal_session("cus_1", "https://app.test")

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail == "Customer Portal is not configured. Please contact support."


# Subscription status

def test_status_of_user_without_customer(client, add_user):
    add_user("alice")
    with patch.object(stripe.Subscription, "list") as list_subscriptions:
        response = client.get(f"{API}/payments/subscription/alice", headers=auth_headers("alice"))

    assert response.json() == {"success": True, "status": "none", "subscriptions": [], "trialEndDate": None}
    list_subscriptions.assert_not_called()


def test_status_prefers_live_subscription(client, add_user):
    add_user("alice", stripe_customer_id="cus_1")
    subscriptions = SimpleNamespace(data=[
        {"id": "sub_old", "status": "canceled"},
        {"id": "sub_new", "status": "trialing", "trial_end": 1700000000},
    ])

    with patch.object(stripe.Subscription, "list", return_value=subscriptions) as list_subscriptions:
        response = client.get(f"{API}/payments/subscription/alice", headers=auth_headers("alice"))

    body = response.json()
    assert body["status"] == "trialing"
    assert body["trialEndDate"] == "2023-11-14T22:13:20+00:00"
    assert len(body["subscriptions"]) == 2
    assert list_subscriptions.call_args.kwargs["customer"] == "cus_1"


def test_status_by_customer_id(client):
    subscriptions = SimpleNamespace(data=[{"id": "sub_1", "status": "active"}])

    with patch.object(stripe.Subscription, "list", return_value=subscriptions):
        response = client.get(f"{API}/payments/subscription/cus_1", headers=auth_headers("alice"))

    assert response.json()["status"] == "active"
    assert response.json()["trialEndDate"] is None


def test_status_of_another_user_is_forbidden(client, add_user):
    add_user("bob")
    response = client.get(
        f"{API}/payments/subscription/bob", params={"idType": "user"}, headers=auth_headers("alice")
    )
    assert response.status_code == 403


def test_status_of_unknown_user(client):
    response = client.get(f"{API}/payments/subscription/alice", headers=auth_headers("alice"))
    assert response.status_code == 404


@pytest.mark.parametrize("identifier,id_type,expected", [
    ("cus_123", None, "customer"),
    ("AbCdEfGhIjKlMnOpQrStUvWxYz12", None, "user"),
    ("customer_of_mine", None, "user"),
    ("cus_123", "user", "user"),
    ("alice", "customer", "customer"),
])
def test_resolve_id_type(identifier, id_type, expected):
    assert resolve_id_type(identifier, id_type) == expected


def test_resolve_id_type_rejects_unknown_kind():
    with pytest.raises(ValidationError):
        resolve_id_type("alice", "account")


def test_cancel_subscription(client):
    with patch.object(stripe.Subscription, "cancel", return_value={"id": "sub_1", "status": "canceled"}) as cancel:
        response = client.post(f"{API}/payments/cancel-subscription/sub_1", headers=auth_headers("alice"))

    assert response.json() == {"success": True, "subscription": {"id": "sub_1", "status": "canceled"}}
    cancel.assert_called_once_with("sub_1", api_key="sk_test")


def test_cancel_subscription_stripe_error(client):
    with patch.object(stripe.Subscription, "cancel", side_effect=stripe.InvalidRequestError("No such subscription", "id")):
        response = client.post(f"{API}/payments/cancel-subscription/sub_x", headers=auth_headers("alice"))

    assert response.status_code == 400
    assert response.json()["error"] == "No such subscription"


# Signed webhooks, verified by the Stripe SDK itself

def stripe_signature(payload: bytes, secret: str = "whsec_test") -> str:
    timestamp = int(time.time())
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def checkout_completed_body(subscription_id: str) -> bytes:
    return json.dumps({
        "id": "evt_signed",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {"object": {
            "object": "checkout.session",
            "customer": "cus_9",
            "subscription": subscription_id,
            "customer_details": {"email": "alice@example.com"},
        }},
    }).encode()


def test_signed_webhook_updates_user(client, store, add_user):
    add_user("alice")
    body = checkout_completed_body("sub_9")

    response = client.post(
        f"{API}/payments/webhook", content=body, headers={"stripe-signature": stripe_signature(body)}
    )

    assert response.status_code == 200
    user = run(store.get(USERS, "alice"))
    assert user["stripe_customer_id"] == "cus_9"
    assert user["stripe_subscription_id"] == "sub_9"


def test_tampered_webhook_body_is_rejected(client, store, add_user):
    add_user("alice")
    signature = stripe_signature(checkout_completed_body("sub_9"))

    response = client.post(
        f"{API}/payments/webhook",
        content=checkout_completed_body("sub_evil"),
        headers={"stripe-signature": signature},
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid signature"}
    assert "stripe_subscription_id" not in run(store.get(USERS, "alice"))


def test_webhook_signed_with_another_secret_is_rejected(client, store, add_user):
    add_user("alice")
    body = checkout_completed_body("sub_9")

    response = client.post(
        f"{API}/payments/webhook",
        content=body,
        headers={"stripe-signature": stripe_signature(body, secret="whsec_other")},
    )

    assert response.status_code == 400
    assert "stripe_customer_id" not in run(store.get(USERS, "alice"))
