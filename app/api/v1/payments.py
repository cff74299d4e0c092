from fastapi import APIRouter, Depends, Query, Request
from typing import Literal, Optional
from app.api.deps import get_current_user, get_services
from app.api.v1.auth import ensure_self
from app.schemas.payments import CheckoutSessionRequest, CustomerPortalRequest
from app.schemas.user import VerifiedIdentity
from app.services.container import Services
from app.services.payments_service import resolve_id_type
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/webhook", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    services: Services = Depends(get_services)
):
    """
    Handle Stripe webhook events.

    The signature is checked against the raw body, so this route must not
    parse JSON itself. Verified events are always acknowledged with a 200,
    even when no local user matches.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    logger.info("Webhook received from Stripe")

    await services.payments.handle_webhook(payload, signature)
    return {"received": True}


@router.post("/create-checkout-session")
async def create_checkout_session(
    request: CheckoutSessionRequest,
    identity: VerifiedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Start a subscription checkout for the caller."""
    user_id = request.userId or identity.uid
    ensure_self(identity, user_id)

    customer_id, email = await services.payments.resolve_customer(
        user_id,
        email=request.email or identity.email,
        display_name=request.display_name()
    )
    session = services.payments.create_checkout_session(
        customer_id,
        email,
        request.successUrl,
        request.cancelUrl
    )
    return {"success": True, **session}


@router.post("/create-customer-portal")
async def create_customer_portal(
    request: CustomerPortalRequest,
    identity: VerifiedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Open the Stripe billing portal for a customer id or the caller's stored one."""
    customer_id = request.customerId
    if not customer_id:
        user_id = request.userId or identity.uid
        ensure_self(identity, user_id)
        customer_id = await services.payments.get_customer_id(user_id)

    session = services.payments.create_portal_session(customer_id, request.returnUrl)
    return {"success": True, **session}


@router.get("/subscription/{customer_id}")
async def get_subscription_status(
    customer_id: str,
    id_type: Optional[Literal["user", "customer"]] = Query(None, alias="idType"),
    identity: VerifiedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """
    Subscription status for a user id or a Stripe customer id.

    Pass ``idType`` to say which one ``customer_id`` is; without it, only
    ``cus_``-prefixed ids are read as Stripe customer ids.
    """
    if resolve_id_type(customer_id, id_type) == "user":
        ensure_self(identity, customer_id)

    result = await services.payments.get_subscription_status(customer_id, id_type)
    return {"success": True, **result}


@router.post("/cancel-subscription/{subscription_id}")
async def cancel_subscription(
    subscription_id: str,
    identity: VerifiedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    logger.info(f"User {identity.uid} canceling subscription {subscription_id}")
    subscription = services.payments.cancel_subscription(subscription_id)
    return {"success": True, "subscription": subscription}
