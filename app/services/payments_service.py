import stripe
from app.core.exceptions import (
    ConflictError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from app.db.store import USERS, DocumentStore
from app.services.auth_service import AuthService
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

ID_TYPES = ("user", "customer")
LIVE_SUBSCRIPTION_STATUSES = ("active", "trialing")


def resolve_id_type(identifier: str, id_type: Optional[str] = None) -> str:
    """Without an explicit kind, only ``cus_`` ids are Stripe customer ids."""
    if id_type is None:
        return "customer" if identifier.startswith("cus_") else "user"
    if id_type not in ID_TYPES:
        raise ValidationError(f"idType must be one of {', '.join(ID_TYPES)}")
    return id_type


class PaymentsService:
    """
    Stripe customer/subscription lifecycle and webhook reconciliation.

    Subscription fields on user records are only written by the webhook
    handlers below, mirroring whatever Stripe last reported.
    """

    def __init__(
        self,
        store: DocumentStore,
        auth_service: AuthService,
        api_key: Optional[str],
        webhook_secret: Optional[str] = None,
        price_id: Optional[str] = None,
        trial_period_days: int = 0,
        portal_configuration_id: Optional[str] = None
    ):
        self.store = store
        self.auth_service = auth_service
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.price_id = price_id
        self.trial_period_days = trial_period_days
        self.portal_configuration_id = portal_configuration_id

    def _ensure_configured(self):
        if not self.api_key:
            logger.error("STRIPE_SECRET_KEY is not configured")
            raise UpstreamError("Stripe API key not configured")

    # Customers

    def create_customer(self, uid: str, email: str, name: Optional[str] = None) -> str:
        """Create a Stripe customer; repeated calls for one user collapse into one."""
        self._ensure_configured()
        params = {"email": email, "metadata": {"firebaseUserId": uid}}
        if name:
            params["name"] = name
        customer = stripe.Customer.create(
            api_key=self.api_key,
            idempotency_key=f"customer-create-{uid}",
            **params
        )
        return customer.id

    async def _store_customer_id(self, uid: str, customer_id: str) -> str:
        """Persist the customer id unless another request stored one first."""
        stored = await self.store.update(
            USERS,
            uid,
            {
                "stripe_customer_id": customer_id,
                "stripe_customer_created_at": datetime.utcnow()
            },
            conditions={"stripe_customer_id": None}
        )
        if stored:
            return customer_id

        user = await self.store.get(USERS, uid) or {}
        existing = user.get("stripe_customer_id")
        if existing and existing != customer_id:
            logger.warning(f"User {uid} already has Stripe customer {existing}, ignoring {customer_id}")
        return existing or customer_id

    async def resolve_customer(
        self,
        uid: str,
        email: Optional[str] = None,
        display_name: Optional[str] = None
    ) -> Tuple[Optional[str], Optional[str]]:
        """
        Find or create the Stripe customer for a user.

        Returns ``(customer_id, email)``. A missing user record is created
        first when an email is known.
        """
        user = await self.store.get(USERS, uid)

        if user is None:
            if not email:
                logger.error(f"User document for {uid} not found and no email provided.")
                raise ValidationError("User not found and email not provided to create one.")
            logger.info(f"Creating user {uid} with email {email} before checkout")
            try:
                user = await self.auth_service.create_user(uid, email, display_name, None)
            except ConflictError:
                logger.warning(f"User {uid} already exists, likely created by another request.")
                user = await self.store.get(USERS, uid) or {}
            new_user = True
        else:
            new_user = False

        if user.get("stripe_customer_id"):
            logger.info(f"Using existing Stripe customer ID: {user['stripe_customer_id']} for user: {uid}")
            return user["stripe_customer_id"], email or user.get("email")

        email = email or user.get("email")
        if not email:
            return None, None

        try:
            customer_id = self.create_customer(uid, email, user.get("display_name") or display_name)
        except stripe.StripeError as e:
            logger.error(f"Error creating Stripe customer for user {uid}: {e}")
            if new_user:
                raise UpstreamError("Failed to create Stripe customer for new user.")
            # Checkout can still create the customer from the email.
            return None, email

        customer_id = await self._store_customer_id(uid, customer_id)
        logger.info(f"Stripe customer {customer_id} linked to user {uid}")
        return customer_id, email

    async def get_customer_id(self, uid: str) -> str:
        """Stored Stripe customer id of a user, for the billing portal."""
        user = await self.store.get(USERS, uid)
        if user is None:
            logger.error(f"Portal: User {uid} not found.")
            raise NotFoundError("User not found.")
        if not user.get("stripe_customer_id"):
            logger.error(f"Portal: User {uid} does not have an associated Stripe customer ID.")
            raise ValidationError(
                "User does not have an associated Stripe customer ID to access the portal. Please subscribe first."
            )
        return user["stripe_customer_id"]

    # Sessions

    def create_checkout_session(
        self,
        customer_id: Optional[str],
        email: Optional[str],
        success_url: str,
        cancel_url: str
    ) -> Dict[str, Any]:
        self._ensure_configured()
        if not customer_id and not email:
            raise ValidationError(
                "User ID or Email is required to create a checkout session if customer does not exist."
            )

        session_config = {
            "payment_method_types": ["card"],
            "mode": "subscription",
            "line_items": [{"price": self.price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "subscription_data": {},
        }

        if self.trial_period_days > 0:
            session_config["subscription_data"]["trial_period_days"] = self.trial_period_days
            logger.info(f"Applying trial period of {self.trial_period_days} days to new subscription.")

        if customer_id:
            session_config["customer"] = customer_id
        else:
            session_config["customer_email"] = email

        try:
            session = stripe.checkout.Session.create(api_key=self.api_key, **session_config)
        except stripe.StripeError as e:
            logger.error(f"Error creating checkout session: {e}")
            raise UpstreamError(str(e))

        return {"sessionId": session.id, "url": session.url}

    def create_portal_session(self, customer_id: str, return_url: str) -> Dict[str, Any]:
        self._ensure_configured()
        params = {"customer": customer_id, "return_url": return_url}
        if self.portal_configuration_id:
            params["configuration"] = self.portal_configuration_id

        try:
            session = stripe.billing_portal.Session.create(api_key=self.api_key, **params)
        except stripe.InvalidRequestError as e:
            if "No configuration provided" in str(e):
                logger.error(f"Customer Portal configuration not found in the Stripe Dashboard: {e}")
                raise UpstreamError("Customer Portal is not configured. Please contact support.", status_code=400)
            logger.error(f"Error creating portal session: {e}")
            raise UpstreamError(str(e), status_code=400)
        except stripe.StripeError as e:
            logger.error(f"Error creating portal session: {e}")
            raise UpstreamError(str(e), status_code=400)

        return {"url": session.url}

    # Subscriptions

    async def get_subscription_status(
        self,
        identifier: str,
        id_type: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Most relevant subscription of a user or Stripe customer.

        ``id_type`` says which kind of id was given; see ``resolve_id_type``.
        """
        id_type = resolve_id_type(identifier, id_type)

        customer_id = identifier
        if id_type == "user":
            user = await self.store.get(USERS, identifier)
            if user is None:
                raise NotFoundError("User not found")
            customer_id = user.get("stripe_customer_id")
            if not customer_id:
                return {"status": "none", "subscriptions": [], "trialEndDate": None}

        self._ensure_configured()
        try:
            subscriptions = list(stripe.Subscription.list(api_key=self.api_key, customer=customer_id).data)
        except stripe.StripeError as e:
            logger.error(f"Error retrieving subscriptions: {e}")
            raise UpstreamError(str(e), status_code=400)

        status = "none"
        trial_end_date = None
        if subscriptions:
            current = next(
                (sub for sub in subscriptions if sub.get("status") in LIVE_SUBSCRIPTION_STATUSES),
                subscriptions[0]
            )
            status = current.get("status")
            if status == "trialing" and current.get("trial_end"):
                trial_end_date = datetime.fromtimestamp(current["trial_end"], tz=timezone.utc).isoformat()

        return {
            "status": status,
            "trialEndDate": trial_end_date,
            "subscriptions": [dict(sub) for sub in subscriptions],
        }

    def cancel_subscription(self, subscription_id: str) -> Dict[str, Any]:
        """Cancel at Stripe; the local mirror follows through the webhook."""
        self._ensure_configured()
        try:
            subscription = stripe.Subscription.cancel(subscription_id, api_key=self.api_key)
        except stripe.StripeError as e:
            logger.error(f"Error canceling subscription: {e}")
            raise UpstreamError(str(e), status_code=400)
        return dict(subscription)

    # Webhooks

    def construct_event(self, payload: bytes, signature: Optional[str]):
        """Verify the Stripe signature over the raw body."""
        if not signature:
            logger.error("Missing Stripe signature in webhook")
            raise ValidationError("Missing Stripe signature")
        if not self.webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET is not configured")
            raise UpstreamError("Webhook secret not configured")

        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            logger.error(f"Invalid webhook payload: {e}")
            raise ValidationError("Invalid payload")
        except stripe.SignatureVerificationError as e:
            logger.error(f"Invalid webhook signature: {e}")
            raise ValidationError("Invalid signature")

    async def handle_webhook(self, payload: bytes, signature: Optional[str]) -> str:
        """Verify and apply a webhook event; returns the event type."""
        event = self.construct_event(payload, signature)
        event_type = event["type"]
        data_object = event["data"]["object"]
        logger.info(f"Webhook event type: {event_type}")

        if event_type == "checkout.session.completed":
            await self.handle_checkout_session_completed(data_object)
        elif event_type == "customer.subscription.updated":
            await self.handle_subscription_updated(data_object)
        elif event_type == "customer.subscription.deleted":
            await self.handle_subscription_deleted(data_object)
        else:
            logger.info(f"Ignoring unhandled webhook event type: {event_type}")

        return event_type

    async def _user_by_customer(self, customer_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not customer_id:
            return None
        return await self.store.find_one(USERS, {"stripe_customer_id": customer_id})

    async def handle_checkout_session_completed(self, session):
        """Link the new customer and subscription to the paying user."""
        customer_id = session.get("customer")
        subscription_id = session.get("subscription")
        customer_details = session.get("customer_details") or {}
        email = customer_details.get("email")

        if not email:
            logger.error("No customer email found in checkout session")
            return

        user = await self.store.find_one(USERS, {"email": email})
        if user:
            await self.store.update(USERS, user["_id"], {
                "stripe_customer_id": customer_id,
                "stripe_subscription_id": subscription_id,
                "subscription_created_at": datetime.utcnow()
            })
            logger.info(f"User {user['_id']} linked to customer {customer_id} and subscription {subscription_id}")
            return

        logger.warning(f"No user found with email: {email}, trying Stripe customer ID {customer_id}")
        user = await self._user_by_customer(customer_id)
        if user:
            await self.store.update(USERS, user["_id"], {
                "stripe_subscription_id": subscription_id,
                "subscription_created_at": datetime.utcnow()
            })
            logger.info(f"User {user['_id']} linked to subscription {subscription_id}")
            return

        logger.error(f"No user found for checkout session with email {email} or customer {customer_id}")

    async def handle_subscription_updated(self, subscription):
        customer_id = subscription.get("customer")
        status = subscription.get("status")

        user = await self._user_by_customer(customer_id)
        if not user:
            logger.error(f"No user found with Stripe customer ID: {customer_id}")
            return

        await self.store.update(USERS, user["_id"], {
            "subscription_status": status,
            "subscription_updated_at": datetime.utcnow()
        })
        logger.info(f"Subscription status of user {user['_id']} set to {status}")

    async def handle_subscription_deleted(self, subscription):
        customer_id = subscription.get("customer")

        user = await self._user_by_customer(customer_id)
        if not user:
            logger.error(f"No user found with Stripe customer ID: {customer_id}")
            return

        await self.store.update(USERS, user["_id"], {
            "subscription_status": "canceled",
            "subscription_canceled_at": datetime.utcnow()
        })
        logger.info(f"Subscription of user {user['_id']} canceled")
