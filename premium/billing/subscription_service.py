import logging
import threading
from typing import Optional
from datetime import datetime, timezone
import stripe
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from config import Settings, settings as default_settings
from premium.auth.services import UserStore
from premium.billing.gateway import StripeGateway, period_end_of
from premium.billing.models import CreatedSubscription, PortalSession, SubscriptionStatus
from premium.core.errors import NotFound, PreconditionFailed, UpstreamUnavailable, ValidationFailed

logger = logging.getLogger(__name__)

SUBSCRIPTION_EVENTS = (
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
)


def period_end_to_datetime(period_end: Optional[int]) -> Optional[datetime]:
    if not period_end:
        return None
    # Stored naive, in UTC
    return datetime.fromtimestamp(period_end, tz=timezone.utc).replace(tzinfo=None)


def format_billing_date(period_end: Optional[int]) -> Optional[str]:
    if not period_end:
        return None
    moment = datetime.fromtimestamp(period_end, tz=timezone.utc)
    return f"{moment:%B} {moment.day}, {moment.year}"


class SubscriptionService:
    # Serializes create_subscription per user within this process
    _user_locks: dict[str, threading.Lock] = {}
    _user_locks_guard = threading.Lock()

    def __init__(self, session: Session, gateway: StripeGateway, settings: Settings = default_settings):
        self.session = session
        self.gateway = gateway
        self.settings = settings
        self.users = UserStore(session)

    # --- Status reconciliation ---

    def get_subscription_status(self, user_id: str) -> SubscriptionStatus:
        """
        Reads the subscription status from Stripe and writes it through to the
        local record when it drifted. Never-subscribed users are answered locally.
        """
        user = self.users.get_user(user_id)
        if not user or not user.stripe_subscription_id:
            return SubscriptionStatus(status="inactive")

        try:
            remote = self.gateway.retrieve_subscription(user.stripe_subscription_id)
        except stripe.StripeError as e:
            logger.error("Subscription status error for %s: %s", user_id, e)
            raise UpstreamUnavailable("Failed to get subscription status")

        if remote.status != user.subscription_status:
            self._write_through(user_id, remote.status, remote.current_period_end)

        return SubscriptionStatus(
            status=remote.status,
            current_period_end=remote.current_period_end,
            next_billing_date=format_billing_date(remote.current_period_end),
        )

    def _write_through(self, user_id: str, status: str, period_end: Optional[int]):
        try:
            self.users.update_subscription_status(user_id, status, period_end_to_datetime(period_end))
            logger.info("Subscription status of %s updated to %s", user_id, status)
        except (SQLAlchemyError, LookupError) as e:
            self.session.rollback()
            logger.warning("Could not store subscription status for %s: %s", user_id, e)

    # --- Lifecycle ---

    @classmethod
    def _user_lock(cls, user_id: str) -> threading.Lock:
        with cls._user_locks_guard:
            return cls._user_locks.setdefault(user_id, threading.Lock())

    def create_subscription(self, user_id: str) -> CreatedSubscription:
        with self._user_lock(user_id):
            return self._create_subscription(user_id)

    def _create_subscription(self, user_id: str) -> CreatedSubscription:
        user = self.users.get_user(user_id)
        if not user:
            raise NotFound("User not found")

        try:
            if user.stripe_subscription_id:
                existing = self.gateway.retrieve_subscription(user.stripe_subscription_id)
                if existing.status == "active":
                    return CreatedSubscription(subscription_id=existing.id, client_secret=None)
                # Payment still pending on the previous attempt
                if existing.status == "incomplete" and existing.client_secret:
                    return CreatedSubscription(subscription_id=existing.id, client_secret=existing.client_secret)

            if not user.email:
                raise ValidationFailed("User email is required")

            customer_id = user.stripe_customer_id
            if not customer_id:
                name = f"{user.first_name or ''} {user.last_name or ''}".strip() or user.email
                customer_id = self.gateway.create_customer(user.email, name, user.id)
                self.users.update_user_stripe_info(user.id, customer_id)
                logger.info("Created Stripe customer %s for %s", customer_id, user.id)

            price_id = self._resolve_price()
            subscription = self.gateway.create_subscription(customer_id, price_id)

            # The subscription id must be stored before the client can confirm payment
            self.users.update_user_stripe_info(user.id, customer_id, subscription.id, subscription.status)
            logger.info("Created subscription %s (%s) for %s", subscription.id, subscription.status, user.id)

            return CreatedSubscription(
                subscription_id=subscription.id,
                client_secret=subscription.client_secret,
            )
        except stripe.StripeError as e:
            logger.error("Subscription creation error for %s: %s", user_id, e)
            raise UpstreamUnavailable(e.user_message or str(e), status_code=400)

    def _resolve_price(self) -> str:
        if self.settings.STRIPE_PRICE_ID:
            return self.settings.STRIPE_PRICE_ID

        price_id = self.gateway.find_price(self.settings.PLAN_LOOKUP_KEY)
        if price_id:
            return price_id

        price_id = self.gateway.create_price(
            product_name=self.settings.PLAN_NAME,
            currency=self.settings.PLAN_CURRENCY,
            unit_amount=self.settings.PLAN_UNIT_AMOUNT,
            interval=self.settings.PLAN_INTERVAL,
            lookup_key=self.settings.PLAN_LOOKUP_KEY,
        )
        logger.info("Created plan price %s (%s)", price_id, self.settings.PLAN_LOOKUP_KEY)
        return price_id

    # --- Billing portal ---

    def create_portal_session(self, user_id: str, return_url: str) -> PortalSession:
        user = self.users.get_user(user_id)
        if not user or not user.stripe_customer_id:
            raise PreconditionFailed("No Stripe customer found")

        try:
            url = self.gateway.create_portal_session(user.stripe_customer_id, return_url)
        except stripe.StripeError as e:
            logger.error("Portal session error for %s: %s", user_id, e)
            raise UpstreamUnavailable("Failed to create portal session")
        return PortalSession(url=url)

    # --- Webhooks ---

    def handle_webhook(self, payload: bytes, sig_header: str):
        if not sig_header:
            raise ValidationFailed("Invalid signature")
        try:
            event = self.gateway.construct_event(payload, sig_header, self.settings.STRIPE_WEBHOOK_SECRET)
        except ValueError:
            raise ValidationFailed("Invalid payload")
        except stripe.SignatureVerificationError:
            raise ValidationFailed("Invalid signature")

        logger.info("Stripe webhook received: %s", event["type"])
        if event["type"] in SUBSCRIPTION_EVENTS:
            self._sync_subscription(event["data"]["object"])

    def _sync_subscription(self, subscription):
        user = self.users.get_user_by_subscription_id(subscription["id"])
        if not user:
            logger.info("No user linked to subscription %s", subscription["id"])
            return

        status = subscription["status"]
        if status != user.subscription_status:
            period_end = period_end_of(subscription)
            self.users.update_subscription_status(user.id, status, period_end_to_datetime(period_end))
            logger.info("Subscription status of %s updated to %s", user.id, status)
