import logging
from typing import Any, Optional
import stripe
from pydantic import BaseModel
from fastapi import Request

from config import Settings

logger = logging.getLogger(__name__)


class RemoteSubscription(BaseModel):
    id: str
    status: str
    current_period_end: Optional[int] = None # Epoch seconds
    client_secret: Optional[str] = None


class StripeGateway:
    """Single configured Stripe client, built once at startup and injected.

    The API key and pinned API version are passed on every call instead of
    being set on the ``stripe`` module.
    """

    def __init__(self, api_key: Optional[str], api_version: Optional[str] = None):
        self.api_key = api_key
        self.api_version = api_version

    @classmethod
    def from_settings(cls, settings: Settings) -> "StripeGateway":
        if not settings.STRIPE_SECRET_KEY:
            logger.warning("STRIPE_SECRET_KEY missing. Billing calls will fail.")
        return cls(settings.STRIPE_SECRET_KEY, settings.STRIPE_API_VERSION)

    @property
    def _opts(self) -> dict:
        if not self.api_key:
            raise stripe.AuthenticationError("Payment processor not configured")
        opts = {"api_key": self.api_key}
        if self.api_version:
            opts["stripe_version"] = self.api_version
        return opts

    # --- Customers ---

    def create_customer(self, email: str, name: str, user_id: str) -> str:
        customer = stripe.Customer.create(
            email=email,
            name=name,
            metadata={"user_id": user_id},
            **self._opts,
        )
        return customer.id

    # --- Plan ---

    def find_price(self, lookup_key: str) -> Optional[str]:
        prices = stripe.Price.list(lookup_keys=[lookup_key], active=True, limit=1, **self._opts)
        for price in prices.data:
            return price.id
        return None

    def create_price(
        self, product_name: str, currency: str, unit_amount: int, interval: str, lookup_key: str
    ) -> str:
        product = stripe.Product.create(name=product_name, **self._opts)
        price = stripe.Price.create(
            currency=currency,
            unit_amount=unit_amount,
            recurring={"interval": interval},
            product=product.id,
            lookup_key=lookup_key,
            **self._opts,
        )
        return price.id

    # --- Subscriptions ---

    def retrieve_subscription(self, subscription_id: str) -> RemoteSubscription:
        subscription = stripe.Subscription.retrieve(
            subscription_id, expand=["latest_invoice.payment_intent"], **self._opts
        )
        return self._to_remote(subscription)

    def create_subscription(self, customer_id: str, price_id: str) -> RemoteSubscription:
        subscription = stripe.Subscription.create(
            customer=customer_id,
            items=[{"price": price_id}],
            payment_behavior="default_incomplete",
            payment_settings={"save_default_payment_method": "on_subscription"},
            expand=["latest_invoice.payment_intent"],
            **self._opts,
        )
        return self._to_remote(subscription)

    # --- Billing portal ---

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        session = stripe.billing_portal.Session.create(
            customer=customer_id,
            return_url=return_url,
            **self._opts,
        )
        return session.url

    # --- Webhooks ---

    def construct_event(self, payload: bytes, sig_header: str, secret: str):
        return stripe.Webhook.construct_event(payload, sig_header, secret)

    @staticmethod
    def _to_remote(subscription: Any) -> RemoteSubscription:
        return RemoteSubscription(
            id=_get(subscription, "id"),
            status=_get(subscription, "status"),
            current_period_end=period_end_of(subscription),
            client_secret=_client_secret_of(subscription),
        )


def _get(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    try:
        return obj[name]
    except (KeyError, TypeError):
        return getattr(obj, name, None)


def period_end_of(subscription: Any) -> Optional[int]:
    period_end = _get(subscription, "current_period_end")
    if period_end:
        return int(period_end)

    # Newer API versions only carry the period on the subscription items
    items = _get(_get(subscription, "items"), "data") or []
    for item in items:
        period_end = _get(item, "current_period_end")
        if period_end:
            return int(period_end)
    return None


def _client_secret_of(subscription: Any) -> Optional[str]:
    invoice = _get(subscription, "latest_invoice")
    if not invoice or isinstance(invoice, str):
        return None

    payment_intent = _get(invoice, "payment_intent")
    if payment_intent and not isinstance(payment_intent, str):
        return _get(payment_intent, "client_secret")

    # Invoices no longer expose payment_intent from 2025-03-31 onwards
    return _get(_get(invoice, "confirmation_secret"), "client_secret")


def get_billing_gateway(request: Request) -> StripeGateway:
    return request.app.state.billing_gateway
