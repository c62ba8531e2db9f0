import os
import json
import time
from base64 import b64encode

# 1. Set required environment variables before the app (and its settings) is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("STRIPE_WEBHOOK_SECRET", None)
os.environ.pop("OAUTH_CLIENT_ID", None)
os.environ.pop("OAUTH_CLIENT_SECRET", None)

import pytest  # noqa: E402
import stripe  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from itsdangerous import TimestampSigner  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel, Session, create_engine  # noqa: E402

from config import settings  # noqa: E402
from database import get_session  # noqa: E402
from main import app  # noqa: E402
from premium.auth.models import User  # noqa: E402
from premium.billing.gateway import RemoteSubscription, get_billing_gateway  # noqa: E402


class FakeGateway:
    """In-memory stand-in for StripeGateway that records every call."""

    def __init__(self):
        self.calls = []
        self.subscriptions = {}
        self.prices = {}
        self.fail_with = None
        self.delay = 0.0

    def _record(self, name, *args):
        if self.fail_with:
            raise self.fail_with
        self.calls.append((name,) + args)

    def calls_to(self, name):
        return [c for c in self.calls if c[0] == name]

    def create_customer(self, email, name, user_id):
        self._record("create_customer", email, name, user_id)
        time.sleep(self.delay)
        return f"cus_{len(self.calls_to('create_customer'))}"

    def find_price(self, lookup_key):
        self._record("find_price", lookup_key)
        return self.prices.get(lookup_key)

    def create_price(self, product_name, currency, unit_amount, interval, lookup_key):
        self._record("create_price", product_name, currency, unit_amount, interval, lookup_key)
        self.prices[lookup_key] = f"price_{len(self.prices) + 1}"
        return self.prices[lookup_key]

    def retrieve_subscription(self, subscription_id):
        self._record("retrieve_subscription", subscription_id)
        return self.subscriptions[subscription_id]

    def create_subscription(self, customer_id, price_id):
        self._record("create_subscription", customer_id, price_id)
        number = len(self.calls_to("create_subscription"))
        subscription = RemoteSubscription(
            id=f"sub_{number}",
            status="incomplete",
            client_secret=f"pi_{number}_secret_abc",
        )
        self.subscriptions[subscription.id] = subscription
        return subscription

    def create_portal_session(self, customer_id, return_url):
        self._record("create_portal_session", customer_id, return_url)
        return f"https://billing.stripe.com/p/session/{customer_id}"

    def construct_event(self, payload, sig_header, secret):
        self._record("construct_event", sig_header, secret)
        if sig_header != "valid-signature":
            raise stripe.SignatureVerificationError("No signatures found", sig_header)
        return json.loads(payload)


@pytest.fixture
def engine():
    # Single shared connection so every session sees the same in-memory database
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def add_user(db_session):
    def _add_user(user_id="u1", **fields):
        fields.setdefault("email", f"{user_id}@example.com")
        user = User(id=user_id, **fields)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _add_user


@pytest.fixture
def client(engine, gateway):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_billing_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides = {}


def make_session_cookie(data: dict) -> str:
    """Sign session data the way Starlette's SessionMiddleware does."""
    signer = TimestampSigner(str(settings.SECRET_KEY))
    payload = b64encode(json.dumps(data).encode("utf-8"))
    return signer.sign(payload).decode("utf-8")


def identity(user_id="u1", expires_in=3600, **claims):
    data = {
        "subject": user_id,
        "email": f"{user_id}@example.com",
        "given_name": "Ada",
        "family_name": "Lovelace",
        "picture_url": "https://example.com/ada.png",
        "expires_at": int(time.time()) + expires_in,
    }
    data.update(claims)
    return data


@pytest.fixture
def login(client):
    def _login(user_id="u1", **kwargs):
        client.cookies.set(
            "session",
            make_session_cookie({"user": identity(user_id, **kwargs)}),
            domain="testserver.local",
        )
    return _login
