import json

import pytest
from fastapi.testclient import TestClient

from app.auth.service import register_credential, create_access_token
from app.main import create_app
from app.payments.gateway import CheckoutSession, PaymentGatewayError
from app.shared.config import Settings
from app.users.models import User


class FakeGateway:
    """In-memory stand-in for StripeGateway."""

    def __init__(self):
        self.sessions: dict[str, CheckoutSession] = {}
        self.created: list[dict] = []
        self.retrievals = 0

    def add(self, session: CheckoutSession) -> CheckoutSession:
        self.sessions[session.id] = session
        return session

    def create_checkout_session(self, **kw) -> CheckoutSession:
        self.created.append(kw)
        sid = f"cs_test_{len(self.created)}"
        return self.add(CheckoutSession(
            id=sid,
            url=f"https://checkout.stripe.test/{sid}",
            amount_total=kw["amount"],
            currency=kw["currency"],
            customer_email=kw["customer_email"],
            metadata=dict(kw["metadata"]),
        ))

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        self.retrievals += 1
        if session_id not in self.sessions:
            raise PaymentGatewayError("No such checkout.session")
        return self.sessions[session_id]

    def construct_event(self, payload: bytes, sig_header):
        if sig_header != "valid-signature":
            raise PaymentGatewayError("Invalid signature")
        return json.loads(payload)

    def mark_paid(self, session_id: str, intent: str = "pi_test_1") -> CheckoutSession:
        s = self.sessions[session_id]
        s.payment_intent = intent
        s.payment_status = "paid"
        return s


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{(tmp_path / 'test.db').as_posix()}",
        JWT_KEY="test-secret",
        AUTH_DEMO=False,
        FREE_ISSUE_LIMIT=3,
        LOG_LEVEL="WARNING",
        SITE_URL="https://civic.test",
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(settings, gateway):
    return create_app(settings, payment_gateway=gateway)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app, client):
    s = app.state.db.session()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def make_user(db):
    def _make(email: str, role: str = "citizen", premium: bool = False, blocked: bool = False, name: str | None = None) -> User:
        register_credential(db, email, "secret123")
        u = User(
            email=email,
            name=name or email.split("@")[0].title(),
            photo=f"https://img.test/{email.split('@')[0]}.png",
            role=role,
            is_premium=premium,
            is_blocked=blocked,
        )
        db.add(u); db.commit(); db.refresh(u)
        return u
    return _make


@pytest.fixture
def auth(settings):
    def _auth(email: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(settings, email)}"}
    return _auth


@pytest.fixture
def issue_payload():
    def _payload(n: int = 1, **kw) -> dict:
        body = {
            "title": f"Broken streetlight #{n}",
            "description": "Light has been out for a week",
            "category": "Streetlight",
            "location": f"Main St {n}",
        }
        body.update(kw)
        return body
    return _payload
