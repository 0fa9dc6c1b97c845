"""Shared fixtures: in-memory database, fake payment gateway and recorded emails."""

import base64
import os

# Settings are read at import time, so they are pinned before the app is imported
WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"parcels-test-webhook-signing-key").decode()
os.environ["SECRET_SALT"] = "test-salt"
os.environ["SESSION_COOKIE_SECURE"] = "false"
os.environ["PUBLIC_BASE_URL"] = "https://parcels.test"
os.environ["DODO_PAYMENTS_WEBHOOK_SECRET"] = WEBHOOK_SECRET
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("REDIS_URL", None)

import itertools  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from parcels import email_service  # noqa: E402
from parcels.auth import encode_session  # noqa: E402
from parcels.config import SESSION_COOKIE_NAME  # noqa: E402
from parcels.database import Database  # noqa: E402
from parcels.domain.billing.dodo_service import PAYMENT_SUCCEEDED, normalize_payment  # noqa: E402
from parcels.domain.claims.repository import ClaimRepository  # noqa: E402
from parcels.errors import PaymentProviderError  # noqa: E402
from parcels.main import create_app  # noqa: E402
from parcels.models import Claim, Owner  # noqa: E402
from parcels.rate_limiter import InMemoryRateLimiter  # noqa: E402
from parcels.shared.timestamps import parse_ts  # noqa: E402


class FakePayments:
    """Stands in for DodoPaymentsService: records checkouts, serves canned payments."""

    def __init__(self):
        self.sessions = []
        self.payments = {}
        self._ids = itertools.count(1)

    def is_available(self) -> bool:
        return True

    async def create_checkout_session(
        self, amount_cents, customer_email, return_url, metadata, customer_name=None
    ) -> dict:
        session_id = f"cks_{next(self._ids)}"
        self.sessions.append(
            {
                "session_id": session_id,
                "amount_cents": amount_cents,
                "customer_email": customer_email,
                "return_url": return_url,
                "metadata": dict(metadata),
            }
        )
        return {"checkout_url": f"https://checkout.test/{session_id}", "session_id": session_id}

    async def retrieve_payment(self, payment_id: str) -> dict:
        if payment_id not in self.payments:
            raise PaymentProviderError(message="Unknown payment")
        return self.payments[payment_id]

    def succeed(
        self,
        metadata: dict,
        amount: Optional[int] = None,
        currency: str = "EUR",
        status: str = PAYMENT_SUCCEEDED,
        payment_id: Optional[str] = None,
    ) -> dict:
        payment_id = payment_id or f"pay_{next(self._ids)}"
        payment = normalize_payment(
            {
                "payment_id": payment_id,
                "status": status,
                "total_amount": amount,
                "currency": currency,
                "customer": {"email": metadata.get("email") or metadata.get("buyer_email")},
                "metadata": metadata,
            }
        )
        self.payments[payment_id] = payment
        return payment


class Mailbox:
    """Records every email the app tries to send."""

    def __init__(self):
        self.sent = []

    async def send(self, to, subject, mjml_content, from_address=None):
        self.sent.append({"to": to, "subject": subject, "body": mjml_content})
        return {"id": f"email_{len(self.sent)}"}

    def to(self, address: str) -> list:
        return [m for m in self.sent if m["to"] == address]


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def payments():
    return FakePayments()


@pytest.fixture(autouse=True)
def mailbox(monkeypatch):
    box = Mailbox()
    monkeypatch.setattr(email_service, "send_email", box.send)
    return box


@pytest.fixture
def rate_limiter():
    return InMemoryRateLimiter()


@pytest.fixture
def app(database, payments, rate_limiter):
    return create_app(database=database, payments=payments, rate_limiter=rate_limiter)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(client, database):
    """Sign the client in as the owner with this email (created if needed)."""

    def _login(email: str, display_name: Optional[str] = None) -> str:
        with database.session() as db:
            owner_id = ClaimRepository.upsert_owner(db, email, display_name)
            db.commit()
            owner = db.get(Owner, owner_id)
            token = encode_session(owner)
        client.cookies.set(SESSION_COOKIE_NAME, token)
        return owner_id

    return _login


@pytest.fixture
def purchase(client, payments):
    """Pay for a unit through the redirect flow and return the confirmation response."""

    def _purchase(ts: str, email: str, **options):
        metadata = {"kind": "claim", "ts": ts, "email": email, "locale": "en"}
        metadata.update({k: str(v) for k, v in options.items()})
        payment = payments.succeed(metadata, amount=7900)
        response = client.get(
            "/checkout/confirm",
            params={"payment_id": payment["payment_id"]},
            follow_redirects=False,
        )
        return payment, response

    return _purchase


@pytest.fixture
def fetch_claim(database):
    """Fresh read of the claim stored at an exact timestamp."""

    def _fetch(ts: str) -> Optional[Claim]:
        with database.session() as db:
            claim = db.query(Claim).filter(Claim.ts == parse_ts(ts)).first()
            if claim is not None:
                db.expunge(claim)
            return claim

    return _fetch
