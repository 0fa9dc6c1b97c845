"""Tests for checkout and purchase confirmation."""

import asyncio

import pytest

from parcels.domain.claims.repository import ClaimRepository
from parcels.domain.claims.schemas import ClaimOptions, PurchaseConfirmation
from parcels.domain.claims.service import ClaimService
from parcels.domain.certificates.hashing import hash_for_claim
from parcels.models import Claim, Owner, PaymentEvent
from parcels.shared.timestamps import parse_ts

TS = "2031-05-17T09:42:00.000Z"


def test_checkout_creates_session_with_claim_metadata(client, payments):
    """Checkout prices the minute and passes the options as string metadata."""
    response = client.post(
        "/checkout",
        json={
            "ts": "2031-05-17T09:42:37Z",
            "email": "Alice@Example.com",
            "display_name": "Alice",
            "title_public": "yes",
            "cert_style": "ROMANTIC",
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["url"].startswith("https://checkout.test/")
    assert body["ts"] == TS
    assert body["edition"] == "classic"
    assert body["price_cents"] == 7900

    session = payments.sessions[-1]
    assert session["amount_cents"] == 7900
    assert session["return_url"] == "https://parcels.test/checkout/confirm"
    metadata = session["metadata"]
    assert metadata["kind"] == "claim"
    assert metadata["email"] == "alice@example.com"
    assert metadata["title_public"] == "1"
    assert metadata["cert_style"] == "romantic"
    assert all(isinstance(v, str) for v in metadata.values())


def test_checkout_premium_minute(client):
    response = client.post("/checkout", json={"ts": "2032-02-29T11:11:00Z", "email": "a@example.com"})
    assert response.status_code == 200
    assert response.json()["edition"] == "premium"
    assert response.json()["price_cents"] == 79000


def test_checkout_rejects_taken_day(client, purchase):
    purchase(TS, "alice@example.com")
    response = client.post("/checkout", json={"ts": "2031-05-17T23:00:00Z", "email": "bob@example.com"})
    assert response.status_code == 409
    assert response.json()["error"] == "already_claimed"


def test_checkout_validation_error_shape(client):
    response = client.post("/checkout", json={"ts": "not-a-date", "email": "a@example.com"})
    assert response.status_code == 422
    assert response.json()["ok"] is False
    assert response.json()["error"] == "validation"


def test_confirm_creates_claim_and_redirects(purchase, fetch_claim, mailbox):
    """The redirect flow settles the payment and lands on the public page."""
    _, response = purchase(TS, "alice@example.com", display_name="Alice", title="Hello")
    assert response.status_code == 303
    assert response.headers["location"] == "https://parcels.test/en/m/2031-05-17T09%3A42%3A00.000Z?status=paid"

    claim = fetch_claim(TS)
    assert claim is not None
    assert claim.title == "Hello"
    assert claim.price_cents == 7900
    assert claim.cert_hash == hash_for_claim(claim)
    assert claim.cert_url == "/cert/2031-05-17T09%3A42%3A00.000Z"

    receipts = mailbox.to("alice@example.com")
    assert len(receipts) == 1
    assert receipts[0]["subject"] == f"Your certificate — {TS}"


def test_confirm_replay_is_idempotent(client, purchase, database, mailbox):
    """Replaying the same payment neither changes the claim nor sends a second email."""
    payment, _ = purchase(TS, "alice@example.com", title="First")
    replay = client.get(
        "/checkout/confirm", params={"payment_id": payment["payment_id"]}, follow_redirects=False
    )
    assert replay.status_code == 303
    assert "status=paid" in replay.headers["location"]

    with database.session() as db:
        assert db.query(Claim).count() == 1
        assert db.query(PaymentEvent).count() == 1
    assert len(mailbox.to("alice@example.com")) == 1


def test_confirm_requires_succeeded_payment(client, payments):
    payment = payments.succeed({"kind": "claim", "ts": TS, "email": "a@example.com"}, status="processing")
    response = client.get("/checkout/confirm", params={"payment_id": payment["payment_id"]})
    assert response.status_code == 400
    assert response.json()["error"] == "payment_not_completed"


def test_double_booking_keeps_first_owner(purchase, fetch_claim, database, mailbox):
    """Two paid sessions for the same minute: the later one never overwrites the owner."""
    purchase(TS, "alice@example.com", title="Alice's")
    first = fetch_claim(TS)

    _, response = purchase(TS, "bob@example.com", title="Bob's")
    assert response.status_code == 303
    assert "status=conflict" in response.headers["location"]

    claim = fetch_claim(TS)
    assert claim.owner_id == first.owner_id
    assert claim.title == "Alice's"
    assert claim.cert_hash == first.cert_hash
    assert mailbox.to("bob@example.com") == []


def test_same_owner_repurchase_refreshes_metadata_only(purchase, fetch_claim):
    purchase(TS, "alice@example.com", title="Old")
    before = fetch_claim(TS)
    purchase(TS, "alice@example.com", title="New")
    after = fetch_claim(TS)

    assert after.title == "New"
    assert after.owner_id == before.owner_id
    assert after.created_at == before.created_at
    assert after.cert_hash == before.cert_hash


def test_failed_settlement_leaves_no_guard(database, monkeypatch):
    """A failure inside the transaction rolls back the seen-event row, so a retry succeeds."""
    confirmation = PurchaseConfirmation(
        event_id="pay_retry",
        ts=parse_ts(TS),
        email="alice@example.com",
        amount_cents=7900,
        currency="EUR",
        options=ClaimOptions(),
    )

    def boom(*args, **kwargs):
        raise RuntimeError("database went away")

    with database.session() as db:
        monkeypatch.setattr(ClaimRepository, "upsert_claim", staticmethod(boom))
        with pytest.raises(RuntimeError):
            asyncio.run(ClaimService(db).settle_purchase(confirmation))
        monkeypatch.undo()

        assert db.query(PaymentEvent).count() == 0
        assert db.query(Owner).count() == 0

        result = asyncio.run(ClaimService(db).settle_purchase(confirmation))
        assert result.status == "created"
        assert db.query(PaymentEvent).count() == 1


def test_public_registry_option_creates_entry(client, purchase):
    purchase(TS, "alice@example.com", public_registry="1", title="Public", title_public="1")
    response = client.get("/registry")
    assert response.status_code == 200
    items = response.json()["items"]
    assert [item["title"] for item in items] == ["Public"]


def test_public_claim_view_hides_private_fields(client, purchase):
    purchase(TS, "alice@example.com", display_name="Alice", title="Shown", message="Hidden", title_public="1")
    response = client.get(f"/claim/by-ts/{TS}")
    assert response.status_code == 200
    body = response.json()
    assert body["owner_display_name"] == "Alice"
    assert body["title"] == "Shown"
    assert body["message"] is None

    assert client.get("/claim/by-ts/2031-05-17").json()["ts"] == TS
    assert client.get("/claim/by-ts/2031-05-18").status_code == 404
    assert client.get("/claim/by-ts/garbage").status_code == 400
