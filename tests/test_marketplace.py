"""Tests for marketplace listings and resale settlement."""

import asyncio

import pytest

from parcels.domain.claims.schemas import ClaimOptions
from parcels.domain.marketplace.schemas import SaleConfirmation
from parcels.domain.marketplace.service import MarketplaceService, platform_fee
from parcels.enums import ListingStatus, TransferReason
from parcels.models import Claim, Listing, SecondarySale, TransferHistory, TransferToken

TS = "2035-06-21T08:15:00.000Z"
DAY = "2035-06-21"


@pytest.fixture
def seller(purchase, login, client):
    purchase(TS, "seller@example.com", display_name="Sam")
    owner_id = login("seller@example.com")
    assert client.post("/account/merchant", json={"merchant_account_id": "mrc_123"}).status_code == 200
    return owner_id


def create_listing(client, price_cents=25000, **extra):
    response = client.post("/marketplace/listing", json={"ts": DAY, "price_cents": price_cents, **extra})
    assert response.status_code == 200, response.text
    return response.json()["listing"]


@pytest.mark.parametrize(
    "price, fee",
    [(500, 100), (1000, 100), (1001, 100), (2500, 250), (25099, 2509)],
)
def test_platform_fee(price, fee):
    assert platform_fee(price) == fee


def test_listing_requires_ownership(client, seller, login):
    login("stranger@example.com")
    response = client.post("/marketplace/listing", json={"ts": DAY, "price_cents": 5000})
    assert response.status_code == 403
    assert response.json()["error"] == "not_owner"


def test_listing_minimum_price(client, seller):
    response = client.post("/marketplace/listing", json={"ts": DAY, "price_cents": 99})
    assert response.status_code == 422


def test_relisting_updates_existing_listing(client, seller, database):
    first = create_listing(client, 5000)
    second = create_listing(client, 7000, hide_claim_details="on")
    assert second["id"] == first["id"]
    assert second["price_cents"] == 7000
    assert second["currency"] == "EUR"
    assert second["status"] == "active"
    assert second["hide_claim_details"] is True

    with database.session() as db:
        assert db.query(Listing).count() == 1


def test_listing_state_machine(client, seller):
    listing = create_listing(client)
    url = f"/marketplace/listing/{listing['id']}/status"

    assert client.post(url, json={"action": "pause"}).json()["listing"]["status"] == "paused"

    response = client.post(url, json={"action": "pause"})
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_transition"

    assert client.post(url, json={"action": "resume"}).json()["listing"]["status"] == "active"
    assert client.post(url, json={"action": "cancel"}).json()["listing"]["status"] == "cancelled"

    for action in ("pause", "resume", "cancel"):
        assert client.post(url, json={"action": action}).status_code == 400


def test_only_seller_changes_status(client, seller, login):
    listing = create_listing(client)
    login("stranger@example.com")
    response = client.post(f"/marketplace/listing/{listing['id']}/status", json={"action": "cancel"})
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


def test_listing_by_day(client, seller):
    create_listing(client, 12345)
    response = client.get(f"/marketplace/by-ts/{DAY}")
    assert response.status_code == 200
    assert response.json()["price_cents"] == 12345
    assert response.json()["seller_display_name"] == "Sam"

    assert client.get("/marketplace/by-ts/2035-06-22").status_code == 404


def test_checkout_rules(client, seller, payments, login, database):
    listing = create_listing(client, 25000)

    response = client.post(
        "/marketplace/checkout", json={"listing_id": listing["id"], "email": "seller@example.com"}
    )
    assert response.status_code == 400

    response = client.post(
        "/marketplace/checkout", json={"listing_id": listing["id"], "email": "buyer@example.com"}
    )
    assert response.status_code == 200
    assert response.json()["fee_cents"] == 2500
    metadata = payments.sessions[-1]["metadata"]
    assert metadata["kind"] == "secondary"
    assert metadata["listing_id"] == str(listing["id"])
    assert metadata["fee_cents"] == "2500"
    assert metadata["seller_merchant_account_id"] == "mrc_123"
    assert payments.sessions[-1]["amount_cents"] == 25000

    client.post(f"/marketplace/listing/{listing['id']}/status", json={"action": "pause"})
    response = client.post(
        "/marketplace/checkout", json={"listing_id": listing["id"], "email": "buyer@example.com"}
    )
    assert response.status_code == 409
    assert response.json()["error"] == "not_available"


def test_checkout_requires_onboarded_seller(client, purchase, login):
    purchase(TS, "seller@example.com")
    login("seller@example.com")
    listing = create_listing(client)
    response = client.post(
        "/marketplace/checkout", json={"listing_id": listing["id"], "email": "buyer@example.com"}
    )
    assert response.status_code == 409
    assert response.json()["error"] == "seller_not_onboarded"


def test_sale_settlement_hands_over_the_day(client, seller, payments, database, mailbox):
    listing = create_listing(client, 25000)
    claim_id = client.get("/account/claims").json()["claims"][0]["claim_id"]
    client.post(f"/claim/{claim_id}/transfer-code")

    payment = payments.succeed(
        {
            "kind": "secondary",
            "listing_id": str(listing["id"]),
            "buyer_email": "buyer@example.com",
            "display_name": "Bea",
            "title": "Mine now",
        },
        amount=25000,
    )
    response = client.get(
        "/marketplace/confirm", params={"payment_id": payment["payment_id"]}, follow_redirects=False
    )
    assert response.status_code == 303
    assert "status=paid" in response.headers["location"]

    with database.session() as db:
        claim = db.query(Claim).one()
        assert claim.owner.email == "buyer@example.com"
        assert claim.title == "Mine now"
        assert claim.price_cents == 25000
        assert claim.last_secondary_price_cents == 25000
        assert claim.last_secondary_sold_at is not None

        listing_row = db.query(Listing).one()
        assert listing_row.status == ListingStatus.SOLD
        assert listing_row.buyer_owner_id == claim.owner_id

        sale = db.query(SecondarySale).one()
        assert (sale.gross_cents, sale.fee_cents, sale.net_cents) == (25000, 2500, 22500)
        assert sale.payment_id == payment["payment_id"]

        history = db.query(TransferHistory).one()
        assert history.reason == TransferReason.SALE
        assert all(token.is_revoked for token in db.query(TransferToken).all())

    assert len(mailbox.to("seller@example.com")) == 2  # purchase receipt, then sale notice
    assert mailbox.to("seller@example.com")[-1]["subject"] == f"Sold — {DAY}"


def test_sale_replay_is_noop(client, seller, database):
    listing = create_listing(client, 25000)
    confirmation = SaleConfirmation(
        event_id="pay_sale_1",
        listing_id=listing["id"],
        buyer_email="buyer@example.com",
        amount_cents=25000,
        currency="EUR",
        options=ClaimOptions(),
    )
    with database.session() as db:
        first = asyncio.run(MarketplaceService(db).settle_sale(confirmation))
        second = asyncio.run(MarketplaceService(db).settle_sale(confirmation))
        assert first.status == "sold"
        assert second.duplicate
        assert db.query(SecondarySale).count() == 1
        assert db.query(TransferHistory).count() == 1


def test_sale_of_inactive_listing_is_noop(client, seller, database):
    listing = create_listing(client, 25000)
    client.post(f"/marketplace/listing/{listing['id']}/status", json={"action": "cancel"})
    confirmation = SaleConfirmation(
        event_id="pay_sale_2",
        listing_id=listing["id"],
        buyer_email="buyer@example.com",
        amount_cents=25000,
        currency="EUR",
        options=ClaimOptions(),
    )
    with database.session() as db:
        result = asyncio.run(MarketplaceService(db).settle_sale(confirmation))
        assert result.status == "not_available"
        assert db.query(Claim).one().owner.email == "seller@example.com"
        assert db.query(SecondarySale).count() == 0


def test_new_owner_listing_cancels_stale_listing(client, seller, login, database):
    """A listing left by a previous owner is cancelled when the new owner lists the day."""
    create_listing(client, 5000)
    next_owner_id = login("next@example.com")
    with database.session() as db:
        db.query(Claim).one().owner_id = next_owner_id
        db.commit()

    create_listing(client, 9000)
    with database.session() as db:
        statuses = sorted(listing.status.value for listing in db.query(Listing).all())
        assert statuses == ["active", "cancelled"]


def test_confirm_after_settlement_still_redirects(client, seller, payments):
    """The buyer usually returns after the webhook already settled the sale."""
    listing = create_listing(client, 25000)
    payment = payments.succeed(
        {"kind": "secondary", "listing_id": str(listing["id"]), "buyer_email": "buyer@example.com"},
        amount=25000,
    )
    params = {"payment_id": payment["payment_id"]}

    first = client.get("/marketplace/confirm", params=params, follow_redirects=False)
    second = client.get("/marketplace/confirm", params=params, follow_redirects=False)
    assert first.status_code == second.status_code == 303
    assert second.headers["location"] == first.headers["location"]
    assert second.headers["location"].endswith("?status=paid")


def test_settlement_locks_claims_before_listing(client, seller, database, monkeypatch):
    from parcels.domain.claims.repository import ClaimRepository
    from parcels.domain.marketplace.repository import MarketplaceRepository

    listing = create_listing(client, 25000)
    locks = []
    claims_for_day = ClaimRepository.claims_for_day
    get_listing = MarketplaceRepository.get_listing

    def recording_claims_for_day(db, ts, lock=False):
        if lock:
            locks.append("claim")
        return claims_for_day(db, ts, lock=lock)

    def recording_get_listing(db, listing_id, lock=False):
        if lock:
            locks.append("listing")
        return get_listing(db, listing_id, lock=lock)

    monkeypatch.setattr(ClaimRepository, "claims_for_day", staticmethod(recording_claims_for_day))
    monkeypatch.setattr(MarketplaceRepository, "get_listing", staticmethod(recording_get_listing))

    confirmation = SaleConfirmation(
        event_id="pay_sale_3",
        listing_id=listing["id"],
        buyer_email="buyer@example.com",
        amount_cents=25000,
        currency="EUR",
        options=ClaimOptions(),
    )
    with database.session() as db:
        result = asyncio.run(MarketplaceService(db).settle_sale(confirmation))

    assert result.status == "sold"
    assert locks == ["claim", "listing"]
