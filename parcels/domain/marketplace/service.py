"""Marketplace service - listing lifecycle and resale settlement"""

import logging
import math

from sqlalchemy.orm import Session

from ... import email_service
from ...config import PLATFORM_FEE_MIN_CENTS, PLATFORM_FEE_RATE, PUBLIC_BASE_URL
from ...database import transaction
from ...enums import ListingAction, ListingStatus, TransferReason
from ...errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ...models import Owner
from ...shared.timestamps import iso_utc, parse_ts, truncate_day, utc_now, ymd
from ..billing.dodo_service import PAYMENT_SUCCEEDED
from ..certificates.hashing import cert_url, public_page_url
from ..claims.repository import ClaimRepository
from ..claims.schemas import ClaimOptions, SettlementResult, normalize_locale
from ..transfers.repository import TransferRepository
from .repository import MarketplaceRepository
from .schemas import (
    ListingCreateRequest,
    MarketplaceCheckoutRequest,
    SaleConfirmation,
)

logger = logging.getLogger(__name__)

SECONDARY_KIND = "secondary"

# action -> (allowed source statuses, target status)
TRANSITIONS = {
    ListingAction.PAUSE: ((ListingStatus.ACTIVE,), ListingStatus.PAUSED),
    ListingAction.RESUME: ((ListingStatus.PAUSED,), ListingStatus.ACTIVE),
    ListingAction.CANCEL: ((ListingStatus.ACTIVE, ListingStatus.PAUSED), ListingStatus.CANCELLED),
}


def platform_fee(price_cents: int) -> int:
    return max(PLATFORM_FEE_MIN_CENTS, math.floor(price_cents * PLATFORM_FEE_RATE))


def sale_from_payment(payment: dict) -> SaleConfirmation:
    """Build the sale settlement input from a normalized provider payment"""
    metadata = payment.get("metadata") or {}
    if metadata.get("kind") != SECONDARY_KIND or not metadata.get("listing_id"):
        raise ValidationError("invalid_metadata", "Payment is not a marketplace purchase")
    buyer_email = (metadata.get("buyer_email") or payment.get("email") or "").strip().lower()
    if not buyer_email:
        raise ValidationError("invalid_metadata", "Payment has no buyer email")
    try:
        listing_id = int(metadata["listing_id"])
    except (TypeError, ValueError) as e:
        raise ValidationError("invalid_metadata", "Payment carries an invalid listing id") from e

    return SaleConfirmation(
        event_id=payment["payment_id"],
        listing_id=listing_id,
        buyer_email=buyer_email,
        amount_cents=payment.get("total_amount"),
        currency=payment.get("currency"),
        options=ClaimOptions.from_metadata(metadata),
        locale=normalize_locale(metadata.get("locale")),
    )


class MarketplaceService:
    """Service layer for marketplace business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = MarketplaceRepository()
        self.claims = ClaimRepository()
        self.transfers = TransferRepository()

    # ========================================================================
    # LISTINGS
    # ========================================================================

    def upsert_listing(self, seller: Owner, data: ListingCreateRequest) -> dict:
        """
        List the seller's day for sale. Listings left behind by previous owners
        of the same day are cancelled; the seller's own listing is reactivated
        with the new price rather than duplicated.
        """
        day = truncate_day(parse_ts(data.ts))

        with transaction(self.db):
            owned = [c for c in self.claims.claims_for_day(self.db, day, lock=True) if c.owner_id == seller.id]
            if not owned:
                raise ForbiddenError("not_owner", "You do not own this day")

            listings = self.repo.lock_listings_for_day(self.db, day)
            mine = None
            for listing in listings:
                if listing.seller_owner_id != seller.id:
                    if self.repo.is_open(listing):
                        listing.status = ListingStatus.CANCELLED
                elif listing.status != ListingStatus.SOLD:
                    mine = listing

            if mine is None:
                mine = self.repo.create_listing(
                    self.db,
                    ts=day,
                    seller_owner_id=seller.id,
                    price_cents=data.price_cents,
                    currency=data.currency,
                    status=ListingStatus.ACTIVE,
                    hide_claim_details=data.hide_claim_details,
                )
            else:
                mine.price_cents = data.price_cents
                mine.currency = data.currency
                mine.hide_claim_details = data.hide_claim_details
                mine.status = ListingStatus.ACTIVE
            self.db.flush()
            result = serialize_listing(mine)

        logger.info(f"🏷️ Listing {result['id']} active for {ymd(day)} at {data.price_cents}")
        return result

    def change_status(self, seller: Owner, listing_id: int, action: ListingAction) -> dict:
        allowed, target = TRANSITIONS[action]
        with transaction(self.db):
            listing = self.repo.get_listing(self.db, listing_id, lock=True)
            if not listing:
                raise NotFoundError("not_found", "Listing not found")
            if listing.seller_owner_id != seller.id:
                raise ForbiddenError("forbidden", "Only the seller can change this listing")
            if listing.status not in allowed:
                raise ValidationError(
                    "invalid_transition",
                    f"Cannot {action.value} a listing that is {listing.status.value}",
                )
            listing.status = target
            result = serialize_listing(listing)

        logger.info(f"🏷️ Listing {listing_id}: {action.value} -> {target.value}")
        return result

    def get_listing_for_day(self, ts_value: str) -> dict:
        try:
            day = parse_ts(ts_value)
        except ValueError as e:
            raise ValidationError("invalid_ts", "Invalid timestamp") from e
        listing = self.claims.active_listing_for_day(self.db, day)
        if not listing:
            raise NotFoundError("not_found", "No active listing for this day")
        result = serialize_listing(listing)
        result["seller_display_name"] = listing.seller.display_name if listing.seller else None
        return result

    def set_merchant_account(self, owner: Owner, merchant_account_id: str) -> dict:
        with transaction(self.db):
            owner = self.db.query(Owner).filter(Owner.id == owner.id).with_for_update().one()
            owner.merchant_account_id = merchant_account_id
        logger.info(f"✅ Merchant reference recorded for owner {owner.id}")
        return {"ok": True, "merchant_account_id": merchant_account_id}

    # ========================================================================
    # RESALE CHECKOUT
    # ========================================================================

    async def create_checkout(self, data: MarketplaceCheckoutRequest, payments) -> dict:
        listing = self.repo.get_listing(self.db, data.listing_id)
        if not listing or listing.status != ListingStatus.ACTIVE:
            raise ConflictError("not_available", "This listing is not available")
        seller = listing.seller
        if not seller or not seller.merchant_account_id:
            raise ConflictError("seller_not_onboarded", "The seller cannot receive payouts yet")
        if seller.email == data.email:
            raise ValidationError("own_listing", "You cannot buy your own listing")

        fee_cents = platform_fee(listing.price_cents)
        ts_iso = iso_utc(listing.ts)
        metadata = {
            "kind": SECONDARY_KIND,
            "listing_id": str(listing.id),
            "ts": ts_iso,
            "buyer_email": data.email,
            "fee_cents": str(fee_cents),
            "seller_merchant_account_id": seller.merchant_account_id,
            "locale": data.locale,
            **data.to_metadata(),
        }

        session = await payments.create_checkout_session(
            amount_cents=listing.price_cents,
            customer_email=data.email,
            return_url=f"{PUBLIC_BASE_URL}/marketplace/confirm",
            metadata=metadata,
            customer_name=data.display_name,
        )
        logger.info(f"🛒 Resale checkout created for listing {listing.id} ({listing.price_cents}, fee {fee_cents})")
        return {
            "url": session["checkout_url"],
            "session_id": session.get("session_id"),
            "listing_id": listing.id,
            "ts": ts_iso,
            "price_cents": listing.price_cents,
            "fee_cents": fee_cents,
            "currency": listing.currency,
        }

    async def confirm_checkout(self, payment_id: str, payments) -> tuple[SettlementResult, str]:
        payment = await payments.retrieve_payment(payment_id)
        if payment.get("status") != PAYMENT_SUCCEEDED:
            logger.warning(f"⚠️ Payment {payment_id} not completed (status={payment.get('status')})")
            raise ValidationError("payment_not_completed", "Payment has not succeeded")
        confirmation = sale_from_payment(payment)
        result = await self.settle_sale(confirmation)
        return result, confirmation.locale

    # ========================================================================
    # SALE SETTLEMENT
    # ========================================================================

    async def settle_sale(self, confirmation: SaleConfirmation) -> SettlementResult:
        """
        Hand a listed day over to the buyer. Safe to replay: the payment id is
        recorded in the same transaction, and a listing that is no longer
        active turns the settlement into a no-op.
        """
        options = confirmation.options

        with transaction(self.db):
            if not self.claims.record_payment_event(self.db, confirmation.event_id, SECONDARY_KIND):
                logger.info(f"🔄 Payment {confirmation.event_id} already settled, skipping")
                listing = self.repo.get_listing(self.db, confirmation.listing_id)
                return SettlementResult(status="duplicate", ts=listing.ts if listing else None)

            # Lock order: claim rows of the day, then the listing
            listing = self.repo.get_listing(self.db, confirmation.listing_id)
            if not listing:
                logger.warning(f"⚠️ Sale {confirmation.event_id}: listing {confirmation.listing_id} not found")
                return SettlementResult(status="not_available")
            claims = self.claims.claims_for_day(self.db, listing.ts, lock=True)
            listing = self.repo.get_listing(self.db, listing.id, lock=True)
            if listing.status != ListingStatus.ACTIVE:
                logger.warning(
                    f"⚠️ Sale {confirmation.event_id}: listing {confirmation.listing_id} not active, nothing to do"
                )
                return SettlementResult(status="not_available", ts=listing.ts)

            claim = next((c for c in claims if c.owner_id == listing.seller_owner_id), None)
            if claim is None:
                logger.warning(f"⚠️ Sale {confirmation.event_id}: seller no longer owns {ymd(listing.ts)}")
                listing.status = ListingStatus.CANCELLED
                return SettlementResult(status="not_available", ts=listing.ts)

            buyer_id = self.claims.upsert_owner(self.db, confirmation.buyer_email, options.display_name)
            seller = listing.seller
            gross = listing.price_cents
            fee = platform_fee(gross)
            currency = (confirmation.currency or listing.currency).upper()
            now = utc_now()

            claim.owner_id = buyer_id
            claim.price_cents = gross
            claim.last_secondary_sold_at = now
            claim.last_secondary_price_cents = gross
            for field, value in options.claim_columns().items():
                setattr(claim, field, value)
            if options.public_registry:
                self.claims.upsert_registry_entry(self.db, claim)

            self.claims.revoke_active_tokens(self.db, claim.id)
            listing.status = ListingStatus.SOLD
            listing.buyer_owner_id = buyer_id

            self.repo.add_sale(
                self.db,
                listing_id=listing.id,
                ts=listing.ts,
                seller_owner_id=listing.seller_owner_id,
                buyer_owner_id=buyer_id,
                gross_cents=gross,
                fee_cents=fee,
                net_cents=gross - fee,
                currency=currency,
                payment_id=confirmation.event_id,
            )
            self.transfers.add_history(
                self.db,
                claim_id=claim.id,
                ts=claim.ts,
                from_owner_id=listing.seller_owner_id,
                to_owner_id=buyer_id,
                reason=TransferReason.SALE,
            )

            result = SettlementResult(
                status="sold",
                ts=claim.ts,
                claim_id=claim.id,
                owner_id=buyer_id,
                cert_hash=claim.cert_hash,
                cert_url=claim.cert_url,
            )
            seller_email = seller.email if seller else None

        ts_iso = iso_utc(result.ts)
        logger.info(f"✅ Sale {confirmation.event_id} settled: {ymd(result.ts)} -> {buyer_id}")

        if seller_email:
            await email_service.deliver_quietly(
                email_service.send_listing_sold_email,
                to=seller_email,
                ts_label=ymd(result.ts),
                gross_cents=gross,
                net_cents=gross - fee,
                currency=currency,
            )
        await email_service.deliver_quietly(
            email_service.send_claim_receipt_email,
            to=confirmation.buyer_email,
            ts_iso=ts_iso,
            public_url=public_page_url(result.ts, confirmation.locale),
            cert_url=cert_url(result.ts),
            display_name=options.display_name,
            amount_cents=gross,
            currency=currency,
        )
        return result


def serialize_listing(listing) -> dict:
    return {
        "id": listing.id,
        "ts": ymd(listing.ts),
        "price_cents": listing.price_cents,
        "currency": listing.currency,
        "status": listing.status.value,
        "hide_claim_details": listing.hide_claim_details,
    }
