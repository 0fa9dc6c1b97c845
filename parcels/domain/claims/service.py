"""Claim service - purchase, confirmation, release and owner edits"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ... import email_service
from ...config import PUBLIC_BASE_URL
from ...database import transaction
from ...errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ...models import Claim, Owner
from ...shared.timestamps import iso_utc, parse_ts, truncate_minute, utc_now_ms, ymd
from ..billing.dodo_service import PAYMENT_SUCCEEDED
from ..certificates.hashing import cert_path, cert_url, hash_for_claim, public_page_url
from .pricing import price_for
from .repository import ClaimRepository
from .schemas import (
    CheckoutRequest,
    ClaimEditRequest,
    ClaimOptions,
    PurchaseConfirmation,
    ReleaseRequest,
    SettlementResult,
    normalize_locale,
)

logger = logging.getLogger(__name__)

CLAIM_KIND = "claim"


def confirmation_from_payment(payment: dict) -> PurchaseConfirmation:
    """Build the settlement input from a normalized provider payment"""
    metadata = payment.get("metadata") or {}
    if metadata.get("kind") != CLAIM_KIND or not metadata.get("ts"):
        raise ValidationError("invalid_metadata", "Payment is not a claim purchase")
    email = (metadata.get("email") or payment.get("email") or "").strip().lower()
    if not email:
        raise ValidationError("invalid_metadata", "Payment has no buyer email")

    try:
        ts = truncate_minute(parse_ts(metadata["ts"]))
    except ValueError as e:
        raise ValidationError("invalid_ts", "Payment carries an invalid timestamp") from e

    amount = payment.get("total_amount")
    currency = payment.get("currency")
    if amount is None:
        price = price_for(ts)
        amount, currency = price.price_cents, price.currency

    return PurchaseConfirmation(
        event_id=payment["payment_id"],
        ts=ts,
        email=email,
        amount_cents=int(amount),
        currency=(currency or "EUR").upper(),
        options=ClaimOptions.from_metadata(metadata),
        locale=normalize_locale(metadata.get("locale")),
    )


class ClaimService:
    """Service layer for claim business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ClaimRepository()

    # ========================================================================
    # CHECKOUT
    # ========================================================================

    async def create_checkout(self, data: CheckoutRequest, payments) -> dict:
        ts = truncate_minute(parse_ts(data.ts))
        if self.repo.day_is_taken(self.db, ts):
            raise ConflictError("already_claimed", "This date is already claimed")

        price = price_for(ts)
        ts_iso = iso_utc(ts)
        metadata = {
            "kind": CLAIM_KIND,
            "ts": ts_iso,
            "email": data.email,
            "locale": data.locale,
            **data.to_metadata(),
        }

        session = await payments.create_checkout_session(
            amount_cents=price.price_cents,
            customer_email=data.email,
            return_url=f"{PUBLIC_BASE_URL}/checkout/confirm",
            metadata=metadata,
            customer_name=data.display_name,
        )
        logger.info(f"🛒 Checkout created for {ts_iso} ({price.edition.value}, {price.price_cents})")
        return {
            "url": session["checkout_url"],
            "session_id": session.get("session_id"),
            "ts": ts_iso,
            "edition": price.edition.value,
            "price_cents": price.price_cents,
            "currency": price.currency,
        }

    async def confirm_checkout(self, payment_id: str, payments) -> tuple[SettlementResult, str]:
        """Redirect flow: verify the payment with the provider, then settle it"""
        payment = await payments.retrieve_payment(payment_id)
        if payment.get("status") != PAYMENT_SUCCEEDED:
            logger.warning(f"⚠️ Payment {payment_id} not completed (status={payment.get('status')})")
            raise ValidationError("payment_not_completed", "Payment has not succeeded")

        confirmation = confirmation_from_payment(payment)
        result = await self.settle_purchase(confirmation)
        return result, confirmation.locale

    # ========================================================================
    # PURCHASE CONFIRMATION
    # ========================================================================

    async def settle_purchase(self, confirmation: PurchaseConfirmation) -> SettlementResult:
        """
        Record a confirmed payment as a claim. Used by both the redirect flow and
        the webhook, and safe to replay: the payment id is recorded in the same
        transaction, so a replay is a no-op and a failed attempt leaves no trace.
        """
        options = confirmation.options
        ts_iso = iso_utc(confirmation.ts)

        with transaction(self.db):
            if not self.repo.record_payment_event(self.db, confirmation.event_id, CLAIM_KIND):
                logger.info(f"🔄 Payment {confirmation.event_id} already settled, skipping")
                return SettlementResult(status="duplicate", ts=confirmation.ts)

            owner_id = self.repo.upsert_owner(self.db, confirmation.email, options.display_name)
            claim = self.repo.upsert_claim(
                self.db,
                ts=confirmation.ts,
                owner_id=owner_id,
                price_cents=confirmation.amount_cents,
                currency=confirmation.currency,
                columns=options.claim_columns(),
                created_at=utc_now_ms(),
            )

            if claim.owner_id != owner_id:
                logger.warning(
                    f"⚠️ Double booking on {ts_iso}: payment {confirmation.event_id} lost the race, owner kept"
                )
                result = SettlementResult(
                    status="conflict",
                    ts=claim.ts,
                    claim_id=claim.id,
                    owner_id=claim.owner_id,
                    cert_hash=claim.cert_hash,
                    cert_url=claim.cert_url,
                )
            else:
                status = "created" if claim.cert_hash is None else "updated"
                claim.cert_hash = hash_for_claim(claim)
                claim.cert_url = cert_path(claim.ts)
                if options.public_registry:
                    self.repo.upsert_registry_entry(self.db, claim)
                result = SettlementResult(
                    status=status,
                    ts=claim.ts,
                    claim_id=claim.id,
                    owner_id=owner_id,
                    cert_hash=claim.cert_hash,
                    cert_url=claim.cert_url,
                )

        logger.info(f"✅ Purchase {confirmation.event_id} settled for {ts_iso}: {result.status}")

        if result.status != "conflict":
            await email_service.deliver_quietly(
                email_service.send_claim_receipt_email,
                to=confirmation.email,
                ts_iso=ts_iso,
                public_url=public_page_url(confirmation.ts, confirmation.locale),
                cert_url=cert_url(confirmation.ts),
                display_name=options.display_name,
                amount_cents=confirmation.amount_cents,
                currency=confirmation.currency,
            )
        return result

    # ========================================================================
    # RELEASE
    # ========================================================================

    def release_day(self, owner: Owner, data: ReleaseRequest) -> dict:
        """Give a day back: registry entry, listings, tokens and claim rows are deleted"""
        day = parse_ts(data.ts)

        with transaction(self.db):
            claims = self.repo.claims_for_day(self.db, day, lock=True)
            if not claims:
                raise NotFoundError("not_found", "Nothing is claimed on that day")
            if any(claim.owner_id != owner.id for claim in claims):
                raise ForbiddenError("not_owner", "You do not own this day")

            self.repo.delete_day(self.db, day, [claim.id for claim in claims])

        logger.info(f"🗑️ Owner {owner.id} released {ymd(day)}")
        return {"ok": True, "next": f"/{data.locale}/account?freed={ymd(day)}"}

    # ========================================================================
    # OWNER VIEWS AND EDITS
    # ========================================================================

    def find_claim(self, ts_value: str, lock: bool = False) -> Optional[Claim]:
        try:
            return self.repo.find_claim(self.db, ts_value, lock=lock)
        except ValueError as e:
            raise ValidationError("invalid_ts", "Invalid timestamp") from e

    def get_claim_or_404(self, ts_value: str, lock: bool = False) -> Claim:
        claim = self.find_claim(ts_value, lock=lock)
        if not claim:
            raise NotFoundError("not_found", "Claim not found")
        return claim

    def get_owned_claim(self, owner: Owner, ts_value: str, lock: bool = False) -> Claim:
        claim = self.get_claim_or_404(ts_value, lock=lock)
        if claim.owner_id != owner.id:
            raise ForbiddenError("not_owner", "You do not own this claim")
        return claim

    def edit_claim(self, owner: Owner, data: ClaimEditRequest) -> Claim:
        """Update certificate options. The hash binds immutable facts only and is kept."""
        updates = data.updates()
        public_registry = updates.pop("public_registry", None)

        with transaction(self.db):
            claim = self.get_owned_claim(owner, data.ts, lock=True)
            for field, value in updates.items():
                setattr(claim, field, value)
            if public_registry is True:
                self.repo.upsert_registry_entry(self.db, claim)
            elif public_registry is False:
                self.repo.delete_registry_entry(self.db, claim.ts)

        self.db.refresh(claim)
        return claim

    def set_registry_visibility(self, owner: Owner, ts_value: str, public: bool) -> dict:
        with transaction(self.db):
            claim = self.get_owned_claim(owner, ts_value, lock=True)
            if public:
                self.repo.upsert_registry_entry(self.db, claim)
            else:
                self.repo.delete_registry_entry(self.db, claim.ts)
            ts = claim.ts
        return {"ok": True, "ts": iso_utc(ts), "public": public}

    def get_public_claim(self, ts_value: str) -> dict:
        claim = self.get_claim_or_404(ts_value)
        listing = self.repo.active_listing_for_day(self.db, claim.ts)
        return serialize_public_claim(claim, listing)

    def list_owner_claims(self, owner: Owner) -> list[dict]:
        claims = self.repo.list_owner_claims(self.db, owner.id)
        items = []
        for claim in claims:
            listing = self.repo.active_listing_for_day(self.db, claim.ts)
            item = serialize_owner_claim(claim)
            item["listing"] = serialize_listing_summary(listing) if listing and listing.seller_owner_id == owner.id else None
            items.append(item)
        return items


def serialize_listing_summary(listing) -> Optional[dict]:
    if listing is None:
        return None
    return {
        "id": listing.id,
        "price_cents": listing.price_cents,
        "currency": listing.currency,
        "status": listing.status.value,
    }


def serialize_public_claim(claim: Claim, listing=None) -> dict:
    """Public page data; title/message only when the owner made them public"""
    owner = claim.owner
    return {
        "claim_id": claim.id,
        "ts": iso_utc(claim.ts),
        "owner_display_name": owner.display_name if owner else None,
        "title": claim.title if claim.title_public else None,
        "message": claim.message if claim.message_public else None,
        "cert_style": claim.cert_style.value,
        "time_display": claim.time_display.value,
        "local_date_only": claim.local_date_only,
        "text_color": claim.text_color,
        "cert_url": claim.cert_url,
        "listing": serialize_listing_summary(listing),
    }


def serialize_owner_claim(claim: Claim) -> dict:
    return {
        "claim_id": claim.id,
        "ts": iso_utc(claim.ts),
        "price_cents": claim.price_cents,
        "currency": claim.currency,
        "title": claim.title,
        "message": claim.message,
        "link_url": claim.link_url,
        "cert_style": claim.cert_style.value,
        "time_display": claim.time_display.value,
        "local_date_only": claim.local_date_only,
        "text_color": claim.text_color,
        "title_public": claim.title_public,
        "message_public": claim.message_public,
        "cert_hash": claim.cert_hash,
        "cert_url": claim.cert_url,
        "created_at": iso_utc(claim.created_at),
    }
