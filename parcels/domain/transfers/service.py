"""Transfer service - one-time transfer codes, peer transfer and gift codes"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ... import email_service
from ...config import CURRENCY
from ...database import transaction
from ...enums import TransferReason
from ...errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ...models import Owner
from ...security_utils import (
    generate_transfer_code,
    hash_transfer_code,
    normalize_transfer_code,
    sha256_hex,
)
from ...shared.timestamps import iso_utc, parse_ts, truncate_day, utc_now, utc_now_ms
from ..certificates.hashing import cert_path, cert_url, hash_for_claim, public_page_url
from ..claims.repository import ClaimRepository
from .repository import TransferRepository
from .schemas import GiftRedeemRequest, TransferRequest

logger = logging.getLogger(__name__)


def hash_gift_code(code: str) -> str:
    return sha256_hex(code.strip().upper())


class TransferService:
    """Service layer for ownership transfers"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TransferRepository()
        self.claims = ClaimRepository()

    def issue_code(self, owner: Owner, claim_id: str) -> dict:
        """
        Issue a fresh transfer code for a claim the caller owns. Any previous
        active code is revoked. The plain code is returned once and never stored.
        """
        code = generate_transfer_code()
        with transaction(self.db):
            # Lock order: claim row, then its tokens
            claim = self.claims.get_claim_by_id(self.db, claim_id, lock=True)
            if not claim:
                raise NotFoundError("not_found", "Claim not found")
            if claim.owner_id != owner.id:
                raise ForbiddenError("not_owner", "You do not own this claim")
            if not claim.cert_hash:
                claim.cert_hash = hash_for_claim(claim)

            revoked = self.claims.revoke_active_tokens(self.db, claim.id)
            self.repo.create_token(self.db, claim.id, hash_transfer_code(code))
            cert_hash = claim.cert_hash

        logger.info(f"🔑 Transfer code issued for claim {claim_id} ({revoked} previous revoked)")
        return {"claim_id": claim_id, "cert_hash": cert_hash, "code": code}

    def transfer(
        self,
        recipient: Owner,
        data: TransferRequest,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict:
        """Redeem a transfer code: the caller becomes the owner of the claim"""
        code_hash = hash_transfer_code(normalize_transfer_code(data.code))

        with transaction(self.db):
            # Lock order: claim row, then token
            claim = self.repo.lock_claim(self.db, data.claim_id, data.cert_hash)
            if not claim:
                raise NotFoundError("not_found", "Claim not found")

            token = self.repo.lock_token(self.db, claim.id, code_hash)
            if not token:
                raise ValidationError("invalid_code", "Invalid transfer code")
            if token.is_revoked:
                raise ValidationError("revoked", "This transfer code was revoked")
            if token.used_at is not None:
                raise ValidationError("already_used", "This transfer code was already used")

            previous_owner_id = claim.owner_id
            owner_changed = previous_owner_id != recipient.id
            if owner_changed:
                claim.owner_id = recipient.id
                self.claims.cancel_open_listings(self.db, claim.ts)

            token.used_at = utc_now()
            token.used_by_owner_id = recipient.id
            self.repo.add_history(
                self.db,
                claim_id=claim.id,
                ts=claim.ts,
                from_owner_id=previous_owner_id,
                to_owner_id=recipient.id,
                token_id=token.id,
                reason=TransferReason.TRANSFER,
                ip=ip,
                user_agent=(user_agent or "")[:500] or None,
            )
            ts = claim.ts

        logger.info(f"🔁 Claim {data.claim_id} transferred {previous_owner_id} -> {recipient.id}")
        return {"ok": True, "claim_id": data.claim_id, "ts": iso_utc(ts), "owner_changed": owner_changed}

    async def redeem_gift(self, data: GiftRedeemRequest) -> dict:
        """Claim a day for free with a gift code. A conflict leaves the code unconsumed."""
        day = truncate_day(parse_ts(data.ts))

        with transaction(self.db):
            gift = self.repo.lock_gift_code(self.db, hash_gift_code(data.code))
            if not gift:
                raise NotFoundError("invalid_code", "Unknown gift code")
            if gift.is_disabled:
                raise ForbiddenError("disabled_code", "This gift code is disabled")
            if gift.uses_count >= gift.max_uses:
                raise ForbiddenError("exhausted_code", "This gift code has been used up")
            if self.claims.day_is_taken(self.db, day):
                raise ConflictError("already_claimed", "This date is already claimed")

            owner_id = self.claims.upsert_owner(self.db, data.email, data.display_name)
            claim = self.claims.insert_claim_if_absent(
                self.db,
                ts=day,
                owner_id=owner_id,
                price_cents=0,
                currency=CURRENCY,
                columns=data.claim_columns(),
                created_at=utc_now_ms(),
            )
            if claim is None:
                raise ConflictError("already_claimed", "This date is already claimed")

            claim.cert_hash = hash_for_claim(claim)
            claim.cert_url = cert_path(claim.ts)
            if data.public_registry:
                self.claims.upsert_registry_entry(self.db, claim)
            self.repo.add_redemption(self.db, gift.id, claim)
            gift.uses_count += 1

            result = {
                "ok": True,
                "claim_id": claim.id,
                "ts": iso_utc(claim.ts),
                "cert_hash": claim.cert_hash,
                "cert_url": claim.cert_url,
            }

        logger.info(f"🎁 Gift code {gift.id} redeemed for {result['ts']}")
        await email_service.deliver_quietly(
            email_service.send_claim_receipt_email,
            to=data.email,
            ts_iso=result["ts"],
            public_url=public_page_url(day, data.locale),
            cert_url=cert_url(day),
            display_name=data.display_name,
        )
        return result
