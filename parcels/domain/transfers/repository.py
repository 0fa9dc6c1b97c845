"""Transfer repository - tokens, history and gift codes"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Claim, GiftCode, GiftRedemption, TransferHistory, TransferToken


class TransferRepository:
    """Repository for transfer database operations"""

    @staticmethod
    def lock_claim(db: Session, claim_id: str, cert_hash: str) -> Optional[Claim]:
        return (
            db.query(Claim)
            .filter(Claim.id == claim_id, Claim.cert_hash == cert_hash)
            .with_for_update()
            .first()
        )

    @staticmethod
    def lock_token(db: Session, claim_id: str, code_hash: str) -> Optional[TransferToken]:
        return (
            db.query(TransferToken)
            .filter(TransferToken.claim_id == claim_id, TransferToken.code_hash == code_hash)
            .order_by(TransferToken.created_at.desc())
            .with_for_update()
            .first()
        )

    @staticmethod
    def create_token(db: Session, claim_id: str, code_hash: str) -> TransferToken:
        token = TransferToken(claim_id=claim_id, code_hash=code_hash)
        db.add(token)
        db.flush()
        return token

    @staticmethod
    def add_history(db: Session, **fields) -> TransferHistory:
        entry = TransferHistory(**fields)
        db.add(entry)
        return entry

    @staticmethod
    def lock_gift_code(db: Session, code_hash: str) -> Optional[GiftCode]:
        return db.query(GiftCode).filter(GiftCode.code_hash == code_hash).with_for_update().first()

    @staticmethod
    def add_redemption(db: Session, gift_code_id: int, claim: Claim) -> GiftRedemption:
        redemption = GiftRedemption(
            gift_code_id=gift_code_id, claim_id=claim.id, owner_id=claim.owner_id, ts=claim.ts
        )
        db.add(redemption)
        return redemption
