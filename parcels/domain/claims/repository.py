"""Claim repository - Database operations for owners, claims and registry entries"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...database import upsert
from ...enums import OPEN_LISTING_STATUSES, ListingStatus
from ...models import Claim, Listing, Owner, PaymentEvent, RegistryEntry, TransferToken
from ...shared.timestamps import day_range, is_day_string, parse_ts


class ClaimRepository:
    """Repository for claim database operations"""

    @staticmethod
    def record_payment_event(db: Session, event_id: str, kind: str) -> bool:
        """
        Insert the event id into the seen-events table.

        Returns:
            False when the event was already recorded (replay)
        """
        stmt = (
            upsert(db, PaymentEvent)
            .values(id=event_id, kind=kind)
            .on_conflict_do_nothing(index_elements=[PaymentEvent.id])
        )
        return db.execute(stmt).rowcount == 1

    @staticmethod
    def upsert_owner(db: Session, email: str, display_name: Optional[str] = None) -> str:
        """Insert or fetch an owner by email; a stored display name is never overwritten"""
        stmt = upsert(db, Owner).values(email=email.lower(), display_name=display_name)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Owner.email],
            set_={"display_name": func.coalesce(Owner.display_name, stmt.excluded.display_name)},
        ).returning(Owner.id)
        return db.execute(stmt).scalar_one()

    @staticmethod
    def get_owner(db: Session, owner_id: str) -> Optional[Owner]:
        return db.query(Owner).filter(Owner.id == owner_id).first()

    @staticmethod
    def get_owner_by_email(db: Session, email: str) -> Optional[Owner]:
        return db.query(Owner).filter(Owner.email == email.lower()).first()

    @staticmethod
    def upsert_claim(
        db: Session,
        ts: datetime,
        owner_id: str,
        price_cents: int,
        currency: str,
        columns: dict,
        created_at: datetime,
    ) -> Claim:
        """
        Insert the claim for ``ts``. On conflict only the mutable metadata of a
        claim already held by the same owner is refreshed; owner, price and
        created_at are never touched. Returns the locked, persisted row.
        """
        stmt = upsert(db, Claim).values(
            ts=ts,
            owner_id=owner_id,
            price_cents=price_cents,
            currency=currency,
            created_at=created_at,
            **columns,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Claim.ts],
            set_={name: getattr(stmt.excluded, name) for name in columns},
            where=Claim.owner_id == stmt.excluded.owner_id,
        )
        db.execute(stmt)
        return (
            db.query(Claim)
            .filter(Claim.ts == ts)
            .populate_existing()
            .with_for_update()
            .one()
        )

    @staticmethod
    def insert_claim_if_absent(
        db: Session,
        ts: datetime,
        owner_id: str,
        price_cents: int,
        currency: str,
        columns: dict,
        created_at: datetime,
    ) -> Optional[Claim]:
        """Insert with conflict-do-nothing; ``None`` when the unit is already claimed"""
        stmt = (
            upsert(db, Claim)
            .values(
                ts=ts,
                owner_id=owner_id,
                price_cents=price_cents,
                currency=currency,
                created_at=created_at,
                **columns,
            )
            .on_conflict_do_nothing(index_elements=[Claim.ts])
        )
        if db.execute(stmt).rowcount != 1:
            return None
        return db.query(Claim).filter(Claim.ts == ts).populate_existing().one()

    @staticmethod
    def get_claim_by_id(db: Session, claim_id: str, lock: bool = False) -> Optional[Claim]:
        query = db.query(Claim).filter(Claim.id == claim_id)
        if lock:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def claims_for_day(db: Session, ts: datetime, lock: bool = False) -> list[Claim]:
        start, end = day_range(ts)
        query = db.query(Claim).filter(Claim.ts >= start, Claim.ts < end).order_by(Claim.ts)
        if lock:
            query = query.with_for_update().populate_existing()
        return query.all()

    @staticmethod
    def day_is_taken(db: Session, ts: datetime) -> bool:
        start, end = day_range(ts)
        return (
            db.query(Claim.id).filter(Claim.ts >= start, Claim.ts < end).first() is not None
        )

    @staticmethod
    def find_claim(db: Session, ts_value: str, lock: bool = False) -> Optional[Claim]:
        """
        Resolve a unit given either a full timestamp (exact match) or a bare
        ``YYYY-MM-DD`` day (first claim of that day).
        """
        ts = parse_ts(ts_value)
        if is_day_string(ts_value):
            claims = ClaimRepository.claims_for_day(db, ts, lock=lock)
            return claims[0] if claims else None
        query = db.query(Claim).filter(Claim.ts == ts)
        if lock:
            query = query.with_for_update()
        claim = query.first()
        if claim is None:
            # Day-keyed claims are also reachable through any instant of that day
            claims = ClaimRepository.claims_for_day(db, ts, lock=lock)
            claim = next((c for c in claims if c.ts.hour == 0 and c.ts.minute == 0), None)
        return claim

    @staticmethod
    def list_owner_claims(db: Session, owner_id: str) -> list[Claim]:
        return db.query(Claim).filter(Claim.owner_id == owner_id).order_by(Claim.ts).all()

    @staticmethod
    def active_listing_for_day(db: Session, ts: datetime) -> Optional[Listing]:
        start, end = day_range(ts)
        return (
            db.query(Listing)
            .filter(Listing.ts >= start, Listing.ts < end, Listing.status == ListingStatus.ACTIVE)
            .order_by(Listing.id.desc())
            .first()
        )

    @staticmethod
    def cancel_open_listings(db: Session, ts: datetime, except_seller_id: Optional[str] = None) -> int:
        start, end = day_range(ts)
        query = db.query(Listing).filter(
            Listing.ts >= start, Listing.ts < end, Listing.status.in_(OPEN_LISTING_STATUSES)
        )
        if except_seller_id:
            query = query.filter(Listing.seller_owner_id != except_seller_id)
        return query.update({Listing.status: ListingStatus.CANCELLED}, synchronize_session=False)

    @staticmethod
    def revoke_active_tokens(db: Session, claim_id: str) -> int:
        return (
            db.query(TransferToken)
            .filter(
                TransferToken.claim_id == claim_id,
                TransferToken.is_revoked.is_(False),
                TransferToken.used_at.is_(None),
            )
            .update({TransferToken.is_revoked: True}, synchronize_session=False)
        )

    @staticmethod
    def upsert_registry_entry(db: Session, claim: Claim):
        stmt = upsert(db, RegistryEntry).values(ts=claim.ts, claim_id=claim.id)
        stmt = stmt.on_conflict_do_update(
            index_elements=[RegistryEntry.ts], set_={"claim_id": stmt.excluded.claim_id}
        )
        db.execute(stmt)

    @staticmethod
    def delete_registry_entry(db: Session, ts: datetime) -> int:
        return (
            db.query(RegistryEntry)
            .filter(RegistryEntry.ts == ts)
            .delete(synchronize_session=False)
        )

    @staticmethod
    def delete_day(db: Session, ts: datetime, claim_ids: list[str]):
        """Remove every trace of a day except the append-only transfer history"""
        start, end = day_range(ts)
        db.query(RegistryEntry).filter(RegistryEntry.ts >= start, RegistryEntry.ts < end).delete(
            synchronize_session=False
        )
        db.query(Listing).filter(Listing.ts >= start, Listing.ts < end).delete(
            synchronize_session=False
        )
        db.query(TransferToken).filter(TransferToken.claim_id.in_(claim_ids)).delete(
            synchronize_session=False
        )
        db.query(Claim).filter(Claim.ts >= start, Claim.ts < end).delete(synchronize_session=False)
