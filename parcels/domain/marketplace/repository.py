"""Marketplace repository - listings and secondary sales"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...enums import OPEN_LISTING_STATUSES, ListingStatus
from ...models import Listing, SecondarySale
from ...shared.timestamps import day_range


class MarketplaceRepository:
    """Repository for marketplace database operations"""

    @staticmethod
    def lock_listings_for_day(db: Session, ts: datetime) -> list[Listing]:
        start, end = day_range(ts)
        return (
            db.query(Listing)
            .filter(Listing.ts >= start, Listing.ts < end)
            .order_by(Listing.id)
            .with_for_update()
            .all()
        )

    @staticmethod
    def get_listing(db: Session, listing_id: int, lock: bool = False) -> Optional[Listing]:
        query = db.query(Listing).filter(Listing.id == listing_id)
        if lock:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def create_listing(db: Session, **fields) -> Listing:
        listing = Listing(**fields)
        db.add(listing)
        db.flush()
        return listing

    @staticmethod
    def open_days_between(db: Session, start: datetime, end: datetime) -> list[datetime]:
        rows = (
            db.query(Listing.ts)
            .filter(Listing.ts >= start, Listing.ts < end, Listing.status == ListingStatus.ACTIVE)
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def add_sale(db: Session, **fields) -> SecondarySale:
        sale = SecondarySale(**fields)
        db.add(sale)
        return sale

    @staticmethod
    def is_open(listing: Listing) -> bool:
        return listing.status in OPEN_LISTING_STATUSES
