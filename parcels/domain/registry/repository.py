"""Registry repository - public entries and month availability"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session, joinedload

from ...models import Claim, RegistryEntry


class RegistryRepository:
    """Repository for registry database operations"""

    @staticmethod
    def list_entries(
        db: Session,
        limit: int,
        cursor: Optional[datetime] = None,
        q: Optional[str] = None,
        has_title: bool = False,
        has_message: bool = False,
        newest_first: bool = True,
    ) -> list[RegistryEntry]:
        query = (
            db.query(RegistryEntry)
            .join(Claim, RegistryEntry.claim_id == Claim.id)
            .options(joinedload(RegistryEntry.claim).joinedload(Claim.owner))
        )
        if cursor is not None:
            query = query.filter(RegistryEntry.ts < cursor if newest_first else RegistryEntry.ts > cursor)
        if has_title:
            query = query.filter(Claim.title_public.is_(True), Claim.title.isnot(None))
        if has_message:
            query = query.filter(Claim.message_public.is_(True), Claim.message.isnot(None))
        if q:
            pattern = f"%{q.lower()}%"
            query = query.filter(
                or_(
                    (Claim.title_public.is_(True)) & Claim.title.ilike(pattern),
                    (Claim.message_public.is_(True)) & Claim.message.ilike(pattern),
                    cast(Claim.ts, String).ilike(pattern),
                    Claim.id.ilike(f"{q.lower()}%"),
                )
            )
        order = RegistryEntry.ts.desc() if newest_first else RegistryEntry.ts.asc()
        return query.order_by(order).limit(limit).all()

    @staticmethod
    def claimed_days_between(db: Session, start: datetime, end: datetime) -> list[datetime]:
        rows = db.query(Claim.ts).filter(Claim.ts >= start, Claim.ts < end).all()
        return [row[0] for row in rows]
