"""Registry service - public gallery and availability calendar"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import ValidationError
from ...shared.timestamps import iso_utc, month_range, parse_ts, ymd
from ..marketplace.repository import MarketplaceRepository
from .art import derive_art
from .repository import RegistryRepository

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 24
MAX_LIMIT = 100


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    return max(1, min(MAX_LIMIT, limit))


class RegistryService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = RegistryRepository()

    def list_registry(
        self,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
        q: Optional[str] = None,
        has_title: bool = False,
        has_message: bool = False,
        sort: str = "new",
    ) -> dict:
        """
        One page of public entries. ``cursor`` is the ts of the last item of the
        previous page; one extra row is fetched to know whether a next page exists.
        """
        limit = clamp_limit(limit)
        cursor_ts = None
        if cursor:
            try:
                cursor_ts = parse_ts(cursor)
            except ValueError as e:
                raise ValidationError("invalid_cursor", "Invalid cursor") from e

        entries = self.repo.list_entries(
            self.db,
            limit=limit + 1,
            cursor=cursor_ts,
            q=(q or "").strip() or None,
            has_title=has_title,
            has_message=has_message,
            newest_first=sort != "old",
        )
        page = entries[:limit]
        next_cursor = iso_utc(page[-1].ts) if len(entries) > limit else None
        return {"items": [serialize_entry(entry) for entry in page], "nextCursor": next_cursor}

    def unavailable_days(self, ym: str) -> dict:
        """Days of a month already claimed, and days with an active listing"""
        try:
            start, end = month_range(ym)
        except ValueError as e:
            raise ValidationError("invalid_month", str(e)) from e

        claimed = sorted({ymd(ts) for ts in self.repo.claimed_days_between(self.db, start, end)})
        for_sale = sorted(
            {ymd(ts) for ts in MarketplaceRepository.open_days_between(self.db, start, end)}
        )
        return {"ym": ym, "unavailable": claimed, "for_sale": for_sale}


def serialize_entry(entry) -> dict:
    claim = entry.claim
    return {
        "id": claim.id,
        "ts": iso_utc(claim.ts),
        "owner_display_name": claim.owner.display_name if claim.owner else None,
        "title": claim.title if claim.title_public else None,
        "message": claim.message if claim.message_public else None,
        "cert_style": claim.cert_style.value,
        "cert_url": claim.cert_url,
        "art": derive_art(claim.id, claim.ts),
    }
