"""Certificate integrity hash and links"""

import hashlib
from datetime import datetime
from typing import Optional
from urllib.parse import quote

from ...config import PUBLIC_BASE_URL, SECRET_SALT
from ...shared.timestamps import iso_utc


def compute_cert_hash(
    ts: datetime, owner_id: str, price_cents: int, created_at: datetime, salt: Optional[str] = None
) -> str:
    """
    SHA-256 over ``ts|owner_id|price_cents|created_at|salt``.

    Both datetimes are rendered with millisecond precision, so the digest is
    reproducible from the stored claim row.
    """
    payload = f"{iso_utc(ts)}|{owner_id}|{price_cents}|{iso_utc(created_at)}|{salt or SECRET_SALT}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def hash_for_claim(claim) -> str:
    return compute_cert_hash(claim.ts, claim.owner_id, claim.price_cents, claim.created_at)


def cert_path(ts: datetime) -> str:
    return f"/cert/{quote(iso_utc(ts), safe='')}"


def cert_url(ts: datetime) -> str:
    return f"{PUBLIC_BASE_URL}{cert_path(ts)}"


def public_page_url(ts: datetime, locale: str = "en") -> str:
    return f"{PUBLIC_BASE_URL}/{locale}/m/{quote(iso_utc(ts), safe='')}"
