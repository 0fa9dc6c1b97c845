"""Marketplace router - listings, merchant onboarding and resale checkout"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ...auth import get_current_owner
from ...config import PUBLIC_BASE_URL
from ...database import get_db
from ...errors import ValidationError
from ...models import Owner
from ...rate_limiter import create_rate_limiter
from ...shared.timestamps import iso_utc
from ..billing.dodo_service import DodoPaymentsService, get_payments
from .schemas import (
    ListingCreateRequest,
    ListingStatusRequest,
    MarketplaceCheckoutRequest,
    MerchantAccountRequest,
)
from .service import MarketplaceService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Marketplace"])

rate_limit_marketplace_checkout = create_rate_limiter(
    limit=8, window_seconds=60, key_prefix="marketplace_checkout"
)


def get_marketplace_service(db: Session = Depends(get_db)) -> MarketplaceService:
    """Dependency injection for MarketplaceService"""
    return MarketplaceService(db)


@router.post("/marketplace/listing")
async def upsert_listing(
    data: ListingCreateRequest,
    owner: Owner = Depends(get_current_owner),
    service: MarketplaceService = Depends(get_marketplace_service),
):
    """Put one of your days up for sale, or update its price"""
    return {"ok": True, "listing": service.upsert_listing(owner, data)}


@router.post("/marketplace/listing/{listing_id}/status")
async def change_listing_status(
    listing_id: int,
    data: ListingStatusRequest,
    owner: Owner = Depends(get_current_owner),
    service: MarketplaceService = Depends(get_marketplace_service),
):
    return {"ok": True, "listing": service.change_status(owner, listing_id, data.action)}


@router.get("/marketplace/by-ts/{ts}")
async def get_listing_for_day(ts: str, service: MarketplaceService = Depends(get_marketplace_service)):
    return service.get_listing_for_day(ts)


@router.post("/account/merchant")
async def set_merchant_account(
    data: MerchantAccountRequest,
    owner: Owner = Depends(get_current_owner),
    service: MarketplaceService = Depends(get_marketplace_service),
):
    """Record the payment-provider merchant reference used for payouts"""
    return service.set_merchant_account(owner, data.merchant_account_id)


@router.post("/marketplace/checkout")
async def create_marketplace_checkout(
    data: MarketplaceCheckoutRequest,
    service: MarketplaceService = Depends(get_marketplace_service),
    payments: DodoPaymentsService = Depends(get_payments),
    _: None = Depends(rate_limit_marketplace_checkout),
):
    """Start a payment session for an active listing - Rate limited to 8 requests per minute"""
    return await service.create_checkout(data, payments)


@router.get("/marketplace/confirm")
async def confirm_marketplace_checkout(
    payment_id: Optional[str] = Query(None),
    service: MarketplaceService = Depends(get_marketplace_service),
    payments: DodoPaymentsService = Depends(get_payments),
):
    if not payment_id:
        raise ValidationError("missing_payment_id", "payment_id is required")

    result, locale = await service.confirm_checkout(payment_id, payments)
    if result.ts is None:
        return {"ok": True, "status": result.status}
    status = "paid" if result.status in ("sold", "duplicate") else result.status
    target = f"{PUBLIC_BASE_URL}/{locale}/m/{quote(iso_utc(result.ts), safe='')}?status={status}"
    return RedirectResponse(url=target, status_code=303)
