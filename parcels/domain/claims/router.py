"""Claim router - checkout, confirmation, release and owner edits"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_owner
from ...config import PUBLIC_BASE_URL
from ...database import get_db
from ...errors import ValidationError
from ...models import Owner
from ...rate_limiter import create_rate_limiter
from ...shared.timestamps import iso_utc
from ..billing.dodo_service import DodoPaymentsService, get_payments
from .schemas import CheckoutRequest, CheckoutResponse, ClaimEditRequest, ReleaseRequest
from .service import ClaimService, serialize_owner_claim

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Claims"])

rate_limit_checkout = create_rate_limiter(limit=8, window_seconds=60, key_prefix="checkout")


def get_claim_service(db: Session = Depends(get_db)) -> ClaimService:
    """Dependency injection for ClaimService"""
    return ClaimService(db)


class RegistryVisibilityRequest(BaseModel):
    ts: str
    public: bool


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    data: CheckoutRequest,
    service: ClaimService = Depends(get_claim_service),
    payments: DodoPaymentsService = Depends(get_payments),
    _: None = Depends(rate_limit_checkout),
):
    """Start a payment session for a free calendar minute - Rate limited to 8 requests per minute"""
    return await service.create_checkout(data, payments)


@router.get("/checkout/confirm")
async def confirm_checkout(
    payment_id: Optional[str] = Query(None),
    session_id: Optional[str] = Query(None),
    service: ClaimService = Depends(get_claim_service),
    payments: DodoPaymentsService = Depends(get_payments),
):
    """Return URL of the payment provider: settle the payment and go to the public page"""
    reference = payment_id or session_id
    if not reference:
        raise ValidationError("missing_payment_id", "payment_id is required")

    result, locale = await service.confirm_checkout(reference, payments)
    status = "conflict" if result.status == "conflict" else "paid"
    target = f"{PUBLIC_BASE_URL}/{locale}/m/{quote(iso_utc(result.ts), safe='')}?status={status}"
    return RedirectResponse(url=target, status_code=303)


@router.post("/day/release")
async def release_day(
    data: ReleaseRequest,
    owner: Owner = Depends(get_current_owner),
    service: ClaimService = Depends(get_claim_service),
):
    """Irreversibly give a day back so anyone can claim it again"""
    result = service.release_day(owner, data)
    return JSONResponse(content=result, headers={"Cache-Control": "no-store"})


@router.post("/claim/edit")
async def edit_claim(
    data: ClaimEditRequest,
    owner: Owner = Depends(get_current_owner),
    service: ClaimService = Depends(get_claim_service),
):
    claim = service.edit_claim(owner, data)
    return {"ok": True, "claim": serialize_owner_claim(claim)}


@router.post("/registry/publish")
async def set_registry_visibility(
    data: RegistryVisibilityRequest,
    owner: Owner = Depends(get_current_owner),
    service: ClaimService = Depends(get_claim_service),
):
    """Opt a claim in or out of the public registry"""
    return service.set_registry_visibility(owner, data.ts, data.public)


@router.get("/claim/by-ts/{ts}")
async def get_public_claim(ts: str, service: ClaimService = Depends(get_claim_service)):
    return service.get_public_claim(ts)


@router.get("/account/claims")
async def list_my_claims(
    owner: Owner = Depends(get_current_owner),
    service: ClaimService = Depends(get_claim_service),
):
    return {"claims": service.list_owner_claims(owner)}
