"""Transfer router - transfer codes, peer transfer and gift redemption"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...auth import get_current_owner
from ...database import get_db
from ...models import Owner
from ...rate_limiter import create_rate_limiter, get_client_ip
from .schemas import GiftRedeemRequest, TransferCodeResponse, TransferRequest
from .service import TransferService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Transfers"])

rate_limit_transfer = create_rate_limiter(limit=10, window_seconds=60, key_prefix="transfer")
rate_limit_gift = create_rate_limiter(limit=10, window_seconds=60, key_prefix="gift_redeem")


def get_transfer_service(db: Session = Depends(get_db)) -> TransferService:
    """Dependency injection for TransferService"""
    return TransferService(db)


@router.post("/claim/{claim_id}/transfer-code", response_model=TransferCodeResponse)
async def issue_transfer_code(
    claim_id: str,
    owner: Owner = Depends(get_current_owner),
    service: TransferService = Depends(get_transfer_service),
):
    """Issue a one-time transfer code. The previous code, if any, stops working."""
    return service.issue_code(owner, claim_id)


@router.post("/claim/transfer")
async def transfer_claim(
    data: TransferRequest,
    request: Request,
    owner: Owner = Depends(get_current_owner),
    service: TransferService = Depends(get_transfer_service),
    _: None = Depends(rate_limit_transfer),
):
    """Take ownership of a claim with its certificate hash and transfer code - Rate limited to 10 requests per minute"""
    return service.transfer(
        owner,
        data,
        ip=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


@router.post("/gift/redeem")
async def redeem_gift_code(
    data: GiftRedeemRequest,
    service: TransferService = Depends(get_transfer_service),
    _: None = Depends(rate_limit_gift),
):
    """Claim a day with a gift code - Rate limited to 10 requests per minute"""
    return await service.redeem_gift(data)
