"""Dodo Payments webhook - settles claim purchases and marketplace sales"""

import json
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...config import DODO_PAYMENTS_WEBHOOK_SECRET
from ...database import get_db
from ...errors import ServerError, ValidationError
from ...webhook_security import verify_dodo_webhook
from ..claims.service import CLAIM_KIND, ClaimService, confirmation_from_payment
from ..marketplace.service import SECONDARY_KIND, MarketplaceService, sale_from_payment
from .dodo_service import normalize_payment

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Billing"])

PAYMENT_SUCCEEDED_EVENT = "payment.succeeded"


async def process_event(db: Session, event: dict) -> dict:
    """Dispatch a verified event. Returns the webhook response body."""
    event_type = event.get("type")
    if event_type != PAYMENT_SUCCEEDED_EVENT:
        logger.info(f"🔔 Ignoring webhook event type={event_type}")
        return {"received": True}

    payment = normalize_payment(event.get("data") or {})
    kind = payment["metadata"].get("kind")
    if not payment.get("payment_id"):
        logger.warning("⚠️ payment.succeeded without payment id; acknowledged")
        return {"received": True}

    try:
        if kind == CLAIM_KIND:
            result = await ClaimService(db).settle_purchase(confirmation_from_payment(payment))
        elif kind == SECONDARY_KIND:
            result = await MarketplaceService(db).settle_sale(sale_from_payment(payment))
        else:
            logger.info(f"🔔 Payment {payment['payment_id']} has no known kind ({kind}); acknowledged")
            return {"received": True}
    except ValidationError as e:
        # Malformed metadata will not get better on retry
        logger.warning(f"⚠️ Payment {payment['payment_id']} ignored: {e.code}")
        return {"received": True}

    body = {"received": True}
    if result.duplicate:
        body["duplicate"] = True
    return body


@router.post("/webhook")
async def dodo_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Dodo Payments webhook (Standard Webhooks signing).

    Headers:
      - 'webhook-id': unique message id
      - 'webhook-timestamp': Unix timestamp (seconds), 5 minute tolerance
      - 'webhook-signature': 'v1,{base64(hmac_sha256(webhook-id.webhook-timestamp.payload))}'
    """
    if not DODO_PAYMENTS_WEBHOOK_SECRET:
        logger.error("❌ DODO_PAYMENTS_WEBHOOK_SECRET not configured")
        raise ServerError("webhook_not_configured", "Webhook not configured")

    raw_body = await verify_dodo_webhook(request, DODO_PAYMENTS_WEBHOOK_SECRET)

    try:
        event = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"❌ Failed to parse webhook JSON: {e}")
        raise ValidationError("invalid_payload", "Invalid JSON payload") from e

    webhook_id = request.headers.get("webhook-id", "unknown")
    logger.info(f"🔔 Webhook received id={webhook_id} type={event.get('type')}")

    try:
        return await process_event(db, event)
    except Exception as e:
        logger.error(f"❌ Webhook {webhook_id} processing failed: {e}")
        raise ServerError("webhook_processing_failed", "Webhook processing failed") from e
