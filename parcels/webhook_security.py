"""
Webhook Security Module

Signature verification for Dodo Payments webhooks (Standard Webhooks scheme):
- Constant-time signature comparison
- Timestamp validation against replays
- Signature computed over the raw body, before any parsing
"""

import base64
import binascii
import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import Request

from .errors import UnauthorizedError

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


class WebhookSignatureError(UnauthorizedError):
    """Raised when webhook signature verification fails"""

    code = "invalid_signature"


def constant_time_compare(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def extract_signing_key(secret: str) -> bytes:
    """
    Extract Standard Webhooks signing key bytes from a ``whsec_`` style secret.

    The HMAC key is the base64-decoded part after ``whsec_``; a secret that is
    not valid base64 is used as raw UTF-8 bytes.
    """
    b64_part = secret[6:] if secret.startswith("whsec_") else secret
    try:
        return base64.b64decode(b64_part, validate=True)
    except (binascii.Error, ValueError):
        return secret.encode("utf-8")


def compute_signature(secret: str, webhook_id: str, timestamp: str, body: bytes) -> str:
    signed_message = b".".join([webhook_id.encode("utf-8"), timestamp.encode("utf-8"), body])
    digest = hmac.new(extract_signing_key(secret), signed_message, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_timestamp(timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS) -> bool:
    """Reject webhooks whose timestamp is missing, malformed or outside ``max_age``"""
    if not timestamp:
        return False

    try:
        age = abs(int(time.time()) - int(timestamp))
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False

    if age > max_age:
        logger.warning(f"🚫 Webhook timestamp too old: {age}s (max: {max_age}s)")
        return False
    return True


def verify_signature_headers(
    secret: str, webhook_id: str, timestamp: str, signature_header: str, body: bytes
) -> bool:
    """
    ``signature_header`` may hold several space separated ``v1,<base64>`` entries
    (key rotation); any match is accepted.
    """
    if not webhook_id or not signature_header or not verify_timestamp(timestamp):
        return False

    expected = compute_signature(secret, webhook_id, timestamp, body)
    for candidate in signature_header.split():
        version, _, signature = candidate.partition(",")
        if version == "v1" and constant_time_compare(expected, signature):
            return True
    return False


async def verify_dodo_webhook(request: Request, secret: str) -> bytes:
    """
    Verify a Dodo Payments webhook and return its raw body.

    Signed message format: ``webhook-id.webhook-timestamp.payload``

    Raises:
        WebhookSignatureError: If headers are missing, stale or the signature does not match
    """
    # Get raw body BEFORE any parsing - this is critical
    raw_body = await request.body()

    webhook_id = request.headers.get("webhook-id", "")
    timestamp = request.headers.get("webhook-timestamp", "")
    signature_header = request.headers.get("webhook-signature", "")

    logger.info(f"📥 Dodo webhook received: id={webhook_id or 'unknown'}")

    if not verify_signature_headers(secret, webhook_id, timestamp, signature_header, raw_body):
        logger.error(f"❌ Dodo webhook signature verification failed for {webhook_id or 'unknown'}")
        raise WebhookSignatureError(message="Invalid webhook signature")

    logger.info(f"✅ Dodo webhook signature verified successfully: {webhook_id}")
    return raw_body
