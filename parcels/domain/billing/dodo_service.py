"""Dodo Payments service - Integration with Dodo Payments API"""

import logging
from typing import Any, Optional

from dodopayments import AsyncDodoPayments  # type: ignore
from fastapi import Request

from ...config import DODO_ADHOC_PRODUCT_ID, DODO_PAYMENTS_API_KEY, DODO_PAYMENTS_ENVIRONMENT
from ...errors import PaymentProviderError

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "succeeded"


def normalize_dodo_environment(env: Optional[str]) -> str:
    """Normalize Dodo environment value to expected format"""
    value = (env or "test_mode").strip().lower()
    if value in {"live", "production", "prod"}:
        return "live_mode"
    if value in {"test", "sandbox", "staging", "dev", "development"}:
        return "test_mode"
    if value in {"test_mode", "live_mode"}:
        return value
    logger.warning(f"Unknown DODO environment '{env}', defaulting to test_mode")
    return "test_mode"


def _as_dict(obj: Any) -> dict:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    return dict(obj)


def normalize_payment(payment: Any) -> dict:
    """
    Flatten a Dodo payment (SDK model or webhook ``data`` dict) into the fields
    settlement needs. Metadata values are always strings on the provider side.
    """
    data = _as_dict(payment)
    customer = _as_dict(data.get("customer"))
    return {
        "payment_id": data.get("payment_id") or data.get("id"),
        "status": (data.get("status") or "").lower() or None,
        "total_amount": data.get("total_amount"),
        "currency": (data.get("currency") or "").upper() or None,
        "email": customer.get("email") or data.get("email"),
        "name": customer.get("name"),
        "metadata": data.get("metadata") or {},
    }


class DodoPaymentsService:
    """Service for Dodo Payments API operations"""

    def __init__(
        self,
        api_key: Optional[str] = DODO_PAYMENTS_API_KEY,
        environment: Optional[str] = DODO_PAYMENTS_ENVIRONMENT,
        adhoc_product_id: Optional[str] = DODO_ADHOC_PRODUCT_ID,
    ):
        self.api_key = api_key
        self.environment = normalize_dodo_environment(environment)
        self.adhoc_product_id = adhoc_product_id
        self.client = None

        if not self.api_key:
            logger.warning("DODO_PAYMENTS_API_KEY not set; checkout endpoints will fail until configured")
        else:
            self.client = AsyncDodoPayments(bearer_token=self.api_key, environment=self.environment)
            logger.info(f"Dodo Payments client initialized (env={self.environment})")

    def is_available(self) -> bool:
        """Check if Dodo Payments client is available"""
        return self.client is not None and bool(self.adhoc_product_id)

    async def create_checkout_session(
        self,
        amount_cents: int,
        customer_email: str,
        return_url: str,
        metadata: dict[str, str],
        customer_name: Optional[str] = None,
    ) -> dict:
        """
        Create a checkout session for the ad-hoc product with a dynamic amount.

        Returns:
            ``{"checkout_url": str, "session_id": str}``
        """
        if not self.is_available():
            raise PaymentProviderError("payments_unavailable", "Payment provider is not configured")

        try:
            session = await self.client.checkout_sessions.create(
                product_cart=[
                    {
                        "product_id": self.adhoc_product_id,
                        "quantity": 1,
                        # Dynamic amount in lowest currency unit (e.g., cents)
                        "amount": int(amount_cents),
                    }
                ],
                customer={"email": customer_email, "name": customer_name or ""},
                return_url=return_url,
                metadata=metadata,
            )
        except Exception as e:
            logger.error(f"❌ Failed to create checkout session: {e}")
            raise PaymentProviderError(message="Failed to create checkout session") from e

        checkout_url = getattr(session, "checkout_url", None) or _as_dict(session).get("checkout_url")
        session_id = getattr(session, "session_id", None) or _as_dict(session).get("session_id")
        if not checkout_url:
            raise PaymentProviderError(message="Payment provider returned no checkout URL")

        logger.info(f"✅ Checkout session created: {session_id}")
        return {"checkout_url": checkout_url, "session_id": session_id}

    async def retrieve_payment(self, payment_id: str) -> dict:
        """Fetch a payment and return it normalized (see ``normalize_payment``)"""
        if not self.client:
            raise PaymentProviderError("payments_unavailable", "Payment provider is not configured")

        try:
            payment = await self.client.payments.retrieve(payment_id)
        except Exception as e:
            logger.error(f"❌ Failed to retrieve payment {payment_id}: {e}")
            raise PaymentProviderError(message="Failed to retrieve payment") from e

        return normalize_payment(payment)


def get_payments(request: Request) -> DodoPaymentsService:
    """Dependency returning the payment gateway created at start-up"""
    return request.app.state.payments
