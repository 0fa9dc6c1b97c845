"""Marketplace schemas - listings, merchant onboarding and resale checkout"""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from ...config import CURRENCY, LISTING_MIN_PRICE_CENTS
from ...enums import ListingAction
from ...shared.validators import coerce_bool, validate_email
from ..claims.schemas import ClaimOptions, normalize_locale, validate_ts_input


class ListingCreateRequest(BaseModel):
    ts: str
    price_cents: int
    currency: str = CURRENCY
    hide_claim_details: Any = False

    @field_validator("ts", mode="before")
    @classmethod
    def validate_ts(cls, v):
        return validate_ts_input(v)

    @field_validator("price_cents")
    @classmethod
    def validate_price(cls, v: int) -> int:
        if v < LISTING_MIN_PRICE_CENTS:
            raise ValueError(f"price_cents must be at least {LISTING_MIN_PRICE_CENTS}")
        return v

    @field_validator("currency", mode="before")
    @classmethod
    def validate_currency(cls, v):
        value = str(v or CURRENCY).strip().upper()
        if len(value) != 3 or not value.isalpha():
            raise ValueError("currency must be a 3-letter ISO code")
        return value

    @field_validator("hide_claim_details", mode="before")
    @classmethod
    def validate_hide(cls, v):
        return coerce_bool(v)


class ListingStatusRequest(BaseModel):
    action: ListingAction


class MerchantAccountRequest(BaseModel):
    merchant_account_id: str

    @field_validator("merchant_account_id")
    @classmethod
    def validate_merchant(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 255:
            raise ValueError("merchant_account_id is required (max 255 characters)")
        return v


class MarketplaceCheckoutRequest(ClaimOptions):
    """Buyer side of a resale; the certificate options apply once the sale settles"""

    listing_id: int
    email: str
    locale: str = "en"

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("locale", mode="before")
    @classmethod
    def validate_locale(cls, v):
        return normalize_locale(v)


@dataclass
class SaleConfirmation:
    """A provider-confirmed payment for a marketplace listing"""

    event_id: str
    listing_id: int
    buyer_email: str
    amount_cents: Optional[int]
    currency: Optional[str]
    options: ClaimOptions
    locale: str = "en"
