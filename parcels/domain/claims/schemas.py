"""Claim domain schemas - Pydantic models for validation"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from ...enums import CertStyle, TimeDisplay
from ...shared.timestamps import parse_ts
from ...shared.validators import (
    DEFAULT_TEXT_COLOR,
    DISPLAY_NAME_MAX_LENGTH,
    MESSAGE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    clean_text,
    coerce_bool,
    normalize_link_url,
    normalize_text_color,
    validate_email,
)

SUPPORTED_LOCALES = {"en", "fr"}

# Option fields copied into payment metadata and back
OPTION_FIELDS = (
    "display_name",
    "title",
    "message",
    "link_url",
    "cert_style",
    "time_display",
    "local_date_only",
    "text_color",
    "title_public",
    "message_public",
    "public_registry",
)
BOOL_FIELDS = ("local_date_only", "title_public", "message_public", "public_registry")


def normalize_locale(value: Optional[str]) -> str:
    value = (value or "en").strip().lower()[:2]
    return value if value in SUPPORTED_LOCALES else "en"


def validate_ts_input(value: Any) -> str:
    if value is None or not str(value).strip():
        raise ValueError("ts is required")
    try:
        parse_ts(value)
    except ValueError as e:
        raise ValueError("ts must be an ISO timestamp or YYYY-MM-DD") from e
    return str(value).strip()


class ClaimOptions(BaseModel):
    """Certificate options a buyer (or owner) can set. Normalized at the boundary."""

    display_name: Optional[str] = None
    title: Optional[str] = None
    message: Optional[str] = None
    link_url: Optional[str] = None
    cert_style: CertStyle = CertStyle.NEUTRAL
    time_display: TimeDisplay = TimeDisplay.UTC
    local_date_only: bool = False
    text_color: str = DEFAULT_TEXT_COLOR
    title_public: bool = False
    message_public: bool = False
    public_registry: bool = False

    @field_validator("display_name", mode="before")
    @classmethod
    def validate_display_name(cls, v):
        return clean_text(v, DISPLAY_NAME_MAX_LENGTH)

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v):
        return clean_text(v, TITLE_MAX_LENGTH)

    @field_validator("message", mode="before")
    @classmethod
    def validate_message(cls, v):
        return clean_text(v, MESSAGE_MAX_LENGTH)

    @field_validator("link_url", mode="before")
    @classmethod
    def validate_link_url(cls, v):
        return normalize_link_url(v)

    @field_validator("cert_style", mode="before")
    @classmethod
    def validate_cert_style(cls, v):
        return CertStyle.parse(v)

    @field_validator("time_display", mode="before")
    @classmethod
    def validate_time_display(cls, v):
        return TimeDisplay.parse(v)

    @field_validator(*BOOL_FIELDS, mode="before")
    @classmethod
    def validate_flags(cls, v):
        return coerce_bool(v)

    @field_validator("text_color", mode="before")
    @classmethod
    def validate_text_color(cls, v):
        return normalize_text_color(v)

    def to_metadata(self) -> dict[str, str]:
        """Flatten to the string-only metadata accepted by the payment provider"""
        metadata = {}
        for field in OPTION_FIELDS:
            value = getattr(self, field)
            if value is None:
                continue
            if isinstance(value, bool):
                metadata[field] = "1" if value else "0"
            elif hasattr(value, "value"):
                metadata[field] = value.value
            else:
                metadata[field] = str(value)
        return metadata

    @classmethod
    def from_metadata(cls, metadata: dict) -> "ClaimOptions":
        return cls(**{k: v for k, v in (metadata or {}).items() if k in OPTION_FIELDS})

    def claim_columns(self) -> dict:
        """Values for the mutable claim columns"""
        return {
            "title": self.title,
            "message": self.message,
            "link_url": self.link_url,
            "cert_style": self.cert_style,
            "time_display": self.time_display,
            "local_date_only": self.local_date_only,
            "text_color": self.text_color,
            "title_public": self.title_public,
            "message_public": self.message_public,
        }


class CheckoutRequest(ClaimOptions):
    """Schema for starting a purchase"""

    ts: str
    email: str
    locale: str = "en"

    @field_validator("ts", mode="before")
    @classmethod
    def validate_ts(cls, v):
        return validate_ts_input(v)

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("locale", mode="before")
    @classmethod
    def validate_locale(cls, v):
        return normalize_locale(v)


class CheckoutResponse(BaseModel):
    url: str
    session_id: Optional[str] = None
    ts: str
    edition: str
    price_cents: int
    currency: str


class ClaimEditRequest(BaseModel):
    """Owner edits; only the fields that are sent are changed"""

    ts: str
    title: Optional[str] = None
    message: Optional[str] = None
    link_url: Optional[str] = None
    cert_style: Optional[str] = None
    time_display: Optional[str] = None
    local_date_only: Optional[Any] = None
    text_color: Optional[str] = None
    title_public: Optional[Any] = None
    message_public: Optional[Any] = None
    public_registry: Optional[Any] = None

    @field_validator("ts", mode="before")
    @classmethod
    def validate_ts(cls, v):
        return validate_ts_input(v)

    @field_validator("link_url", mode="before")
    @classmethod
    def validate_link_url(cls, v):
        return normalize_link_url(v)

    def updates(self) -> dict:
        """Normalized values for the fields present in the request"""
        sent = self.model_dump(exclude_unset=True, exclude={"ts"})
        # Reuse ClaimOptions' normalization, keep only what was sent
        normalized = ClaimOptions(**sent)
        return {field: getattr(normalized, field) for field in sent}


class ReleaseRequest(BaseModel):
    ts: str
    locale: str = "en"

    @field_validator("ts", mode="before")
    @classmethod
    def validate_ts(cls, v):
        return validate_ts_input(v)

    @field_validator("locale", mode="before")
    @classmethod
    def validate_locale(cls, v):
        return normalize_locale(v)


@dataclass
class PurchaseConfirmation:
    """A provider-confirmed payment for one calendar unit"""

    event_id: str
    ts: datetime
    email: str
    amount_cents: int
    currency: str
    options: ClaimOptions
    locale: str = "en"


@dataclass
class SettlementResult:
    status: str  # created | updated | duplicate | conflict
    ts: Optional[datetime] = None
    claim_id: Optional[str] = None
    owner_id: Optional[str] = None
    cert_hash: Optional[str] = None
    cert_url: Optional[str] = None

    @property
    def duplicate(self) -> bool:
        return self.status == "duplicate"
