import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base
from .enums import CertStyle, ListingStatus, TimeDisplay, TransferReason
from .shared.timestamps import utc_now


def generate_uuid():
    return str(uuid.uuid4())


def enum_type(enum_cls):
    """Closed set of values stored as VARCHAR + CHECK, portable across Postgres and SQLite"""
    return Enum(
        enum_cls,
        native_enum=False,
        values_callable=lambda members: [m.value for m in members],
        length=20,
        validate_strings=True,
    )


class Owner(Base):
    __tablename__ = "owners"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)  # stored lower-cased
    display_name = Column(String(40), nullable=True)
    password_hash = Column(String(255), nullable=True)  # bcrypt, null until signup/reset
    # Payment-provider merchant reference used for marketplace payouts
    merchant_account_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    claims = relationship("Claim", back_populates="owner")


class Claim(Base):
    """Exclusive ownership of one calendar unit (minute or day)"""

    __tablename__ = "claims"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    ts = Column(DateTime, unique=True, nullable=False, index=True)
    owner_id = Column(String(36), ForeignKey("owners.id"), nullable=False, index=True)
    price_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="EUR")
    title = Column(String(80), nullable=True)
    message = Column(Text, nullable=True)
    link_url = Column(String(500), nullable=True)
    cert_style = Column(enum_type(CertStyle), nullable=False, default=CertStyle.NEUTRAL)
    time_display = Column(enum_type(TimeDisplay), nullable=False, default=TimeDisplay.UTC)
    local_date_only = Column(Boolean, nullable=False, default=False)
    text_color = Column(String(7), nullable=False, default="#1a1f2a")
    title_public = Column(Boolean, nullable=False, default=False)
    message_public = Column(Boolean, nullable=False, default=False)
    cert_hash = Column(String(64), nullable=True, index=True)
    cert_url = Column(String(255), nullable=True)
    # Millisecond precision, part of cert_hash
    created_at = Column(DateTime, nullable=False, default=utc_now)
    last_secondary_sold_at = Column(DateTime, nullable=True)
    last_secondary_price_cents = Column(Integer, nullable=True)

    owner = relationship("Owner", back_populates="claims")


class TransferToken(Base):
    """One-time code allowing a claim to change hands; only the sha256 of the code is stored"""

    __tablename__ = "transfer_tokens"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    claim_id = Column(String(36), ForeignKey("claims.id", ondelete="CASCADE"), nullable=False)
    code_hash = Column(String(64), nullable=False)
    is_revoked = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime, nullable=True)
    used_by_owner_id = Column(String(36), ForeignKey("owners.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (Index("ix_transfer_tokens_claim_code", "claim_id", "code_hash"),)


class TransferHistory(Base):
    """Append-only audit of ownership changes. Survives claim release, hence no foreign keys."""

    __tablename__ = "transfer_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    claim_id = Column(String(36), nullable=False, index=True)
    ts = Column(DateTime, nullable=False)
    from_owner_id = Column(String(36), nullable=False)
    to_owner_id = Column(String(36), nullable=False)
    token_id = Column(String(36), nullable=True)
    reason = Column(enum_type(TransferReason), nullable=False, default=TransferReason.TRANSFER)
    ip = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class Listing(Base):
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ts = Column(DateTime, nullable=False, index=True)  # day
    seller_owner_id = Column(String(36), ForeignKey("owners.id"), nullable=False, index=True)
    buyer_owner_id = Column(String(36), ForeignKey("owners.id"), nullable=True)
    price_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")
    status = Column(enum_type(ListingStatus), nullable=False, default=ListingStatus.ACTIVE)
    hide_claim_details = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    seller = relationship("Owner", foreign_keys=[seller_owner_id])


class SecondarySale(Base):
    __tablename__ = "secondary_sales"

    id = Column(Integer, primary_key=True, autoincrement=True)
    listing_id = Column(Integer, nullable=False, index=True)
    ts = Column(DateTime, nullable=False)
    seller_owner_id = Column(String(36), nullable=False)
    buyer_owner_id = Column(String(36), nullable=False)
    gross_cents = Column(Integer, nullable=False)
    fee_cents = Column(Integer, nullable=False)
    net_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    payment_id = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class PaymentEvent(Base):
    """Seen payment confirmations, the idempotency guard for settlement workflows"""

    __tablename__ = "payment_events"

    id = Column(String(255), primary_key=True)  # provider payment id
    kind = Column(String(20), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class PasswordReset(Base):
    __tablename__ = "password_resets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(String(36), ForeignKey("owners.id", ondelete="CASCADE"), nullable=False)
    token_hash = Column(String(64), unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class LoginCode(Base):
    __tablename__ = "login_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, index=True)
    code_hash = Column(String(64), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class RegistryEntry(Base):
    """Opt-in public listing of a claim"""

    __tablename__ = "registry_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ts = Column(DateTime, unique=True, nullable=False)
    claim_id = Column(String(36), ForeignKey("claims.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    claim = relationship("Claim")


class GiftCode(Base):
    __tablename__ = "gift_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code_hash = Column(String(64), unique=True, nullable=False)
    label = Column(String(100), nullable=True)
    is_disabled = Column(Boolean, nullable=False, default=False)
    max_uses = Column(Integer, nullable=False, default=1)
    uses_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class GiftRedemption(Base):
    __tablename__ = "gift_redemptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    gift_code_id = Column(Integer, ForeignKey("gift_codes.id"), nullable=False, index=True)
    claim_id = Column(String(36), nullable=False)
    owner_id = Column(String(36), nullable=False)
    ts = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
