"""Transfer domain schemas"""

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_email, validate_uuid
from ..claims.schemas import ClaimOptions, normalize_locale, validate_ts_input


class TransferRequest(BaseModel):
    """Peer transfer: the claim id, its certificate hash and the one-time code"""

    claim_id: str
    cert_hash: str
    code: str

    @field_validator("claim_id")
    @classmethod
    def validate_claim_id(cls, v: str) -> str:
        if not validate_uuid(v):
            raise ValueError("claim_id must be a UUID")
        return v

    @field_validator("cert_hash")
    @classmethod
    def validate_cert_hash(cls, v: str) -> str:
        v = v.strip().lower()
        if len(v) != 64 or any(c not in "0123456789abcdef" for c in v):
            raise ValueError("cert_hash must be a sha256 hex digest")
        return v

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("code is required")
        return v


class TransferCodeResponse(BaseModel):
    claim_id: str
    cert_hash: str
    code: str


class GiftRedeemRequest(ClaimOptions):
    code: str
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

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("code is required")
        return v.strip()

    @field_validator("locale", mode="before")
    @classmethod
    def validate_locale(cls, v):
        return normalize_locale(v)
