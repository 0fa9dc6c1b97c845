"""Account schemas - credentials, password reset and sign-in codes"""

from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ...security_utils import MIN_PASSWORD_LENGTH
from ...shared.validators import DISPLAY_NAME_MAX_LENGTH, clean_text, validate_email
from ..claims.schemas import normalize_locale


def check_password(value: str) -> str:
    if len(value or "") < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return value


class SignupRequest(BaseModel):
    email: str
    password: str
    display_name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password(v)

    @field_validator("display_name", mode="before")
    @classmethod
    def validate_display_name(cls, v):
        return clean_text(v, DISPLAY_NAME_MAX_LENGTH)


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return (v or "").strip().lower()


class ForgotPasswordRequest(BaseModel):
    email: str
    locale: str = "en"

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return (v or "").strip().lower()

    @field_validator("locale", mode="before")
    @classmethod
    def validate_locale(cls, v):
        return normalize_locale(v)


class ResetPasswordRequest(BaseModel):
    token: str
    password: str
    password2: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password(v)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.password2:
            raise ValueError("Passwords do not match")
        return self


class LoginCodeRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        return validate_email(v)


class VerifyCodeRequest(BaseModel):
    email: str
    code: str

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        v = (v or "").strip()
        if not v.isdigit() or len(v) != 6:
            raise ValueError("Code must be 6 digits")
        return v
