"""Account service - signup, login, password reset and sign-in codes"""

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from ... import email_service
from ...config import LOGIN_CODE_TTL_MINUTES, PASSWORD_RESET_TTL_MINUTES, PUBLIC_BASE_URL
from ...database import transaction
from ...errors import ConflictError, UnauthorizedError, ValidationError
from ...models import Owner
from ...security_utils import (
    generate_login_code,
    generate_secure_token,
    hash_login_code,
    hash_password,
    sha256_hex,
    verify_password,
)
from ...shared.timestamps import utc_now
from ..claims.repository import ClaimRepository
from .repository import AccountRepository
from .schemas import (
    ForgotPasswordRequest,
    LoginCodeRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    VerifyCodeRequest,
)

logger = logging.getLogger(__name__)

GENERIC_FORGOT_MESSAGE = "If an account exists for this email, a reset link has been sent."
GENERIC_CODE_MESSAGE = "If the address is valid, a sign-in code has been sent."

# Verified against when the email is unknown so both paths cost one bcrypt check
_DUMMY_HASH = hash_password("parcels-of-time-dummy-password")


class AccountService:
    """Service layer for credentials"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AccountRepository()
        self.owners = ClaimRepository()

    def signup(self, data: SignupRequest) -> Owner:
        with transaction(self.db):
            owner = self.owners.get_owner_by_email(self.db, data.email)
            if owner and owner.password_hash:
                raise ConflictError("email_taken", "An account already exists for this email")
            if owner is None:
                owner = Owner(email=data.email, display_name=data.display_name)
                self.db.add(owner)
            elif data.display_name and not owner.display_name:
                owner.display_name = data.display_name
            owner.password_hash = hash_password(data.password)

        self.db.refresh(owner)
        logger.info(f"✅ Account created for owner {owner.id}")
        return owner

    def login(self, data: LoginRequest) -> Owner:
        owner = self.owners.get_owner_by_email(self.db, data.email)
        if owner is None or not owner.password_hash:
            verify_password(data.password, _DUMMY_HASH)
            raise UnauthorizedError("bad_credentials", "Invalid email or password")
        if not verify_password(data.password, owner.password_hash):
            logger.warning(f"⚠️ Failed login for owner {owner.id}")
            raise UnauthorizedError("bad_credentials", "Invalid email or password")
        return owner

    async def forgot_password(self, data: ForgotPasswordRequest) -> dict:
        owner = self.owners.get_owner_by_email(self.db, data.email)
        if owner:
            token = generate_secure_token(32)
            with transaction(self.db):
                self.repo.create_password_reset(
                    self.db,
                    owner_id=owner.id,
                    token_hash=sha256_hex(token),
                    expires_at=utc_now() + timedelta(minutes=PASSWORD_RESET_TTL_MINUTES),
                )
            reset_link = f"{PUBLIC_BASE_URL}/{data.locale}/reset?token={token}"
            await email_service.deliver_quietly(
                email_service.send_password_reset_email, to=owner.email, reset_link=reset_link
            )
            logger.info(f"📧 Password reset issued for owner {owner.id}")
        return {"ok": True, "message": GENERIC_FORGOT_MESSAGE}

    def reset_password(self, data: ResetPasswordRequest) -> Owner:
        with transaction(self.db):
            owner_id = self.repo.consume_password_reset(self.db, sha256_hex(data.token.strip()), utc_now())
            if owner_id is None:
                raise ValidationError("invalid_or_expired", "This reset link is invalid or has expired")
            owner = self.owners.get_owner(self.db, owner_id)
            owner.password_hash = hash_password(data.password)

        self.db.refresh(owner)
        logger.info(f"✅ Password reset for owner {owner.id}")
        return owner

    async def request_login_code(self, data: LoginCodeRequest) -> dict:
        code = generate_login_code()
        with transaction(self.db):
            self.repo.create_login_code(
                self.db,
                email=data.email,
                code_hash=hash_login_code(data.email, code),
                expires_at=utc_now() + timedelta(minutes=LOGIN_CODE_TTL_MINUTES),
            )
        await email_service.deliver_quietly(email_service.send_login_code_email, to=data.email, code=code)
        return {"ok": True, "message": GENERIC_CODE_MESSAGE}

    def verify_login_code(self, data: VerifyCodeRequest) -> Owner:
        with transaction(self.db):
            consumed = self.repo.consume_login_code(
                self.db, data.email, hash_login_code(data.email, data.code), utc_now()
            )
            if not consumed:
                raise ValidationError("invalid_or_expired", "This code is invalid or has expired")
            owner_id = self.owners.upsert_owner(self.db, data.email)

        owner = self.owners.get_owner(self.db, owner_id)
        logger.info(f"✅ Owner {owner.id} signed in with a code")
        return owner


def serialize_owner(owner: Owner) -> dict:
    return {
        "id": owner.id,
        "email": owner.email,
        "display_name": owner.display_name,
        "has_password": bool(owner.password_hash),
        "merchant_onboarded": bool(owner.merchant_account_id),
    }
