"""
Security Utilities
Password hashing, one-time codes and hashed-at-rest tokens
"""

import hashlib
import logging
import secrets

# Password hashing
from passlib.context import CryptContext

from .config import SECRET_SALT

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# No 0/O or 1/I so codes survive being read aloud or handwritten
TRANSFER_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
TRANSFER_CODE_LENGTH = 5
LOGIN_CODE_LENGTH = 6
MIN_PASSWORD_LENGTH = 8


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against bcrypt hash (constant time)"""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error(f"Password verification error: {e}")
        return False


# ============================================================================
# TOKEN GENERATION & HASHING
# ============================================================================


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token"""
    return secrets.token_urlsafe(length)


def generate_transfer_code() -> str:
    return "".join(secrets.choice(TRANSFER_CODE_ALPHABET) for _ in range(TRANSFER_CODE_LENGTH))


def normalize_transfer_code(code: str) -> str:
    return "".join(str(code or "").split()).upper()


def hash_transfer_code(code: str) -> str:
    return sha256_hex(normalize_transfer_code(code))


def generate_login_code() -> str:
    return "".join(secrets.choice("0123456789") for _ in range(LOGIN_CODE_LENGTH))


def hash_login_code(email: str, code: str) -> str:
    return sha256_hex(f"{SECRET_SALT}{email}{code.strip()}")
