import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL")

# Public base URL used to build absolute links (emails, PDFs, redirects)
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")

# Dodo Payments Configuration
DODO_PAYMENTS_API_KEY = os.getenv("DODO_PAYMENTS_API_KEY")
DODO_PAYMENTS_WEBHOOK_SECRET = os.getenv("DODO_PAYMENTS_WEBHOOK_SECRET")
# "test_mode" or "live_mode" - default to test for safety
DODO_PAYMENTS_ENVIRONMENT = os.getenv("DODO_PAYMENTS_ENVIRONMENT", "test_mode")
# Adhoc ("pay what you want") product, the amount is set per checkout
DODO_ADHOC_PRODUCT_ID = os.getenv("DODO_ADHOC_PRODUCT_ID")

# Security - CRITICAL: No default salt in production
SECRET_SALT = os.getenv("SECRET_SALT")
if not SECRET_SALT:
    import warnings

    warnings.warn(
        "SECRET_SALT not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_SALT = "INSECURE-DEV-SALT-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

SESSION_SECRET = os.getenv("SESSION_SECRET") or SECRET_SALT
ART_SALT = os.getenv("ART_SALT") or SECRET_SALT

# Session cookie
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "pot_sess")
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "true").lower() == "true"
SESSION_COOKIE_DOMAIN = os.getenv("SESSION_COOKIE_DOMAIN") or None
SESSION_MAX_AGE_DAYS = int(os.getenv("SESSION_MAX_AGE_DAYS", "30"))

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Parcels of Time <no-reply@parcelsoftime.com>")
EMAIL_REPLY_TO = os.getenv("EMAIL_REPLY_TO")

# Redis (optional, shared rate limiting across instances)
REDIS_URL = os.getenv("REDIS_URL")

# Pricing
CURRENCY = os.getenv("CURRENCY", "EUR")
CLASSIC_PRICE_CENTS = int(os.getenv("CLASSIC_PRICE_CENTS", "7900"))
PREMIUM_PRICE_CENTS = int(os.getenv("PREMIUM_PRICE_CENTS", "79000"))

# Marketplace
LISTING_MIN_PRICE_CENTS = int(os.getenv("LISTING_MIN_PRICE_CENTS", "100"))
PLATFORM_FEE_RATE = float(os.getenv("PLATFORM_FEE_RATE", "0.10"))
PLATFORM_FEE_MIN_CENTS = int(os.getenv("PLATFORM_FEE_MIN_CENTS", "100"))

# Token lifetimes
PASSWORD_RESET_TTL_MINUTES = int(os.getenv("PASSWORD_RESET_TTL_MINUTES", "30"))
LOGIN_CODE_TTL_MINUTES = int(os.getenv("LOGIN_CODE_TTL_MINUTES", "15"))

# Certificate PDFs are cacheable by shared caches
CERT_CACHE_MAX_AGE = int(os.getenv("CERT_CACHE_MAX_AGE", "3600"))

ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:8000",
).split(",")
