"""Shared validation utilities"""

import re
import uuid
from typing import Any, Optional

DEFAULT_TEXT_COLOR = "#1a1f2a"

TITLE_MAX_LENGTH = 80
MESSAGE_MAX_LENGTH = 280
LINK_MAX_LENGTH = 500
DISPLAY_NAME_MAX_LENGTH = 40

HEX_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

TRUTHY_VALUES = {"1", "true", "yes", "on"}


def coerce_bool(value: Any) -> bool:
    """
    Normalize loosely typed request flags into a boolean.

    Accepts ``True``, ``1``, ``"1"``, ``"true"``, ``"yes"`` and ``"on"`` (any case).
    Everything else, including ``None``, is ``False``.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_VALUES
    return False


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def validate_email(email: Optional[str]) -> str:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email or not email.strip():
        raise ValueError("Email is required")

    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email format")

    return email


def clean_text(value: Optional[str], max_length: int) -> Optional[str]:
    """Trim free text and cap its length; blank becomes None"""
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    return value[:max_length]


def normalize_link_url(value: Optional[str]) -> Optional[str]:
    value = clean_text(value, LINK_MAX_LENGTH)
    if value is None:
        return None
    if not re.match(r"^https?://", value, re.IGNORECASE):
        raise ValueError("link_url must start with http:// or https://")
    return value


def normalize_text_color(value: Optional[str]) -> str:
    if value and HEX_COLOR_PATTERN.match(value.strip()):
        return value.strip().lower()
    return DEFAULT_TEXT_COLOR
