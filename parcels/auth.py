"""
Signed-cookie sessions.

The cookie carries ``{owner_id, email, display_name, iat}`` signed with
itsdangerous; there is no server-side session store, so logout only clears the
cookie on the client.
"""

import logging
import time
from typing import Optional

from fastapi import Depends, Request, Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .config import (
    SESSION_COOKIE_DOMAIN,
    SESSION_COOKIE_NAME,
    SESSION_COOKIE_SECURE,
    SESSION_MAX_AGE_DAYS,
    SESSION_SECRET,
)
from .database import get_db
from .errors import UnauthorizedError
from .models import Owner

logger = logging.getLogger(__name__)

SESSION_SALT = "parcels-session"
SESSION_MAX_AGE_SECONDS = SESSION_MAX_AGE_DAYS * 24 * 60 * 60

serializer = URLSafeTimedSerializer(SESSION_SECRET, salt=SESSION_SALT)


class SessionData(BaseModel):
    owner_id: str
    email: str
    display_name: Optional[str] = None
    iat: int


def encode_session(owner: Owner) -> str:
    payload = {
        "owner_id": owner.id,
        "email": owner.email,
        "display_name": owner.display_name,
        "iat": int(time.time()),
    }
    return serializer.dumps(payload)


def decode_session(token: Optional[str]) -> Optional[SessionData]:
    """Verify signature and age; ``None`` for anything that does not check out"""
    if not token:
        return None
    try:
        data = serializer.loads(token, max_age=SESSION_MAX_AGE_SECONDS)
        return SessionData(**data)
    except SignatureExpired:
        logger.info("Session cookie expired")
        return None
    except BadSignature:
        logger.warning("⚠️ Invalid session cookie signature")
        return None
    except (TypeError, ValueError) as e:
        logger.warning(f"⚠️ Malformed session payload: {e}")
        return None


def set_session_cookie(response: Response, owner: Owner):
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=encode_session(owner),
        max_age=SESSION_MAX_AGE_SECONDS,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
        domain=SESSION_COOKIE_DOMAIN,
        path="/",
    )


def clear_session_cookie(response: Response):
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        domain=SESSION_COOKIE_DOMAIN,
        path="/",
        secure=SESSION_COOKIE_SECURE,
        httponly=True,
        samesite="lax",
    )


def get_session(request: Request) -> Optional[SessionData]:
    return decode_session(request.cookies.get(SESSION_COOKIE_NAME))


def get_optional_owner(request: Request, db: Session = Depends(get_db)) -> Optional[Owner]:
    session = get_session(request)
    if not session:
        return None
    return db.query(Owner).filter(Owner.id == session.owner_id).first()


def get_current_owner(owner: Optional[Owner] = Depends(get_optional_owner)) -> Owner:
    """Dependency for endpoints that require a signed-in owner"""
    if owner is None:
        raise UnauthorizedError("unauthorized", "Sign in required")
    return owner
