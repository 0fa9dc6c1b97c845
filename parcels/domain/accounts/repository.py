"""Account repository - password resets and one-time sign-in codes"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ...models import LoginCode, PasswordReset


class AccountRepository:
    """Repository for account database operations"""

    @staticmethod
    def create_password_reset(db: Session, owner_id: str, token_hash: str, expires_at: datetime):
        db.add(PasswordReset(owner_id=owner_id, token_hash=token_hash, expires_at=expires_at))

    @staticmethod
    def consume_password_reset(db: Session, token_hash: str, now: datetime) -> Optional[str]:
        """
        Mark a reset token used in a single statement. Only an unused,
        unexpired token matches, so an expired one is never marked used.
        """
        stmt = (
            update(PasswordReset)
            .where(
                PasswordReset.token_hash == token_hash,
                PasswordReset.used_at.is_(None),
                PasswordReset.expires_at > now,
            )
            .values(used_at=now)
            .returning(PasswordReset.owner_id)
        )
        return db.execute(stmt).scalar_one_or_none()

    @staticmethod
    def create_login_code(db: Session, email: str, code_hash: str, expires_at: datetime):
        db.add(LoginCode(email=email, code_hash=code_hash, expires_at=expires_at))

    @staticmethod
    def consume_login_code(db: Session, email: str, code_hash: str, now: datetime) -> bool:
        newest = (
            select(LoginCode.id)
            .where(
                LoginCode.email == email,
                LoginCode.code_hash == code_hash,
                LoginCode.used_at.is_(None),
                LoginCode.expires_at > now,
            )
            .order_by(LoginCode.created_at.desc(), LoginCode.id.desc())
            .limit(1)
            .scalar_subquery()
        )
        stmt = (
            update(LoginCode)
            .where(LoginCode.id == newest)
            .values(used_at=now)
            .returning(LoginCode.id)
        )
        return db.execute(stmt).scalar_one_or_none() is not None
