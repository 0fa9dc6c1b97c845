"""Account router - signup, login, logout, password reset and sign-in codes"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...auth import clear_session_cookie, get_current_owner, set_session_cookie
from ...database import get_db
from ...models import Owner
from ...rate_limiter import create_rate_limiter
from .schemas import (
    ForgotPasswordRequest,
    LoginCodeRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    VerifyCodeRequest,
)
from .service import AccountService, serialize_owner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

rate_limit_signup = create_rate_limiter(limit=10, window_seconds=3600, key_prefix="signup")
rate_limit_login = create_rate_limiter(limit=20, window_seconds=600, key_prefix="login")
rate_limit_forgot = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="forgot_password")
rate_limit_request_code = create_rate_limiter(limit=5, window_seconds=600, key_prefix="login_code")
rate_limit_verify_code = create_rate_limiter(limit=10, window_seconds=600, key_prefix="verify_code")


def get_account_service(db: Session = Depends(get_db)) -> AccountService:
    """Dependency injection for AccountService"""
    return AccountService(db)


def signed_in(owner: Owner) -> JSONResponse:
    response = JSONResponse(content={"ok": True, "owner": serialize_owner(owner)})
    set_session_cookie(response, owner)
    return response


@router.post("/signup")
async def signup(
    data: SignupRequest,
    service: AccountService = Depends(get_account_service),
    _: None = Depends(rate_limit_signup),
):
    return signed_in(service.signup(data))


@router.post("/login")
async def login(
    data: LoginRequest,
    service: AccountService = Depends(get_account_service),
    _: None = Depends(rate_limit_login),
):
    return signed_in(service.login(data))


@router.post("/logout")
async def logout():
    """Clears the session cookie; signed cookies cannot be revoked server-side"""
    response = JSONResponse(content={"ok": True})
    clear_session_cookie(response)
    return response


@router.get("/me")
async def me(owner: Owner = Depends(get_current_owner)):
    return {"ok": True, "owner": serialize_owner(owner)}


@router.post("/forgot")
async def forgot_password(
    data: ForgotPasswordRequest,
    service: AccountService = Depends(get_account_service),
    _: None = Depends(rate_limit_forgot),
):
    """Always answers the same way so the endpoint does not reveal which emails have accounts"""
    return await service.forgot_password(data)


@router.post("/reset")
async def reset_password(data: ResetPasswordRequest, service: AccountService = Depends(get_account_service)):
    return signed_in(service.reset_password(data))


@router.post("/request-code")
async def request_login_code(
    data: LoginCodeRequest,
    service: AccountService = Depends(get_account_service),
    _: None = Depends(rate_limit_request_code),
):
    return await service.request_login_code(data)


@router.post("/verify-code")
async def verify_login_code(
    data: VerifyCodeRequest,
    service: AccountService = Depends(get_account_service),
    _: None = Depends(rate_limit_verify_code),
):
    """Rate limited to 10 attempts per 10 minutes per IP"""
    return signed_in(service.verify_login_code(data))
