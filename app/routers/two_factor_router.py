from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session
from typing import Any, Dict
import logging

from app.schemas.two_factor import (
    TwoFactorVerifyRequest,
    TwoFactorEnableResponse,
    TwoFactorVerifyResponse,
    TwoFactorDisableResponse,
    TwoFactorStatusResponse,
)
from app.core.config import ENVIRONMENT, MFA_SESSION_TTL
from app.core.exceptions import SecureHTTPException, INVALID_CODE_DETAIL, to_http_exception
from app.core.jwt_auth import get_current_session, get_current_user
from app.core.memory_rate_limiter import MemoryRateLimiter
from app.core.security import request_audit_meta
from app.core.ttl_cache import TTLCache
from app.db.database import get_db
from app.services.audit import SqlAuditLogger
from app.services.qr import render_qr_data_uri
from app.services.two_factor import TwoFactorService
from app.services.two_factor_store import SqlTwoFactorStore

logger = logging.getLogger(__name__)

router = APIRouter()

MFA_COOKIE = "mfaVerified"


def get_two_factor_service(request: Request, db: Session = Depends(get_db)) -> TwoFactorService:
    state = request.app.state
    return TwoFactorService(
        store=SqlTwoFactorStore(db),
        cipher=state.cipher,
        audit_logger=SqlAuditLogger(db),
        issuer=state.totp_issuer,
        clock=state.clock,
    )


def get_mfa_sessions(request: Request) -> TTLCache:
    return request.app.state.mfa_sessions


def get_rate_limiter(request: Request) -> MemoryRateLimiter:
    return request.app.state.rate_limiter


def _mfa_marker(user_id, session_id: str):
    return (str(user_id), session_id)


def _forget_mfa_markers(mfa_sessions: TTLCache, user_id) -> int:
    """Drop the verified marker of every session belonging to `user_id`"""
    owner = str(user_id)
    return mfa_sessions.invalidate_where(lambda key: key[0] == owner)


def _enforce_rate_limit(rate_limiter: MemoryRateLimiter, user_id, action: str) -> None:
    if rate_limiter.is_rate_limited(str(user_id), action):
        raise SecureHTTPException(
            status_code=429,
            detail="Too many attempts. Please try again later.",
            internal_detail=f"{action} rate limit exceeded for user {user_id}"
        )


@router.post("/enable", response_model=TwoFactorEnableResponse)
def enable_two_factor(
    request: Request,
    current_user=Depends(get_current_user),
    service: TwoFactorService = Depends(get_two_factor_service),
    rate_limiter: MemoryRateLimiter = Depends(get_rate_limiter),
    mfa_sessions: TTLCache = Depends(get_mfa_sessions),
):
    _enforce_rate_limit(rate_limiter, current_user.user_id, "enable")

    result = service.enable(current_user.user_id, current_user.email, meta=request_audit_meta(request))
    if not result.ok:
        raise to_http_exception(result.error, current_user.user_id)

    # the old secret is gone, so sessions verified against it are too
    _forget_mfa_markers(mfa_sessions, current_user.user_id)
    uri = result.value.provisioning_uri
    return TwoFactorEnableResponse(provisioning_uri=uri, qr_code_data_url=render_qr_data_uri(uri))


@router.post("/verify", response_model=TwoFactorVerifyResponse)
def verify_two_factor(
    data: TwoFactorVerifyRequest,
    request: Request,
    response: Response,
    session: Dict[str, Any] = Depends(get_current_session),
    current_user=Depends(get_current_user),
    service: TwoFactorService = Depends(get_two_factor_service),
    mfa_sessions: TTLCache = Depends(get_mfa_sessions),
    rate_limiter: MemoryRateLimiter = Depends(get_rate_limiter),
):
    _enforce_rate_limit(rate_limiter, current_user.user_id, "totp")

    result = service.verify(current_user.user_id, data.code, meta=request_audit_meta(request))
    if not result.ok:
        raise to_http_exception(result.error, current_user.user_id)

    if not result.value:
        return TwoFactorVerifyResponse(verified=False, message=INVALID_CODE_DETAIL)

    rate_limiter.reset_user_limits(str(current_user.user_id), "totp")
    mfa_sessions.set(_mfa_marker(current_user.user_id, session["session_id"]))
    logger.info(f"Session marked 2FA-verified for user {current_user.user_id}")
    response.set_cookie(
        MFA_COOKIE,
        "true",
        path="/",
        httponly=True,
        secure=ENVIRONMENT == "production",
        samesite="lax",
        max_age=int(MFA_SESSION_TTL.total_seconds()),
    )
    return TwoFactorVerifyResponse(verified=True)


@router.post("/disable", response_model=TwoFactorDisableResponse)
def disable_two_factor(
    request: Request,
    response: Response,
    current_user=Depends(get_current_user),
    service: TwoFactorService = Depends(get_two_factor_service),
    mfa_sessions: TTLCache = Depends(get_mfa_sessions),
):
    result = service.disable(current_user.user_id, meta=request_audit_meta(request))
    if not result.ok:
        raise to_http_exception(result.error, current_user.user_id)

    _forget_mfa_markers(mfa_sessions, current_user.user_id)
    response.delete_cookie(MFA_COOKIE, path="/")
    return TwoFactorDisableResponse(enabled=False)


@router.get("/status", response_model=TwoFactorStatusResponse)
def two_factor_status(
    session: Dict[str, Any] = Depends(get_current_session),
    current_user=Depends(get_current_user),
    service: TwoFactorService = Depends(get_two_factor_service),
    mfa_sessions: TTLCache = Depends(get_mfa_sessions),
):
    result = service.status(current_user.user_id)
    if not result.ok:
        raise to_http_exception(result.error, current_user.user_id)

    return TwoFactorStatusResponse(enabled=result.value, verified=_mfa_marker(current_user.user_id, session["session_id"]) in mfa_sessions)
