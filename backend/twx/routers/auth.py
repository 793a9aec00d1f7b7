"""Auth endpoints (OpenID Connect login, callback, logout)."""
import ipaddress
import logging
from typing import Optional
from urllib.parse import urlencode

import redis
from redis.exceptions import RedisError
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import oidc
from ..auth import (
    clear_session_cookie,
    create_session,
    delete_session,
    get_current_user,
    is_request_https,
    set_session_cookie,
)
from ..config import settings
from ..database import get_db
from ..models import User
from ..schemas import UserProfileOut
from ..storage import upsert_user

router = APIRouter(tags=["auth"])
logger = logging.getLogger(__name__)

STATE_COOKIE_NAME = "twx.oidc_state"

_redis_client = None


def _get_redis():
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


def _get_client_ip(request: Request) -> str:
    if settings.TRUST_PROXY_HEADERS:
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            try:
                ipaddress.ip_address(real_ip)
                return real_ip
            except ValueError:
                pass

        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # X-Forwarded-For may contain a list: client, proxy1, proxy2
            candidate = forwarded.split(",")[0].strip()
            try:
                ipaddress.ip_address(candidate)
                return candidate
            except ValueError:
                pass

    if request.client:
        return request.client.host
    return "unknown"


def _set_no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"
    response.headers["Pragma"] = "no-cache"


def _incr_with_ttl(key: str, ttl_seconds: int) -> tuple[int, int]:
    """
    Increment a Redis counter and ensure it has an expiry.
    Returns (value, ttl_remaining_seconds).
    """
    r = _get_redis()
    value = r.incr(key)
    if value == 1:
        r.expire(key, ttl_seconds)
    ttl = r.ttl(key)
    if ttl is None or ttl < 0:
        ttl = ttl_seconds
    return int(value), int(ttl)


def _enforce_login_rate_limit(request: Request) -> None:
    ip = _get_client_ip(request)
    try:
        attempts, ttl = _incr_with_ttl(f"auth:rl:login:ip:{ip}", 60)
    except RedisError:
        # Fail open if Redis is down to avoid total auth outage.
        logger.exception("Redis error during login rate limiting (fail-open)")
        return
    if attempts > settings.AUTH_LOGIN_IP_LIMIT_PER_MINUTE:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Try again later.",
            headers={"Retry-After": str(ttl)},
        )


def _callback_url(request: Request) -> str:
    host = (request.url.hostname or "").lower()
    if host not in settings.oidc_allowed_domains:
        raise HTTPException(status_code=400, detail=f"Login is not enabled for host {host}")
    scheme = "https" if is_request_https(request) else "http"
    netloc = request.headers.get("host") or request.url.netloc
    return f"{scheme}://{netloc}/api/callback"


@router.get("/login")
def login(request: Request):
    """Start the authorization-code flow at the identity provider."""
    _enforce_login_rate_limit(request)
    login_state = oidc.new_login_state(_callback_url(request))
    try:
        authorization_url = oidc.build_authorization_url(login_state)
    except oidc.OIDCError:
        logger.exception("auth.login provider discovery failed")
        raise HTTPException(status_code=502, detail="Identity provider unavailable")

    response = RedirectResponse(authorization_url, status_code=status.HTTP_302_FOUND)
    _set_no_store(response)
    response.set_cookie(
        key=STATE_COOKIE_NAME,
        value=oidc.encode_login_state(login_state),
        httponly=True,
        secure=bool(settings.SESSION_COOKIE_SECURE or is_request_https(request)),
        samesite="lax",
        path="/api/callback",
        max_age=settings.OIDC_STATE_MAX_AGE_SECONDS,
    )
    return response


@router.get("/callback")
def callback(
    request: Request,
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    """Finish login: verify the provider response, upsert the user, open a session."""
    if error:
        logger.warning("auth.callback provider_error=%s", error)
        raise HTTPException(status_code=401, detail="Login was not completed")
    if not code or not state:
        raise HTTPException(status_code=400, detail="Missing code or state")

    try:
        login_state = oidc.decode_login_state(request.cookies.get(STATE_COOKIE_NAME))
        if login_state.state != state:
            raise oidc.OIDCError("State mismatch")
        tokens = oidc.exchange_code(code, login_state)
        claims = oidc.verify_id_token(
            tokens["id_token"],
            nonce=login_state.nonce,
            access_token=tokens.get("access_token"),
        )
    except oidc.OIDCError as exc:
        logger.warning("auth.callback failed: %s", exc)
        raise HTTPException(status_code=401, detail="Login failed")

    email = claims.get("email")
    if not email:
        raise HTTPException(status_code=401, detail="Identity provider did not return an email")

    try:
        user = upsert_user(
            db,
            user_id=claims["sub"],
            email=email,
            first_name=claims.get("first_name") or claims.get("given_name"),
            last_name=claims.get("last_name") or claims.get("family_name"),
            profile_image_url=claims.get("profile_image_url") or claims.get("picture"),
        )
        session_record = create_session(db, user=user, claims=claims)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to persist login session")
        raise HTTPException(status_code=500, detail="Failed to login")

    response = RedirectResponse(settings.POST_LOGIN_REDIRECT, status_code=status.HTTP_302_FOUND)
    _set_no_store(response)
    set_session_cookie(response, request=request, sid=session_record.sid)
    response.delete_cookie(key=STATE_COOKIE_NAME, path="/api/callback")
    logger.info("auth.login user=%s ip=%s", user.id, _get_client_ip(request))
    return response


@router.get("/logout")
def logout(request: Request, db: Session = Depends(get_db)):
    """End the session here and at the identity provider when it supports it."""
    sid = request.cookies.get(settings.SESSION_COOKIE_NAME)
    try:
        if delete_session(db, sid):
            db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to delete session on logout")

    target = "/"
    try:
        end_session = oidc.get_provider_metadata().get("end_session_endpoint")
    except oidc.OIDCError:
        end_session = None
    if end_session:
        scheme = "https" if is_request_https(request) else "http"
        netloc = request.headers.get("host") or request.url.netloc
        target = f"{end_session}?" + urlencode({
            "client_id": settings.OIDC_CLIENT_ID,
            "post_logout_redirect_uri": f"{scheme}://{netloc}",
        })

    response = RedirectResponse(target, status_code=status.HTTP_302_FOUND)
    _set_no_store(response)
    clear_session_cookie(response, request=request)
    return response


@router.get("/auth/user", response_model=UserProfileOut)
def get_auth_user(response: Response, current_user: User = Depends(get_current_user)):
    """Get current user info."""
    _set_no_store(response)
    return UserProfileOut.model_validate(current_user)
