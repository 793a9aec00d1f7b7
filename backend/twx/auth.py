"""Server-side sessions and the current-user dependencies."""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .models import SessionRecord, User

logger = logging.getLogger(__name__)

# Claims kept in the session row; the rest of the id_token is dropped.
SESSION_CLAIMS = ("sub", "email", "first_name", "last_name", "profile_image_url", "exp")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def create_session(db: Session, *, user: User, claims: dict[str, Any]) -> SessionRecord:
    """Persist a new login session for the user."""
    now = _utc_now()
    record = SessionRecord(
        sid=secrets.token_urlsafe(32),
        sess={
            "user_id": user.id,
            "claims": {key: claims[key] for key in SESSION_CLAIMS if key in claims},
            "created_at": now.isoformat(),
        },
        expire=now + timedelta(seconds=settings.SESSION_TTL_SECONDS),
    )
    db.add(record)
    db.flush()
    return record


def resolve_session(db: Session, sid: str | None) -> SessionRecord | None:
    """Return the live session for the cookie value; expired rows are dropped."""
    if not sid:
        return None
    record = db.query(SessionRecord).filter(SessionRecord.sid == sid).first()
    if record is None:
        return None
    if _as_utc(record.expire) <= _utc_now():
        db.delete(record)
        db.commit()
        return None
    return record


def delete_session(db: Session, sid: str | None) -> bool:
    if not sid:
        return False
    deleted = db.query(SessionRecord).filter(SessionRecord.sid == sid).delete(synchronize_session=False)
    return bool(deleted)


def purge_expired_sessions(db: Session) -> int:
    """Delete every expired session row; returns the number removed."""
    return db.query(SessionRecord).filter(
        SessionRecord.expire <= _utc_now()
    ).delete(synchronize_session=False)


def is_request_https(request: Request) -> bool:
    if settings.TRUST_PROXY_HEADERS:
        proto = request.headers.get("x-forwarded-proto")
        if proto:
            return proto.split(",")[0].strip().lower() == "https"
    return request.url.scheme == "https"


def set_session_cookie(response: Response, *, request: Request, sid: str) -> None:
    secure = bool(settings.SESSION_COOKIE_SECURE or is_request_https(request))
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=sid,
        httponly=True,
        secure=secure,
        samesite=settings.SESSION_COOKIE_SAMESITE,
        path="/",
        max_age=settings.SESSION_TTL_SECONDS,
    )


def clear_session_cookie(response: Response, *, request: Request) -> None:
    secure = bool(settings.SESSION_COOKIE_SECURE or is_request_https(request))
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        secure=secure,
        samesite=settings.SESSION_COOKIE_SAMESITE,
    )


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """Current user from the session cookie, or None when not logged in."""
    record = resolve_session(db, request.cookies.get(settings.SESSION_COOKIE_NAME))
    if record is None:
        return None
    user_id = (record.sess or {}).get("user_id")
    if not user_id:
        return None
    return db.query(User).filter(User.id == user_id).first()


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """Get current authenticated user."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return user
