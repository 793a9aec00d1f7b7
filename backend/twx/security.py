"""Security helpers (entity loading and CSRF origin checks)."""

from __future__ import annotations

from typing import TypeVar
from urllib.parse import urlparse

from fastapi import HTTPException, Request, status
from sqlalchemy.orm import Session

from .config import settings

T = TypeVar("T")


def require_entity(db: Session, model: type[T], *, entity_id: str, not_found: str) -> T:
    """Load an entity by id or raise 404."""
    entity = db.query(model).filter(  # type: ignore[arg-type]
        getattr(model, "id") == entity_id,  # noqa: B009
    ).first()
    if not entity:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=not_found)
    return entity


def normalize_origin(value: str | None) -> str | None:
    if not value:
        return None
    raw = value.strip()
    if not raw:
        return None
    parsed = urlparse(raw)
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


def csrf_trusted_origins() -> set[str]:
    raw = settings.CSRF_TRUSTED_ORIGINS or settings.ALLOWED_ORIGINS
    trusted: set[str] = set()
    for origin in raw.split(","):
        normalized = normalize_origin(origin)
        if normalized:
            trusted.add(normalized)
    return trusted


def enforce_csrf_origin(request: Request) -> None:
    """CSRF defense for browser clients using the session cookie.

    If Origin/Referer headers are present, they must match an allowed origin.
    In production, unsafe requests carrying cookies MUST include Origin/Referer.
    """
    if request.method in {"GET", "HEAD", "OPTIONS"}:
        return

    trusted = csrf_trusted_origins()
    origin = request.headers.get("origin")
    if origin:
        if normalize_origin(origin) not in trusted:
            raise HTTPException(status_code=403, detail="CSRF origin denied")
        return

    referer = request.headers.get("referer")
    if referer:
        if normalize_origin(referer) not in trusted:
            raise HTTPException(status_code=403, detail="CSRF origin denied")
        return

    if settings.ENV.lower() == "production":
        has_cookies = bool(request.headers.get("cookie")) or bool(request.cookies)
        if has_cookies:
            # Fetch Metadata fallback for same-origin requests without Origin/Referer.
            sec_fetch_site = (request.headers.get("sec-fetch-site") or "").strip().lower()
            if sec_fetch_site in {"same-origin", "same-site", "none"}:
                return
            raise HTTPException(status_code=403, detail="CSRF origin required")
