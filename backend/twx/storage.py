"""Shared lookups used by routers and use cases."""
from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from .models import (
    Element,
    ElementProjectHistory,
    ElementSpeckleMapping,
    Inspection,
    Project,
    User,
)


def get_user(db: Session, user_id: str) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def upsert_user(db: Session, *, user_id: str, email: str, **profile: Any) -> User:
    """Create the user on first login, refresh identity fields afterwards.

    Profile fields edited in the app (display name, company, title) are only
    set when the user row is new.
    """
    user = get_user(db, user_id)
    identity = {
        key: profile.get(key)
        for key in ("first_name", "last_name", "profile_image_url")
        if profile.get(key) is not None
    }
    if user is None:
        user = User(id=user_id, email=email, **identity)
        db.add(user)
    else:
        user.email = email
        for key, value in identity.items():
            setattr(user, key, value)
    db.flush()
    return user


def get_project(db: Session, project_id: str) -> Project | None:
    return db.query(Project).filter(Project.id == project_id).first()


def get_element(db: Session, element_id: str) -> Element | None:
    return db.query(Element).filter(Element.id == element_id).first()


def get_element_by_code(db: Session, code: str) -> Element | None:
    """Find an element by its QR payload or by its bare asset number."""
    element = db.query(Element).filter(Element.qr_code == code).first()
    if element is None:
        element = db.query(Element).filter(Element.asset_number == code).first()
    return element


def get_active_history(db: Session, element_id: str) -> ElementProjectHistory | None:
    return db.query(ElementProjectHistory).filter(
        ElementProjectHistory.element_id == element_id,
        ElementProjectHistory.status == "active",
    ).first()


def get_pending_history(
    db: Session,
    element_id: str,
    project_id: str,
    *,
    for_update: bool = False,
) -> ElementProjectHistory | None:
    query = db.query(ElementProjectHistory).filter(
        ElementProjectHistory.element_id == element_id,
        ElementProjectHistory.project_id == project_id,
        ElementProjectHistory.status == "pending_approval",
    )
    if for_update:
        query = query.with_for_update()
    return query.first()


def get_active_mapping(db: Session, project_id: str, speckle_element_id: str) -> ElementSpeckleMapping | None:
    return db.query(ElementSpeckleMapping).filter(
        ElementSpeckleMapping.project_id == project_id,
        ElementSpeckleMapping.speckle_element_id == speckle_element_id,
        ElementSpeckleMapping.is_active.is_(True),
    ).first()


def get_inspection(db: Session, element_id: str, project_id: str) -> Inspection | None:
    return db.query(Inspection).filter(
        Inspection.element_id == element_id,
        Inspection.project_id == project_id,
    ).first()
