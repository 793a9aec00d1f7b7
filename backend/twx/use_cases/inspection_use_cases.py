"""Inspection upsert keyed by (element, project)."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..domain_errors import bad_request, conflict
from ..models import Inspection
from ..schemas import InspectionSave
from ..services.identifiers import generate_id
from ..services.transfer_rules import now_utc
from ..storage import get_inspection

logger = logging.getLogger(__name__)

ANONYMOUS_USER_ID = "anonymous"
# Columns that are NOT NULL; an explicit null in an update leaves them unchanged.
_REQUIRED_COLUMNS = {"inspector", "status", "date", "last_modified_by"}


@dataclass(frozen=True)
class InspectionUseCaseHooks:
    now_utc: Callable[[], datetime] = now_utc
    generate_id: Callable[[str], str] = generate_id


DEFAULT_HOOKS = InspectionUseCaseHooks()


def _version_conflict(current_version: int | None):
    return conflict(
        "INSPECTION_VERSION_CONFLICT",
        "Inspection was modified by someone else; reload before saving",
        details={"currentVersion": current_version},
    )


def _apply_update(
    inspection: Inspection,
    data: InspectionSave,
    *,
    user_id: str,
    at: datetime,
) -> None:
    if data.version is not None and data.version != inspection.version:
        raise _version_conflict(inspection.version)

    changes = data.model_dump(exclude_unset=True, exclude={"element_id", "project_id", "version"})
    for field, value in changes.items():
        if value is None and field in _REQUIRED_COLUMNS:
            continue
        setattr(inspection, field, value)
    inspection.timestamp = at
    inspection.last_modified_by_user_id = user_id


def _new_inspection(data: InspectionSave, *, user_id: str, at: datetime, inspection_id: str) -> Inspection:
    fields = data.model_dump(exclude={"element_id", "project_id", "version"})
    fields.update(
        inspector=data.inspector or "",
        status=data.status or "",
        notes=data.notes or "",
        date=data.date or at.date().isoformat(),
        last_modified_by=data.last_modified_by or "user",
    )
    return Inspection(
        id=inspection_id,
        element_id=data.element_id,
        project_id=data.project_id,
        timestamp=at,
        created_by_user_id=user_id,
        last_modified_by_user_id=user_id,
        **fields,
    )


def save_inspection_use_case(
    *,
    data: InspectionSave,
    user_id: str | None,
    db: Session,
    hooks: InspectionUseCaseHooks = DEFAULT_HOOKS,
) -> Inspection:
    """Create or update the inspection for (elementId, projectId).

    User tracking fields come from the session only. When the payload carries
    `version` it must match the stored one; without it the save is
    last-write-wins.
    """
    if not data.element_id:
        raise bad_request("INSPECTION_ELEMENT_REQUIRED", "elementId is required")
    if not data.project_id or not data.project_id.strip():
        raise bad_request("INSPECTION_PROJECT_REQUIRED", "projectId is required")

    actor = user_id or ANONYMOUS_USER_ID
    now = hooks.now_utc()

    inspection = get_inspection(db, data.element_id, data.project_id)
    created = inspection is None
    if created:
        inspection = _new_inspection(data, user_id=actor, at=now, inspection_id=hooks.generate_id("insp"))
        db.add(inspection)
    else:
        _apply_update(inspection, data, user_id=actor, at=now)

    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        current = get_inspection(db, data.element_id, data.project_id)
        raise _version_conflict(current.version if current else None) from exc
    except IntegrityError:
        if not created:
            raise
        # Lost the race to create it; save onto the row that won.
        db.rollback()
        inspection = get_inspection(db, data.element_id, data.project_id)
        if inspection is None:
            raise
        _apply_update(inspection, data, user_id=actor, at=now)
        try:
            db.commit()
        except StaleDataError as exc:
            db.rollback()
            raise _version_conflict(None) from exc
        created = False

    db.refresh(inspection)
    logger.info(
        "inspection.%s id=%s element=%s project=%s version=%s user=%s",
        "create" if created else "update",
        inspection.id,
        inspection.element_id,
        inspection.project_id,
        inspection.version,
        actor,
    )
    return inspection
