"""Project creation and deletion."""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.orm import Session

from ..domain_errors import bad_request, conflict, not_found
from ..models import (
    PROJECT_STATUSES,
    Element,
    ElementProjectHistory,
    ElementSpeckleMapping,
    Inspection,
    Project,
)
from ..schemas import ProjectCreate
from ..services.identifiers import generate_id
from ..services.transfer_rules import now_utc

logger = logging.getLogger(__name__)

SPECKLE_PROJECT_URL_MARKER = "speckle.systems/projects/"
# Elements in these states still belong to the project (or are on their way to it).
_BLOCKING_ELEMENT_STATUSES = ("active", "in_transit", "pending_approval")


def create_project_use_case(
    *,
    data: ProjectCreate,
    db: Session,
    clock: Callable[[], datetime] = now_utc,
) -> Project:
    name = (data.name or "").strip()
    if not name:
        raise bad_request("PROJECT_NAME_REQUIRED", "Project name is required")
    if not data.speckle_url:
        raise bad_request("PROJECT_SPECKLE_URL_REQUIRED", "Speckle URL is required")
    if SPECKLE_PROJECT_URL_MARKER not in data.speckle_url:
        raise bad_request("PROJECT_SPECKLE_URL_INVALID", "Invalid Speckle URL format")
    status = data.status or "active"
    if status not in PROJECT_STATUSES:
        raise bad_request("PROJECT_STATUS_INVALID", f"Invalid project status: {status}")

    now = clock()
    project = Project(
        id=generate_id("proj"),
        name=name,
        status=status,
        speckle_url=data.speckle_url,
        created_at=now,
        last_modified=now,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    logger.info("project.create id=%s name=%s", project.id, project.name)
    return project


def delete_project_use_case(*, db: Session, project_id: str) -> Project:
    """Delete a project with its inspections and BIM links; history rows stay as audit."""
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise not_found("PROJECT_NOT_FOUND", "Project not found")

    holding = db.query(Element.id).filter(
        Element.current_project_id == project_id,
        Element.status.in_(_BLOCKING_ELEMENT_STATUSES),
    ).count()
    incoming = db.query(ElementProjectHistory.id).filter(
        ElementProjectHistory.project_id == project_id,
        ElementProjectHistory.status == "pending_approval",
    ).count()
    if holding or incoming:
        raise conflict(
            "PROJECT_HAS_ACTIVE_ELEMENTS",
            "Project still holds active or in-transit elements; transfer them out first",
            details={"elements": holding, "pendingTransfers": incoming},
        )

    db.query(Inspection).filter(Inspection.project_id == project_id).delete(synchronize_session=False)
    db.query(ElementSpeckleMapping).filter(
        ElementSpeckleMapping.project_id == project_id,
    ).delete(synchronize_session=False)
    db.delete(project)
    db.commit()

    logger.info("project.delete id=%s name=%s", project.id, project.name)
    return project
