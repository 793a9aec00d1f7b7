"""Element registration and editing."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain_errors import bad_request, conflict, not_found
from ..models import Element, ElementProjectHistory, ElementSpeckleMapping, User
from ..schemas import ElementCreate, ElementUpdate
from ..services.asset_numbering import next_asset_number, qr_payload
from ..services.element_properties import UNKNOWN_ID, element_properties
from ..services.transfer_rules import now_utc
from ..storage import get_active_mapping, get_element, get_project

logger = logging.getLogger(__name__)

REGISTRATION_ATTEMPTS = 3


@dataclass(frozen=True)
class RegistryUseCaseHooks:
    now_utc: Callable[[], datetime] = now_utc
    next_asset_number: Callable[[Session, str], str] = next_asset_number


DEFAULT_HOOKS = RegistryUseCaseHooks()


def register_element_use_case(
    *,
    data: ElementCreate,
    current_user: User,
    db: Session,
    hooks: RegistryUseCaseHooks = DEFAULT_HOOKS,
) -> Element:
    """Register a physical asset in a project, optionally linking it to a BIM element."""
    node = element_properties(data.speckle_node) if data.speckle_node else None
    ifc_type = data.ifc_type or (node["ifc_type"] if node else None)
    speckle_element_id = data.speckle_element_id
    if speckle_element_id is None and node and node["id"] != UNKNOWN_ID:
        speckle_element_id = node["id"]

    missing = [
        name
        for name, value in (
            ("ifcType", ifc_type),
            ("currentProjectId", data.current_project_id),
            ("currentCondition", data.current_condition),
        )
        if not value
    ]
    if missing:
        raise bad_request("ELEMENT_FIELDS_REQUIRED", f"Missing required fields: {', '.join(missing)}")

    if get_project(db, data.current_project_id) is None:
        raise not_found("PROJECT_NOT_FOUND", "Project not found")
    if speckle_element_id and get_active_mapping(db, data.current_project_id, speckle_element_id):
        raise conflict(
            "BIM_ELEMENT_ALREADY_LINKED",
            "This BIM element is already linked to another asset",
            details={"speckleElementId": speckle_element_id},
        )

    fields = data.model_dump(
        exclude={"ifc_type", "current_project_id", "speckle_element_id", "speckle_object_url", "speckle_node"},
        exclude_unset=True,
    )

    # Asset numbers are allocated from the current maximum; a concurrent
    # registration can take the same number, so retry on unique violation.
    for attempt in range(1, REGISTRATION_ATTEMPTS + 1):
        now = hooks.now_utc()
        asset_number = hooks.next_asset_number(db, ifc_type)
        element = Element(
            id=str(uuid.uuid4()),
            asset_number=asset_number,
            qr_code=qr_payload(asset_number),
            ifc_type=ifc_type,
            current_project_id=data.current_project_id,
            status="active",
            created_by_user_id=current_user.id,
            **fields,
        )
        db.add(element)
        db.add(ElementProjectHistory(
            element_id=element.id,
            project_id=data.current_project_id,
            status="active",
            activated_date=now,
            received_condition=data.current_condition,
            transferred_by_user_id=current_user.id,
        ))
        if speckle_element_id:
            db.add(ElementSpeckleMapping(
                element_id=element.id,
                project_id=data.current_project_id,
                speckle_element_id=speckle_element_id,
                speckle_object_url=data.speckle_object_url,
                mapped_date=now,
                mapped_by_user_id=current_user.id,
                is_active=True,
            ))
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.warning(
                "element.register_conflict asset_number=%s attempt=%s", asset_number, attempt,
            )
            if attempt == REGISTRATION_ATTEMPTS:
                raise conflict(
                    "ELEMENT_REGISTRATION_CONFLICT",
                    "Could not allocate a unique asset number; try again",
                ) from exc
            continue
        db.refresh(element)
        logger.info(
            "element.register element=%s asset_number=%s project=%s user=%s",
            element.id,
            element.asset_number,
            element.current_project_id,
            current_user.id,
        )
        return element

    raise AssertionError("unreachable")


def update_element_use_case(
    *,
    element_id: str,
    data: ElementUpdate,
    db: Session,
) -> Element:
    """Apply a partial update. Identity, QR and status are never changed here."""
    element = get_element(db, element_id)
    if element is None:
        raise not_found("ELEMENT_NOT_FOUND", "Element not found")

    updates = data.model_dump(exclude_unset=True)
    if "ifc_type" in updates and not updates["ifc_type"]:
        raise bad_request("ELEMENT_FIELDS_REQUIRED", "ifcType cannot be empty")
    for field, value in updates.items():
        setattr(element, field, value)

    db.commit()
    db.refresh(element)
    return element
