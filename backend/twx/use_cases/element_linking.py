"""Linking physical elements to BIM elements, and QR lookups that drive it."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain_errors import DomainError, bad_request, conflict, not_found
from ..models import Element, ElementProjectHistory, ElementSpeckleMapping, User
from ..schemas import ElementLookupOut, ElementOut, LinkCheckOut, LinkedAssetOut, LinkRequest
from ..services.asset_numbering import asset_number_from_qr
from ..services.transfer_rules import (
    approvals_snapshot,
    ensure_linkable,
    is_fully_approved,
    now_utc,
)
from ..storage import (
    get_active_history,
    get_active_mapping,
    get_element,
    get_element_by_code,
    get_pending_history,
    get_project,
)
from .transfer_use_cases import complete_receive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkingUseCaseHooks:
    now_utc: Callable[[], datetime] = now_utc


DEFAULT_HOOKS = LinkingUseCaseHooks()


def _project_label(db: Session, project_id: str | None) -> str:
    project = get_project(db, project_id) if project_id else None
    return project.name if project else (project_id or "unknown")


def _transfer_required_message(db: Session, element: Element) -> str:
    return (
        f"This asset is currently active in project '{_project_label(db, element.current_project_id)}'. "
        "Initiate a transfer from that project before linking it here."
    )


def link_element_use_case(
    *,
    element_id: str,
    data: LinkRequest,
    current_user: User,
    db: Session,
    hooks: LinkingUseCaseHooks = DEFAULT_HOOKS,
) -> ElementSpeckleMapping:
    if not data.project_id or not data.speckle_element_id:
        raise bad_request(
            "LINK_FIELDS_REQUIRED",
            "Missing required fields: projectId, speckleElementId",
        )

    element = get_element(db, element_id)
    if element is None:
        raise not_found("ELEMENT_NOT_FOUND", "Element not found")
    if get_project(db, data.project_id) is None:
        raise not_found("PROJECT_NOT_FOUND", "Project not found")

    try:
        ensure_linkable(status=element.status)
    except ValueError as error:
        raise DomainError(
            code="ELEMENT_NOT_LINKABLE",
            http_status=400,
            message=str(error),
            details={"status": element.status},
        ) from error

    if element.status == "active" and element.current_project_id and element.current_project_id != data.project_id:
        raise conflict(
            "TRANSFER_REQUIRED",
            _transfer_required_message(db, element),
            details={"currentProjectId": element.current_project_id},
        )

    pending: ElementProjectHistory | None = None
    if element.status == "in_transit":
        pending = get_pending_history(db, element.id, data.project_id, for_update=True)
        if pending is None:
            raise conflict(
                "TRANSFER_REQUIRED",
                "This asset is in transit to another project and cannot be linked here",
            )
        if not is_fully_approved(pending):
            raise conflict(
                "TRANSFER_APPROVALS_REQUIRED",
                "Both project manager approvals are required before linking in the destination project",
                details={"approvals": approvals_snapshot(pending)},
            )

    existing = get_active_mapping(db, data.project_id, data.speckle_element_id)
    if existing is not None and existing.element_id != element.id:
        raise conflict(
            "BIM_ELEMENT_ALREADY_LINKED",
            "This BIM element is already linked to another asset",
            details={"elementId": existing.element_id},
        )

    now = hooks.now_utc()
    db.query(ElementSpeckleMapping).filter(
        ElementSpeckleMapping.element_id == element.id,
        ElementSpeckleMapping.is_active.is_(True),
    ).update({"is_active": False}, synchronize_session=False)

    mapping = ElementSpeckleMapping(
        element_id=element.id,
        project_id=data.project_id,
        speckle_element_id=data.speckle_element_id,
        speckle_object_url=data.speckle_object_url,
        mapped_date=now,
        mapped_by_user_id=current_user.id,
        is_active=True,
        notes=data.notes,
    )
    db.add(mapping)

    if pending is not None:
        complete_receive(
            db,
            element=element,
            pending=pending,
            project_id=data.project_id,
            received_condition=pending.transferred_condition or element.current_condition,
            at=now,
        )
    elif not element.current_project_id:
        element.current_project_id = data.project_id
        if get_active_history(db, element.id) is None:
            db.add(ElementProjectHistory(
                element_id=element.id,
                project_id=data.project_id,
                status="active",
                activated_date=now,
                received_condition=element.current_condition,
                transferred_by_user_id=current_user.id,
            ))

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise conflict(
            "BIM_ELEMENT_ALREADY_LINKED",
            "This BIM element was linked to another asset concurrently",
        ) from exc
    db.refresh(mapping)

    logger.info(
        "element.link element=%s project=%s speckle_element=%s user=%s",
        element.id,
        data.project_id,
        data.speckle_element_id,
        current_user.id,
    )
    return mapping


def find_element_by_scan(db: Session, code: str) -> Element | None:
    """Resolve a scanned QR payload (or typed asset number) to an element."""
    code = (code or "").strip()
    if not code:
        return None
    element = get_element_by_code(db, code)
    if element is None:
        asset_number = asset_number_from_qr(code)
        if asset_number:
            element = get_element_by_code(db, asset_number)
    return element


def lookup_element_use_case(*, code: str, project_id: str | None, db: Session) -> ElementLookupOut:
    """Tell the linking UI whether a scanned asset can be linked into this project."""
    element = find_element_by_scan(db, code)
    if element is None:
        raise not_found("ELEMENT_NOT_FOUND", "No asset found for this code")

    linkable, action, message = True, "link", None
    if element.status not in ("active", "in_transit"):
        linkable, action = False, "unavailable"
        message = f"Asset cannot be linked. Current status: {element.status}"
    elif (
        element.status == "active"
        and project_id
        and element.current_project_id
        and element.current_project_id != project_id
    ):
        linkable, action = False, "transfer_required"
        message = _transfer_required_message(db, element)
    elif element.status == "in_transit":
        pending = get_pending_history(db, element.id, project_id) if project_id else None
        if pending is None:
            linkable, action = False, "in_transit_elsewhere"
            message = "This asset is in transit to another project"
        elif not is_fully_approved(pending):
            linkable, action = False, "awaiting_approval"
            message = "Transfer to this project is awaiting project manager approvals"
        else:
            action = "receive_and_link"
            message = "Linking will complete the transfer into this project"

    return ElementLookupOut(
        element=ElementOut.model_validate(element),
        linkable=linkable,
        action=action,
        message=message,
    )


def check_linking_use_case(*, speckle_element_id: str, project_id: str | None, db: Session) -> LinkCheckOut:
    """Report which asset, if any, a BIM element is linked to."""
    query = db.query(ElementSpeckleMapping, Element).outerjoin(
        Element, ElementSpeckleMapping.element_id == Element.id,
    ).filter(ElementSpeckleMapping.speckle_element_id == speckle_element_id)
    if project_id:
        query = query.filter(ElementSpeckleMapping.project_id == project_id)
    row = query.order_by(
        ElementSpeckleMapping.is_active.desc(),
        ElementSpeckleMapping.mapped_date.desc(),
    ).first()
    if row is None:
        return LinkCheckOut(linked=False, asset=None)

    mapping, element = row
    return LinkCheckOut(
        linked=True,
        asset=LinkedAssetOut(
            id=element.id if element else None,
            asset_number=element.asset_number if element else None,
            status=element.status if element else None,
            condition=element.current_condition if element else None,
            project_id=mapping.project_id,
            is_active=bool(mapping.is_active),
        ),
    )
