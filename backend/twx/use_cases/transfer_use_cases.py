"""Element transfer workflow: initiate, approve, receive and cancel."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from ..domain_errors import DomainError, bad_request, conflict, not_found
from ..models import Element, ElementProjectHistory, User
from ..schemas import (
    ApproveRequest,
    ApproveResult,
    CancelTransferRequest,
    CancelTransferResult,
    ElementOut,
    HistoryOut,
    ReceiveRequest,
    ReceiveResult,
    TransferRequest,
    TransferResult,
)
from ..services.transfer_rules import (
    approvals_snapshot,
    ensure_transferable,
    ensure_valid_condition,
    is_fully_approved,
    normalize_approval_type,
    now_utc,
    validate_status_transition,
)
from ..storage import get_active_history, get_element, get_pending_history, get_project

logger = logging.getLogger(__name__)

TRANSFER_INITIATED_MESSAGE = "Transfer initiated. Awaiting project manager approvals."
RECEIVED_MESSAGE = "Element received and activated"


@dataclass(frozen=True)
class TransferUseCaseHooks:
    """Injectable collaborators for the transfer workflow."""

    now_utc: Callable[[], datetime] = now_utc


DEFAULT_HOOKS = TransferUseCaseHooks()


def _require_element(db: Session, element_id: str) -> Element:
    element = get_element(db, element_id)
    if element is None:
        raise not_found("ELEMENT_NOT_FOUND", "Element not found")
    return element


def _condition_or_error(condition: str | None) -> str:
    try:
        return ensure_valid_condition(condition)
    except ValueError as error:
        raise bad_request("INVALID_CONDITION", str(error)) from error


def _compare_and_set_status(db: Session, *, element_id: str, expected: str, target: str, at: datetime, **values) -> None:
    """Move element status expected -> target only if nobody changed it meanwhile."""
    validate_status_transition(current_status=expected, next_status=target)
    updated = db.query(Element).filter(
        Element.id == element_id,
        Element.status == expected,
    ).update({"status": target, "updated_at": at, **values}, synchronize_session=False)
    if updated != 1:
        db.rollback()
        raise conflict(
            "ELEMENT_STATUS_CONFLICT",
            f"Element status changed concurrently; expected '{expected}'",
        )


def initiate_transfer_use_case(
    *,
    element_id: str,
    data: TransferRequest,
    current_user: User,
    db: Session,
    hooks: TransferUseCaseHooks = DEFAULT_HOOKS,
) -> TransferResult:
    if not data.destination_project_id or not data.transfer_condition:
        raise bad_request(
            "TRANSFER_FIELDS_REQUIRED",
            "Missing required fields: destinationProjectId, transferCondition",
        )
    transfer_condition = _condition_or_error(data.transfer_condition)

    element = _require_element(db, element_id)
    try:
        ensure_transferable(status=element.status)
    except ValueError as error:
        raise DomainError(
            code="ELEMENT_NOT_TRANSFERABLE",
            http_status=400,
            message=str(error),
            details={"status": element.status},
        ) from error

    if get_project(db, data.destination_project_id) is None:
        raise not_found("PROJECT_NOT_FOUND", "Destination project not found")
    if data.destination_project_id == element.current_project_id:
        raise bad_request(
            "TRANSFER_SAME_PROJECT",
            "Destination project must differ from the current project",
        )

    source_project_id = element.current_project_id
    now = hooks.now_utc()

    _compare_and_set_status(db, element_id=element.id, expected="active", target="in_transit", at=now)

    active = get_active_history(db, element.id)
    if active is not None:
        active.status = "transferred_out"
        active.deactivated_date = now
        active.transfer_date = now
        active.transferred_by_user_id = current_user.id
        active.transferred_condition = transfer_condition
        active.transfer_inspection_id = data.transfer_inspection_id
        active.updated_at = now

    pending = ElementProjectHistory(
        element_id=element.id,
        project_id=data.destination_project_id,
        transferred_from_project_id=source_project_id,
        status="pending_approval",
        transferred_condition=transfer_condition,
        condition_notes=data.condition_notes,
        transfer_inspection_id=data.transfer_inspection_id,
        transfer_requested_by_user_id=current_user.id,
        transfer_request_date=now,
        source_project_manager_approval=False,
        destination_project_manager_approval=False,
    )
    db.add(pending)
    db.commit()
    db.refresh(element)
    db.refresh(pending)

    logger.info(
        "element.transfer element=%s from=%s to=%s user=%s",
        element.id,
        source_project_id,
        data.destination_project_id,
        current_user.id,
    )
    return TransferResult(
        message=TRANSFER_INITIATED_MESSAGE,
        history_record=HistoryOut.model_validate(pending),
    )


def approve_transfer_use_case(
    *,
    element_id: str,
    data: ApproveRequest,
    current_user: User,
    db: Session,
    hooks: TransferUseCaseHooks = DEFAULT_HOOKS,
) -> ApproveResult:
    if not data.project_id or not data.approval_type:
        raise bad_request(
            "APPROVAL_FIELDS_REQUIRED",
            "Missing required fields: projectId, approvalType",
        )
    try:
        approval_type = normalize_approval_type(data.approval_type)
    except ValueError as error:
        raise bad_request("INVALID_APPROVAL_TYPE", str(error)) from error

    _require_element(db, element_id)
    # Row lock so concurrent approvals of both sides each persist.
    pending = get_pending_history(db, element_id, data.project_id, for_update=True)
    if pending is None:
        raise not_found("PENDING_TRANSFER_NOT_FOUND", "No pending transfer approval found")

    now = hooks.now_utc()
    if approval_type == "source":
        if not pending.source_project_manager_approval:
            pending.source_project_manager_approval = True
            pending.source_project_manager_approved_by_user_id = current_user.id
            pending.source_project_manager_approval_date = now
    else:
        if not pending.destination_project_manager_approval:
            pending.destination_project_manager_approval = True
            pending.destination_project_manager_approved_by_user_id = current_user.id
            pending.destination_project_manager_approval_date = now
    pending.updated_at = now

    db.commit()
    db.refresh(pending)

    both_approved = is_fully_approved(pending)
    logger.info(
        "element.transfer_approval element=%s project=%s side=%s user=%s both=%s",
        element_id,
        data.project_id,
        approval_type,
        current_user.id,
        both_approved,
    )
    return ApproveResult(
        message=f"{approval_type} project manager approval recorded",
        history_record=HistoryOut.model_validate(pending),
        both_approved=both_approved,
    )


def complete_receive(
    db: Session,
    *,
    element: Element,
    pending: ElementProjectHistory,
    project_id: str,
    received_condition: str | None,
    at: datetime,
    condition_notes: str | None = None,
    receipt_inspection_id: str | None = None,
    actual_location: str | None = None,
) -> None:
    """Activate the element in the destination project. Caller commits."""
    if not is_fully_approved(pending):
        raise DomainError(
            code="TRANSFER_APPROVALS_REQUIRED",
            http_status=400,
            message="Both project manager approvals are required before receiving",
            details={"approvals": approvals_snapshot(pending)},
        )

    values = {"current_project_id": project_id}
    if received_condition:
        values["current_condition"] = received_condition
    _compare_and_set_status(db, element_id=element.id, expected="in_transit", target="active", at=at, **values)

    pending.status = "active"
    pending.activated_date = at
    pending.received_condition = received_condition
    if condition_notes is not None:
        pending.condition_notes = condition_notes
    pending.receipt_inspection_id = receipt_inspection_id
    pending.actual_location = actual_location
    pending.updated_at = at


def receive_transfer_use_case(
    *,
    element_id: str,
    data: ReceiveRequest,
    current_user: User,
    db: Session,
    hooks: TransferUseCaseHooks = DEFAULT_HOOKS,
) -> ReceiveResult:
    if not data.project_id or not data.received_condition:
        raise bad_request(
            "RECEIVE_FIELDS_REQUIRED",
            "Missing required fields: projectId, receivedCondition",
        )
    received_condition = _condition_or_error(data.received_condition)

    element = _require_element(db, element_id)
    if element.status != "in_transit":
        raise DomainError(
            code="ELEMENT_NOT_IN_TRANSIT",
            http_status=400,
            message=f"Element is not in transit. Current status: {element.status}",
            details={"status": element.status},
        )

    pending = get_pending_history(db, element_id, data.project_id, for_update=True)
    if pending is None:
        raise bad_request("PENDING_TRANSFER_NOT_FOUND", "No pending transfer found for this project")

    complete_receive(
        db,
        element=element,
        pending=pending,
        project_id=data.project_id,
        received_condition=received_condition,
        at=hooks.now_utc(),
        condition_notes=data.condition_notes,
        receipt_inspection_id=data.receipt_inspection_id,
        actual_location=data.actual_location,
    )
    db.commit()
    db.refresh(element)

    logger.info("element.receive element=%s project=%s user=%s", element.id, data.project_id, current_user.id)
    return ReceiveResult(message=RECEIVED_MESSAGE, element=ElementOut.model_validate(element))


def cancel_transfer_use_case(
    *,
    element_id: str,
    data: CancelTransferRequest,
    current_user: User,
    db: Session,
    hooks: TransferUseCaseHooks = DEFAULT_HOOKS,
) -> CancelTransferResult:
    element = _require_element(db, element_id)
    if element.status != "in_transit":
        raise bad_request(
            "ELEMENT_NOT_IN_TRANSIT",
            f"Only elements in transit can have their transfer cancelled. Current status: {element.status}",
        )

    pending = db.query(ElementProjectHistory).filter(
        ElementProjectHistory.element_id == element_id,
        ElementProjectHistory.status == "pending_approval",
    ).with_for_update().first()
    if pending is None:
        raise not_found("PENDING_TRANSFER_NOT_FOUND", "No pending transfer found")

    now = hooks.now_utc()
    source_project_id = pending.transferred_from_project_id
    _compare_and_set_status(db, element_id=element.id, expected="in_transit", target="active", at=now)

    pending.status = "cancelled"
    pending.deactivated_date = now
    if data.condition_notes is not None:
        pending.condition_notes = data.condition_notes
    pending.updated_at = now

    previous = None
    if source_project_id:
        previous = db.query(ElementProjectHistory).filter(
            ElementProjectHistory.element_id == element_id,
            ElementProjectHistory.project_id == source_project_id,
            ElementProjectHistory.status == "transferred_out",
        ).order_by(ElementProjectHistory.deactivated_date.desc(), ElementProjectHistory.id.desc()).first()
    if previous is not None:
        previous.status = "active"
        previous.deactivated_date = None
        previous.transfer_date = None
        previous.transferred_by_user_id = None
        previous.updated_at = now

    db.commit()
    db.refresh(element)
    db.refresh(pending)

    logger.info("element.transfer_cancel element=%s project=%s user=%s", element.id, pending.project_id, current_user.id)
    return CancelTransferResult(
        message="Transfer cancelled",
        element=ElementOut.model_validate(element),
        history_record=HistoryOut.model_validate(pending),
    )
