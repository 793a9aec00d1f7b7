"""Element status and transfer invariant helpers."""

from __future__ import annotations

from datetime import datetime, timezone

from ..models import CONDITION_TYPES

TRANSFERABLE_STATUS = "active"
LINKABLE_STATUSES: set[str] = {"active", "in_transit"}
APPROVAL_TYPES: set[str] = {"source", "destination"}
_ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "active": {"in_transit", "in_storage", "retired", "scrapped"},
    "in_transit": {"active"},
    "pending_approval": {"active", "in_transit"},
    "in_storage": {"active", "retired", "scrapped"},
    "retired": {"scrapped"},
    "scrapped": set(),
}


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def normalize_element_status(status: str | None) -> str:
    if not status:
        return "active"
    return status.strip().lower()


def validate_status_transition(*, current_status: str | None, next_status: str | None) -> str:
    if next_status is None:
        return normalize_element_status(current_status)

    current = normalize_element_status(current_status)
    nxt = normalize_element_status(next_status)

    if nxt == current:
        return nxt

    allowed = _ALLOWED_TRANSITIONS.get(current, set())
    if nxt not in allowed:
        raise ValueError(f"Invalid element status transition: {current} -> {nxt}")
    return nxt


def ensure_transferable(*, status: str | None) -> None:
    if normalize_element_status(status) != TRANSFERABLE_STATUS:
        raise ValueError(f"Element cannot be transferred. Current status: {status}")


def ensure_linkable(*, status: str | None) -> None:
    if normalize_element_status(status) not in LINKABLE_STATUSES:
        raise ValueError(f"Element cannot be linked. Current status: {status}")


def ensure_valid_condition(condition: str | None) -> str:
    if condition not in CONDITION_TYPES:
        raise ValueError(f"Invalid condition: {condition}. Expected one of {', '.join(CONDITION_TYPES)}")
    return condition


def normalize_approval_type(approval_type: str | None) -> str:
    value = (approval_type or "").strip().lower()
    if value not in APPROVAL_TYPES:
        raise ValueError("Invalid approval type. Must be 'source' or 'destination'")
    return value


def approvals_snapshot(history) -> dict[str, bool]:
    return {
        "source": bool(history.source_project_manager_approval),
        "destination": bool(history.destination_project_manager_approval),
    }


def is_fully_approved(history) -> bool:
    return all(approvals_snapshot(history).values())
