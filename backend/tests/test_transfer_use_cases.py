from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import update

from twx.domain_errors import DomainError
from twx.models import Element, ElementProjectHistory
from twx.schemas import (
    ApproveRequest,
    CancelTransferRequest,
    ElementCreate,
    ReceiveRequest,
    TransferRequest,
)
from twx.use_cases.element_registry import register_element_use_case
from twx.use_cases import transfer_use_cases
from twx.use_cases.transfer_use_cases import (
    TransferUseCaseHooks,
    approve_transfer_use_case,
    cancel_transfer_use_case,
    initiate_transfer_use_case,
    receive_transfer_use_case,
)

FIXED_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
HOOKS = TransferUseCaseHooks(now_utc=lambda: FIXED_NOW)


@pytest.fixture()
def projects(make_project):
    return make_project("proj_a", "Riverside"), make_project("proj_b", "Harbour")


@pytest.fixture()
def element(db, user, projects):
    return register_element_use_case(
        data=ElementCreate(ifc_type="IfcColumn", current_project_id="proj_a", current_condition="Good"),
        current_user=user,
        db=db,
    )


def _history(db, element_id: str) -> list[ElementProjectHistory]:
    db.expire_all()
    return db.query(ElementProjectHistory).filter(
        ElementProjectHistory.element_id == element_id,
    ).order_by(ElementProjectHistory.id).all()


def _transfer(db, user, element, **overrides):
    data = TransferRequest(**{"destination_project_id": "proj_b", "transfer_condition": "Good", **overrides})
    return initiate_transfer_use_case(element_id=element.id, data=data, current_user=user, db=db, hooks=HOOKS)


def _approve(db, user, element, side: str):
    return approve_transfer_use_case(
        element_id=element.id,
        data=ApproveRequest(project_id="proj_b", approval_type=side),
        current_user=user,
        db=db,
        hooks=HOOKS,
    )


def test_initiate_moves_element_in_transit_with_pending_row(db, user, element) -> None:
    result = _transfer(db, user, element, condition_notes="Minor rust on base plate")

    assert result.message == "Transfer initiated. Awaiting project manager approvals."
    assert result.history_record.status == "pending_approval"
    assert result.history_record.transferred_from_project_id == "proj_a"
    assert result.history_record.source_project_manager_approval is False

    db.expire_all()
    assert db.get(Element, element.id).status == "in_transit"
    source, pending = _history(db, element.id)
    assert (source.project_id, source.status) == ("proj_a", "transferred_out")
    assert source.transferred_condition == "Good"
    assert source.deactivated_date is not None
    assert (pending.project_id, pending.status) == ("proj_b", "pending_approval")
    assert pending.condition_notes == "Minor rust on base plate"


@pytest.mark.parametrize("status", ["in_transit", "in_storage", "retired", "scrapped"])
def test_non_active_element_cannot_be_transferred(db, user, element, status) -> None:
    db.execute(update(Element).where(Element.id == element.id).values(status=status))
    db.commit()
    db.expire_all()

    with pytest.raises(DomainError) as exc_info:
        _transfer(db, user, element)

    assert exc_info.value.code == "ELEMENT_NOT_TRANSFERABLE"
    assert exc_info.value.http_status == 400
    assert exc_info.value.details == {"status": status}
    assert [h.status for h in _history(db, element.id)] == ["active"]


def test_transfer_requires_fields_and_valid_condition(db, user, element) -> None:
    with pytest.raises(DomainError) as missing:
        initiate_transfer_use_case(element_id=element.id, data=TransferRequest(), current_user=user, db=db)
    assert missing.value.code == "TRANSFER_FIELDS_REQUIRED"

    with pytest.raises(DomainError) as invalid:
        _transfer(db, user, element, transfer_condition="Broken")
    assert invalid.value.code == "INVALID_CONDITION"


def test_transfer_to_unknown_or_same_project_is_rejected(db, user, element) -> None:
    with pytest.raises(DomainError) as unknown:
        initiate_transfer_use_case(
            element_id=element.id,
            data=TransferRequest(destination_project_id="proj_x", transfer_condition="Good"),
            current_user=user,
            db=db,
        )
    assert unknown.value.code == "PROJECT_NOT_FOUND"

    with pytest.raises(DomainError) as same:
        initiate_transfer_use_case(
            element_id=element.id,
            data=TransferRequest(destination_project_id="proj_a", transfer_condition="Good"),
            current_user=user,
            db=db,
        )
    assert same.value.code == "TRANSFER_SAME_PROJECT"


def test_concurrent_status_change_loses_compare_and_set(db, user, element) -> None:
    def _racing_clock():
        # Another request retires the element between our read and our write.
        db.execute(update(Element).where(Element.id == element.id).values(status="in_storage"))
        return FIXED_NOW

    with pytest.raises(DomainError) as exc_info:
        initiate_transfer_use_case(
            element_id=element.id,
            data=TransferRequest(destination_project_id="proj_b", transfer_condition="Good"),
            current_user=user,
            db=db,
            hooks=TransferUseCaseHooks(now_utc=_racing_clock),
        )

    assert exc_info.value.code == "ELEMENT_STATUS_CONFLICT"
    assert exc_info.value.http_status == 409
    assert [h.status for h in _history(db, element.id)] == ["active"]


def test_approvals_are_recorded_per_side_and_idempotent(db, user, element) -> None:
    _transfer(db, user, element)

    first = _approve(db, user, element, "source")
    assert first.message == "source project manager approval recorded"
    assert first.both_approved is False
    assert first.history_record.source_project_manager_approved_by_user_id == user.id

    again = _approve(db, user, element, "source")
    assert again.both_approved is False
    assert again.history_record.source_project_manager_approval_date == first.history_record.source_project_manager_approval_date

    second = _approve(db, user, element, "Destination")
    assert second.both_approved is True


def test_approval_without_pending_transfer_is_not_found(db, user, element) -> None:
    with pytest.raises(DomainError) as exc_info:
        _approve(db, user, element, "source")
    assert exc_info.value.code == "PENDING_TRANSFER_NOT_FOUND"
    assert exc_info.value.http_status == 404


def test_receive_requires_both_approvals(db, user, element) -> None:
    _transfer(db, user, element)
    _approve(db, user, element, "source")

    with pytest.raises(DomainError) as exc_info:
        receive_transfer_use_case(
            element_id=element.id,
            data=ReceiveRequest(project_id="proj_b", received_condition="Fair"),
            current_user=user,
            db=db,
        )

    assert exc_info.value.code == "TRANSFER_APPROVALS_REQUIRED"
    assert exc_info.value.details == {"approvals": {"source": True, "destination": False}}
    db.expire_all()
    assert db.get(Element, element.id).status == "in_transit"


def test_receive_activates_element_in_destination(db, user, element) -> None:
    _transfer(db, user, element)
    _approve(db, user, element, "source")
    _approve(db, user, element, "destination")

    result = receive_transfer_use_case(
        element_id=element.id,
        data=ReceiveRequest(project_id="proj_b", received_condition="Fair", actual_location="Bay 4"),
        current_user=user,
        db=db,
        hooks=HOOKS,
    )

    assert result.message == "Element received and activated"
    assert result.element.status == "active"
    assert result.element.current_project_id == "proj_b"
    assert result.element.current_condition == "Fair"

    history = _history(db, element.id)
    assert [(h.project_id, h.status) for h in history] == [("proj_a", "transferred_out"), ("proj_b", "active")]
    assert history[1].actual_location == "Bay 4"
    assert sum(1 for h in history if h.status == "active") == 1


def test_receive_requires_element_in_transit(db, user, element) -> None:
    with pytest.raises(DomainError) as exc_info:
        receive_transfer_use_case(
            element_id=element.id,
            data=ReceiveRequest(project_id="proj_b", received_condition="Good"),
            current_user=user,
            db=db,
        )
    assert exc_info.value.code == "ELEMENT_NOT_IN_TRANSIT"


def test_cancel_restores_source_project(db, user, element) -> None:
    _transfer(db, user, element)

    result = cancel_transfer_use_case(
        element_id=element.id,
        data=CancelTransferRequest(condition_notes="Wrong destination"),
        current_user=user,
        db=db,
        hooks=HOOKS,
    )

    assert result.message == "Transfer cancelled"
    assert result.element.status == "active"
    assert result.element.current_project_id == "proj_a"
    assert result.history_record.status == "cancelled"

    history = _history(db, element.id)
    assert [(h.project_id, h.status) for h in history] == [("proj_a", "active"), ("proj_b", "cancelled")]
    assert history[0].deactivated_date is None


def test_cancel_requires_transfer_in_progress(db, user, element) -> None:
    with pytest.raises(DomainError) as exc_info:
        cancel_transfer_use_case(element_id=element.id, data=CancelTransferRequest(), current_user=user, db=db)
    assert exc_info.value.code == "ELEMENT_NOT_IN_TRANSIT"


class _SessionStub:
    def __init__(self) -> None:
        self.commit_calls = 0
        self.refresh_calls = 0

    def commit(self) -> None:
        self.commit_calls += 1

    def refresh(self, _obj: object) -> None:
        self.refresh_calls += 1


def _pending_row(**overrides):
    row = SimpleNamespace(
        id=7,
        element_id="el-1",
        project_id="proj_b",
        status="pending_approval",
        source_project_manager_approval=False,
        source_project_manager_approved_by_user_id=None,
        source_project_manager_approval_date=None,
        destination_project_manager_approval=False,
        destination_project_manager_approved_by_user_id=None,
        destination_project_manager_approval_date=None,
        updated_at=None,
    )
    for key, value in overrides.items():
        setattr(row, key, value)
    return row


def test_second_approval_of_same_side_keeps_first_approver(monkeypatch) -> None:
    first_at = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
    pending = _pending_row(
        source_project_manager_approval=True,
        source_project_manager_approved_by_user_id="pm-source",
        source_project_manager_approval_date=first_at,
    )
    monkeypatch.setattr(transfer_use_cases, "get_element", lambda _db, element_id: SimpleNamespace(id=element_id))
    monkeypatch.setattr(transfer_use_cases, "get_pending_history", lambda _db, *_args, **_kwargs: pending)
    db = _SessionStub()

    result = approve_transfer_use_case(
        element_id="el-1",
        data=ApproveRequest(project_id="proj_b", approval_type="source"),
        current_user=SimpleNamespace(id="someone-else"),
        db=db,
        hooks=HOOKS,
    )

    assert pending.source_project_manager_approved_by_user_id == "pm-source"
    assert pending.source_project_manager_approval_date == first_at
    assert result.both_approved is False
    assert db.commit_calls == 1


def test_destination_approval_completes_the_pair(monkeypatch) -> None:
    pending = _pending_row(source_project_manager_approval=True)
    monkeypatch.setattr(transfer_use_cases, "get_element", lambda _db, element_id: SimpleNamespace(id=element_id))
    monkeypatch.setattr(transfer_use_cases, "get_pending_history", lambda _db, *_args, **_kwargs: pending)

    result = approve_transfer_use_case(
        element_id="el-1",
        data=ApproveRequest(project_id="proj_b", approval_type="destination"),
        current_user=SimpleNamespace(id="pm-dest"),
        db=_SessionStub(),
        hooks=HOOKS,
    )

    assert result.both_approved is True
    assert result.message == "destination project manager approval recorded"
    assert pending.destination_project_manager_approved_by_user_id == "pm-dest"
    assert pending.destination_project_manager_approval_date == FIXED_NOW
