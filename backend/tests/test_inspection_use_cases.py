from __future__ import annotations

from datetime import datetime, timezone

import pytest

from twx.domain_errors import DomainError
from twx.models import Inspection
from twx.schemas import InspectionSave
from twx.use_cases.inspection_use_cases import (
    ANONYMOUS_USER_ID,
    InspectionUseCaseHooks,
    save_inspection_use_case,
)

HOOKS = InspectionUseCaseHooks(
    now_utc=lambda: datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc),
    generate_id=lambda prefix: f"{prefix}_fixed",
)


def _save(db, user_id="user-pm", **fields) -> Inspection:
    fields.setdefault("element_id", "bim-col-1")
    fields.setdefault("project_id", "proj_a")
    return save_inspection_use_case(data=InspectionSave(**fields), user_id=user_id, db=db, hooks=HOOKS)


def test_first_save_creates_with_defaults(db) -> None:
    inspection = _save(db, status="OK")

    assert inspection.id == "insp_fixed"
    assert inspection.status == "OK"
    assert inspection.inspector == ""
    assert inspection.notes == ""
    assert inspection.date == "2026-03-02"
    assert inspection.last_modified_by == "user"
    assert inspection.version == 1
    assert inspection.created_by_user_id == "user-pm"
    assert inspection.last_modified_by_user_id == "user-pm"


def test_second_save_updates_same_row_and_bumps_version(db) -> None:
    _save(db, status="OK", inspector="Sam")
    updated = _save(db, user_id="user-2", notes="Bracing loose")

    assert db.query(Inspection).count() == 1
    assert updated.inspector == "Sam"
    assert updated.status == "OK"
    assert updated.notes == "Bracing loose"
    assert updated.version == 2
    assert updated.created_by_user_id == "user-pm"
    assert updated.last_modified_by_user_id == "user-2"


def test_same_element_in_another_project_is_a_separate_inspection(db) -> None:
    _save(db, status="OK")
    other = save_inspection_use_case(
        data=InspectionSave(element_id="bim-col-1", project_id="proj_b", status="ISSUE"),
        user_id=None,
        db=db,
    )

    assert db.query(Inspection).count() == 2
    assert other.status == "ISSUE"
    assert other.created_by_user_id == ANONYMOUS_USER_ID


def test_stale_version_is_rejected(db) -> None:
    _save(db, status="OK")
    _save(db, status="ISSUE")

    with pytest.raises(DomainError) as exc_info:
        _save(db, status="OK", version=1)

    assert exc_info.value.code == "INSPECTION_VERSION_CONFLICT"
    assert exc_info.value.http_status == 409
    assert exc_info.value.details == {"currentVersion": 2}
    db.expire_all()
    assert db.query(Inspection).one().status == "ISSUE"


def test_matching_version_is_accepted(db) -> None:
    _save(db, status="OK")
    updated = _save(db, status="ISSUE", version=1)
    assert updated.version == 2


def test_explicit_null_does_not_clear_required_columns(db) -> None:
    _save(db, status="OK", inspector="Sam")
    updated = _save(db, inspector=None, status=None, notes=None)

    assert updated.inspector == "Sam"
    assert updated.status == "OK"
    assert updated.notes is None


@pytest.mark.parametrize(
    ("fields", "code"),
    [
        ({"element_id": "", "project_id": "proj_a"}, "INSPECTION_ELEMENT_REQUIRED"),
        ({"element_id": "bim-col-1", "project_id": "  "}, "INSPECTION_PROJECT_REQUIRED"),
    ],
)
def test_element_and_project_are_required(db, fields, code) -> None:
    with pytest.raises(DomainError) as exc_info:
        save_inspection_use_case(data=InspectionSave(**fields), user_id=None, db=db)
    assert exc_info.value.code == code
    assert exc_info.value.http_status == 400


def test_saving_identical_form_twice_keeps_last_payload(db) -> None:
    form = {"status": "OK", "inspector": "Sam", "notes": "Pins secure", "actual_location": "Grid C4"}
    _save(db, **form)
    second = _save(db, **form)

    assert db.query(Inspection).count() == 1
    for field, value in form.items():
        assert getattr(second, field) == value
