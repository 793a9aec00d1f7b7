"""Inspection endpoints (auto-save target of the inspection panel)."""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_optional_user
from ..database import get_db
from ..models import Inspection, User
from ..schemas import InspectionListResponse, InspectionOut, InspectionResponse, InspectionSave
from ..security import enforce_csrf_origin
from ..use_cases.inspection_use_cases import save_inspection_use_case

router = APIRouter(prefix="/inspections", tags=["inspections"], dependencies=[Depends(enforce_csrf_origin)])


@router.get("", response_model=InspectionListResponse)
def list_inspections(
    project_id: Optional[str] = Query(default=None, alias="projectId"),
    db: Session = Depends(get_db),
):
    query = db.query(Inspection)
    if project_id:
        query = query.filter(Inspection.project_id == project_id)
    inspections = query.order_by(Inspection.timestamp.desc()).all()
    return InspectionListResponse(data=[InspectionOut.model_validate(i) for i in inspections])


@router.post("", response_model=InspectionResponse)
def save_inspection(
    data: InspectionSave,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Create or update the inspection for (elementId, projectId)."""
    inspection = save_inspection_use_case(
        data=data,
        user_id=current_user.id if current_user else None,
        db=db,
    )
    return InspectionResponse(data=InspectionOut.model_validate(inspection))


@router.get("/element/{element_id}", response_model=InspectionResponse)
def get_element_inspection(
    element_id: str,
    project_id: Optional[str] = Query(default=None, alias="projectId"),
    db: Session = Depends(get_db),
):
    """Inspection for one BIM element; `data` is null when none exists."""
    query = db.query(Inspection).filter(Inspection.element_id == element_id)
    if project_id:
        query = query.filter(Inspection.project_id == project_id)
    inspection = query.order_by(Inspection.timestamp.desc()).first()
    return InspectionResponse(data=InspectionOut.model_validate(inspection) if inspection else None)
