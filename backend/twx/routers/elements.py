"""Physical element (asset) endpoints: registry, BIM linking and transfers."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import Element, ElementProjectHistory, ElementSpeckleMapping, Inspection, Project, User
from ..schemas import (
    ApproveRequest,
    ApproveResult,
    CancelTransferRequest,
    CancelTransferResult,
    ElementCreate,
    ElementDetailsOut,
    ElementLookupOut,
    ElementOut,
    ElementUpdate,
    HistoryEntryOut,
    HistoryOut,
    InspectionOut,
    LinkCheckOut,
    LinkRequest,
    MappingDetailOut,
    MappingOut,
    ProjectOut,
    ReceiveRequest,
    ReceiveResult,
    TransferRequest,
    TransferResult,
)
from ..security import enforce_csrf_origin, require_entity
from ..use_cases.element_linking import (
    check_linking_use_case,
    find_element_by_scan,
    link_element_use_case,
    lookup_element_use_case,
)
from ..use_cases.element_registry import register_element_use_case, update_element_use_case
from ..use_cases.transfer_use_cases import (
    approve_transfer_use_case,
    cancel_transfer_use_case,
    initiate_transfer_use_case,
    receive_transfer_use_case,
)

router = APIRouter(prefix="/elements", tags=["elements"], dependencies=[Depends(enforce_csrf_origin)])


@router.get("", response_model=list[ElementOut])
def list_elements(
    project_id: Optional[str] = Query(default=None, alias="projectId"),
    status: Optional[str] = Query(default=None),
    ifc_type: Optional[str] = Query(default=None, alias="ifcType"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Element)
    if project_id:
        query = query.filter(Element.current_project_id == project_id)
    if status:
        query = query.filter(Element.status == status)
    if ifc_type:
        query = query.filter(Element.ifc_type == ifc_type)
    elements = query.order_by(Element.created_at.desc(), Element.asset_number).all()
    return [ElementOut.model_validate(e) for e in elements]


@router.post("", response_model=ElementOut, status_code=201)
def register_element(
    data: ElementCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Register a physical asset; generates asset number and QR payload."""
    element = register_element_use_case(data=data, current_user=current_user, db=db)
    return ElementOut.model_validate(element)


@router.get("/lookup", response_model=ElementLookupOut)
def lookup_element(
    code: str = Query(..., min_length=1),
    project_id: Optional[str] = Query(default=None, alias="projectId"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Resolve a scanned code and report whether it may be linked into the project."""
    return lookup_element_use_case(code=code, project_id=project_id, db=db)


@router.get("/qr/{code}", response_model=ElementOut)
def get_element_by_qr(
    code: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    element = find_element_by_scan(db, code)
    if element is None:
        raise HTTPException(status_code=404, detail="Element not found for QR code")
    return ElementOut.model_validate(element)


@router.get("/check-linking/{speckle_element_id}", response_model=LinkCheckOut)
def check_linking(
    speckle_element_id: str,
    project_id: Optional[str] = Query(default=None, alias="projectId"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return check_linking_use_case(speckle_element_id=speckle_element_id, project_id=project_id, db=db)


@router.get("/{element_id}", response_model=ElementOut)
def get_element(
    element_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    element = require_entity(db, Element, entity_id=element_id, not_found="Element not found")
    return ElementOut.model_validate(element)


@router.put("/{element_id}", response_model=ElementOut)
def update_element(
    element_id: str,
    data: ElementUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Partial update; identity, QR code and status are not editable."""
    element = update_element_use_case(element_id=element_id, data=data, db=db)
    return ElementOut.model_validate(element)


@router.get("/{element_id}/details", response_model=ElementDetailsOut)
def get_element_details(
    element_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Element with its QR payload, BIM mappings and inspections."""
    element = require_entity(db, Element, entity_id=element_id, not_found="Element not found")

    mapping_rows = db.query(ElementSpeckleMapping, Project.name).outerjoin(
        Project, ElementSpeckleMapping.project_id == Project.id,
    ).filter(
        ElementSpeckleMapping.element_id == element_id,
    ).order_by(ElementSpeckleMapping.mapped_date.desc()).all()
    mappings = [
        MappingDetailOut(**MappingOut.model_validate(mapping).model_dump(), project_name=project_name)
        for mapping, project_name in mapping_rows
    ]

    inspections = db.query(Inspection).filter(
        Inspection.global_element_id == element_id,
    ).order_by(Inspection.timestamp.desc()).all()

    return ElementDetailsOut(
        element=ElementOut.model_validate(element),
        qr_code=element.qr_code,
        mappings=mappings,
        inspections=[InspectionOut.model_validate(i) for i in inspections],
    )


@router.get("/{element_id}/history", response_model=list[HistoryEntryOut])
def get_element_history(
    element_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Project stays of the element, newest activation first."""
    require_entity(db, Element, entity_id=element_id, not_found="Element not found")
    rows = db.query(ElementProjectHistory, Project).outerjoin(
        Project, ElementProjectHistory.project_id == Project.id,
    ).filter(
        ElementProjectHistory.element_id == element_id,
    ).order_by(
        ElementProjectHistory.activated_date.desc().nulls_last(),
        ElementProjectHistory.id.desc(),
    ).all()
    return [
        HistoryEntryOut(
            history_record=HistoryOut.model_validate(history),
            project=ProjectOut.model_validate(project) if project else None,
        )
        for history, project in rows
    ]


@router.get("/{element_id}/inspections", response_model=list[InspectionOut])
def get_element_inspections(
    element_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Inspections recorded against this physical element in any project."""
    inspections = db.query(Inspection).filter(
        Inspection.global_element_id == element_id,
    ).order_by(Inspection.timestamp.desc()).all()
    return [InspectionOut.model_validate(i) for i in inspections]


@router.get("/{element_id}/link", response_model=list[MappingOut])
def get_element_links(
    element_id: str,
    project_id: Optional[str] = Query(default=None, alias="projectId"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(ElementSpeckleMapping).filter(ElementSpeckleMapping.element_id == element_id)
    if project_id:
        query = query.filter(ElementSpeckleMapping.project_id == project_id)
    return [MappingOut.model_validate(m) for m in query.order_by(ElementSpeckleMapping.mapped_date.desc()).all()]


@router.post("/{element_id}/link", response_model=MappingOut, status_code=201)
def link_element(
    element_id: str,
    data: LinkRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Link the asset to a BIM element in a project."""
    mapping = link_element_use_case(element_id=element_id, data=data, current_user=current_user, db=db)
    return MappingOut.model_validate(mapping)


@router.post("/{element_id}/transfer", response_model=TransferResult)
def transfer_element(
    element_id: str,
    data: TransferRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Start a transfer to another project; the element goes in transit."""
    return initiate_transfer_use_case(element_id=element_id, data=data, current_user=current_user, db=db)


@router.post("/{element_id}/transfer/cancel", response_model=CancelTransferResult)
def cancel_transfer(
    element_id: str,
    data: CancelTransferRequest | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return cancel_transfer_use_case(
        element_id=element_id,
        data=data or CancelTransferRequest(),
        current_user=current_user,
        db=db,
    )


@router.post("/{element_id}/approve", response_model=ApproveResult)
def approve_transfer(
    element_id: str,
    data: ApproveRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Record the source or destination project manager approval."""
    return approve_transfer_use_case(element_id=element_id, data=data, current_user=current_user, db=db)


@router.post("/{element_id}/receive", response_model=ReceiveResult)
def receive_element(
    element_id: str,
    data: ReceiveRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Activate a fully approved transfer in the destination project."""
    return receive_transfer_use_case(element_id=element_id, data=data, current_user=current_user, db=db)
