"""Endpoints backing the 3D model viewer."""
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Inspection, Project
from ..schemas import ColorBucketOut, ElementPropertiesOut, ViewerColorsOut
from ..security import require_entity
from ..services.element_properties import element_properties
from ..services.viewer_colors import color_buckets

router = APIRouter(tags=["viewer"])


@router.get("/projects/{project_id}/viewer/colors", response_model=ViewerColorsOut)
def get_viewer_colors(project_id: str, db: Session = Depends(get_db)):
    """Colour buckets for the project's inspected BIM elements."""
    require_entity(db, Project, entity_id=project_id, not_found="Project not found")
    inspections = db.query(Inspection.element_id, Inspection.status).filter(
        Inspection.project_id == project_id,
    ).all()
    buckets = color_buckets(inspections)
    return ViewerColorsOut(
        project_id=project_id,
        buckets={name: ColorBucketOut(**bucket) for name, bucket in buckets.items()},
    )


@router.post("/viewer/element-properties", response_model=ElementPropertiesOut)
def normalize_element_properties(raw: dict[str, Any] = Body(...)):
    """Typed properties for a raw viewer node."""
    return ElementPropertiesOut(**element_properties(raw))
