"""Project endpoints."""
from datetime import datetime, timezone
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..models import Project
from ..schemas import ProjectCreate, ProjectListMetadata, ProjectListResponse, ProjectOut, ProjectResponse
from ..security import enforce_csrf_origin
from ..use_cases.project_lifecycle import create_project_use_case, delete_project_use_case

router = APIRouter(prefix="/projects", tags=["projects"], dependencies=[Depends(enforce_csrf_origin)])


@router.get("", response_model=Union[ProjectResponse, ProjectListResponse])
def get_projects(
    id: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    """List projects, or fetch one with `?id=`."""
    if id:
        project = db.query(Project).filter(Project.id == id).first()
        if not project:
            raise HTTPException(status_code=404, detail="Project not found")
        return ProjectResponse(data=ProjectOut.model_validate(project))

    projects = db.query(Project).order_by(Project.created_at.desc()).all()
    return ProjectListResponse(
        data=[ProjectOut.model_validate(p) for p in projects],
        metadata=ProjectListMetadata(
            version=settings.APP_VERSION,
            last_update=datetime.now(timezone.utc),
            total_projects=len(projects),
        ),
    )


@router.post("", response_model=ProjectResponse)
def create_project(data: ProjectCreate, db: Session = Depends(get_db)):
    """Create a project pointing at a hosted BIM model."""
    project = create_project_use_case(data=data, db=db)
    return ProjectResponse(data=ProjectOut.model_validate(project))


@router.delete("", response_model=ProjectResponse)
def delete_project(
    id: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    """Delete a project with its inspections and BIM links."""
    if not id:
        raise HTTPException(status_code=400, detail="Project ID is required")
    project = delete_project_use_case(db=db, project_id=id)
    return ProjectResponse(data=ProjectOut.model_validate(project))
