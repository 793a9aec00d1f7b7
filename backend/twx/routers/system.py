"""System endpoints: health, version, stats, changelog and inspection export."""
import csv
import io
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..models import Element, Inspection, Project
from ..schemas import (
    INSPECTION_FORM_FIELDS,
    ChangelogResponse,
    ExportOut,
    ExportResponse,
    InspectionOut,
    StatsOut,
    StatsResponse,
)
from ..services.changelog import current_version, read_changelog

router = APIRouter(tags=["system"])
logger = logging.getLogger(__name__)

EXPORT_NAME = "TWX Inspection Export"
CSV_COLUMNS = (
    "id", "element_id", "project_id", "inspector", "status", "notes", "date",
    "last_modified_by", "timestamp", "version",
) + INSPECTION_FORM_FIELDS


@router.get("/health")
def health_check():
    """Liveness only; does not touch the database."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/version")
def get_version():
    return {"version": current_version(settings.CHANGELOG_PATH, fallback=settings.APP_VERSION)}


@router.get("/stats", response_model=StatsResponse)
def get_stats(db: Session = Depends(get_db)):
    """Record counts; the client also polls this to detect connectivity."""
    return StatsResponse(
        data=StatsOut(
            total_inspections=db.query(Inspection.id).count(),
            total_projects=db.query(Project.id).count(),
            total_elements=db.query(Element.id).count(),
            server="online",
        )
    )


@router.get("/changelog", response_model=ChangelogResponse)
def get_changelog():
    try:
        changelog = read_changelog(settings.CHANGELOG_PATH)
    except (OSError, ValueError):
        logger.exception("Failed to read changelog")
        raise HTTPException(status_code=500, detail="Failed to read changelog")
    return ChangelogResponse(changes=changelog["changes"], metadata=changelog["metadata"])


def _inspections_csv(inspections: list[Inspection]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow([to_camel(c) for c in CSV_COLUMNS])
    for inspection in inspections:
        row = []
        for column in CSV_COLUMNS:
            value = getattr(inspection, column)
            row.append(value.isoformat() if isinstance(value, datetime) else ("" if value is None else value))
        writer.writerow(row)
    return buffer.getvalue()


@router.get("/export", response_model=ExportResponse)
def export_inspections(
    project_id: Optional[str] = Query(default=None, alias="projectId"),
    format: str = Query(default="json", pattern="^(json|csv)$"),
    db: Session = Depends(get_db),
):
    """Export inspections for one project (or all) as JSON or CSV."""
    query = db.query(Inspection)
    if project_id:
        query = query.filter(Inspection.project_id == project_id)
    inspections = query.order_by(Inspection.timestamp.desc()).all()

    if format == "csv":
        filename = f"twx-inspections-{project_id or 'all'}.csv"
        return Response(
            content=_inspections_csv(inspections),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return ExportResponse(
        data=ExportOut(
            project_name=EXPORT_NAME,
            project_id=project_id or "all",
            export_date=datetime.now(timezone.utc),
            total_inspections=len(inspections),
            inspections=[InspectionOut.model_validate(i) for i in inspections],
        )
    )
