"""
Custom report endpoints for organization managers.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from lmsbox.api.deps import get_org_context, require_org_manager
from lmsbox.db import schemas
from lmsbox.db.database import get_db
from lmsbox.services import report_builder
from lmsbox.utils.feature_flags import custom_reports_enabled


def _require_reports() -> None:
    if not custom_reports_enabled():
        raise HTTPException(status_code=503, detail="Custom reports are currently disabled")


router = APIRouter(prefix="/reports", tags=["reports"], dependencies=[Depends(_require_reports)])


def _run(db: Session, org_context, request: schemas.CustomReportRequest):
    _user, current_user, org_id = org_context
    require_org_manager(current_user, org_id)
    try:
        report_builder.definition_for(request.entity_type)
        rows = report_builder.fetch_rows(db, request.entity_type, org_id)
        return report_builder.build_report(rows, request)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.post("/custom", response_model=schemas.CustomReportResponse)
def run_custom_report(
    request: schemas.CustomReportRequest,
    db: Session = Depends(get_db),
    org_context=Depends(get_org_context),
):
    return _run(db, org_context, request)


@router.post("/custom/export")
def export_custom_report(
    request: schemas.CustomReportRequest,
    db: Session = Depends(get_db),
    org_context=Depends(get_org_context),
):
    report = _run(db, org_context, request)
    filename = f"{report['entity_type']}-report.csv"
    return Response(
        content=report_builder.to_csv(report),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
