# app/api/v1/work_logs.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.db.session import get_db
from app.policies.rbac import Principal
from app.schemas.work_logs import WorkLogCreateRequest, WorkLogOut
from app.services.work_log_service import WorkLogService

router = APIRouter(prefix="/work-logs")


@router.post("", status_code=201)
async def create_work_log(
    body: WorkLogCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    row = WorkLogService().create_manual(
        db,
        principal=principal,
        phase_id=body.phase_id,
        hours=body.hours,
        description=body.description,
        log_date=body.date,
        request_id=getattr(request.state, "request_id", None),
    )
    return {"success": True, "data": WorkLogOut.model_validate(row).model_dump(mode="json")}
