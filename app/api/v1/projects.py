# app/api/v1/projects.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.phases import phase_to_schema
from app.core.auth_deps import get_current_principal
from app.db.session import get_db
from app.policies.rbac import Principal
from app.schemas.phases import EarlyAccessOverview
from app.services.phase_service import PhaseService

router = APIRouter(prefix="/projects")


@router.get("/{project_id}/early-access")
async def early_access_overview(
    project_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Phases of a project that were opened through early access.
    """
    view = PhaseService().early_access_overview(db, principal=principal, project_id=project_id)
    out = EarlyAccessOverview(
        project_id=view["project_id"],
        phases=[phase_to_schema(p) for p in view["phases"]],
        total_early_access=view["total_early_access"],
        active_early_access=view["active_early_access"],
    )
    return {"success": True, "data": out.model_dump(mode="json")}
