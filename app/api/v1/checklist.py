# app/api/v1/checklist.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.db.session import get_db
from app.models.checklist_item import ChecklistItem
from app.policies.rbac import Principal
from app.schemas.checklist import (
    AddPhaseChecklistRequest,
    ChecklistItemCreateRequest,
    ChecklistItemOut,
    ClientNotesRequest,
    EngineerApprovalOut,
    EngineerApproveRequest,
    ItemResultOut,
    PhaseStatisticsOut,
    RevokeSupervisorRequest,
    SupervisorApprovalOut,
    SupervisorApproveRequest,
    ToggleCompletionRequest,
)
from app.schemas.common import ErrorBody
from app.services.checklist_service import ChecklistService, ItemResult

router = APIRouter(prefix="/checklist")


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

def _rid(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _supervisor(item: ChecklistItem, level: int) -> Optional[SupervisorApprovalOut]:
    approval = item.supervisor_approval(level)
    return SupervisorApprovalOut(**approval) if approval else None


def item_to_schema(item: ChecklistItem) -> ChecklistItemOut:
    return ChecklistItemOut(
        id=item.id,
        project_id=item.project_id,
        phase_name=item.phase_name,
        section_name=item.section_name,
        task_title_ar=item.task_title_ar,
        task_title_en=item.task_title_en,
        display_order=item.display_order,
        is_custom=item.is_custom,
        is_completed=item.is_completed,
        engineer_approved_by=item.engineer_approved_by,
        engineer_approved_at=item.engineer_approved_at,
        engineer_approvals=[EngineerApprovalOut.model_validate(a) for a in item.engineer_approvals],
        supervisor_1_approved_by=_supervisor(item, 1),
        supervisor_2_approved_by=_supervisor(item, 2),
        supervisor_3_approved_by=_supervisor(item, 3),
        client_notes=item.client_notes,
    )


def _resp(item: ChecklistItem) -> dict:
    return {"success": True, "data": item_to_schema(item).model_dump(mode="json")}


def _batch_resp(results: List[ItemResult]) -> dict:
    data = []
    for r in results:
        out = ItemResultOut(
            item_id=r.item_id,
            success=r.success,
            item=item_to_schema(r.item) if r.item is not None else None,
            error=ErrorBody(**r.error.to_dict()) if r.error is not None else None,
        )
        data.append(out.model_dump(mode="json"))
    return {
        "success": True,
        "data": data,
        "applied": sum(1 for r in results if r.success),
        "failed": sum(1 for r in results if not r.success),
    }


# ─────────────────────────────────────────────────────────────
# PROJECT CHECKLISTS
# ─────────────────────────────────────────────────────────────

@router.post("/projects/{project_id}/phases", status_code=201)
async def add_phase_checklist(
    project_id: int,
    body: AddPhaseChecklistRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    items = ChecklistService().add_phase_checklist(
        db, principal=principal, project_id=project_id,
        phase_name=body.phase_name, request_id=_rid(request),
    )
    return {"success": True, "data": [item_to_schema(i).model_dump(mode="json") for i in items]}


@router.get("/projects/{project_id}/phases/{phase_name}")
async def list_phase_items(
    project_id: int,
    phase_name: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    items = ChecklistService().list_for_phase(db, project_id=project_id, phase_name=phase_name)
    return {"success": True, "data": [item_to_schema(i).model_dump(mode="json") for i in items]}


@router.get("/projects/{project_id}/phases/{phase_name}/statistics")
async def phase_statistics(
    project_id: int,
    phase_name: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    stats = ChecklistService().phase_statistics(db, project_id=project_id, phase_name=phase_name)
    return {"success": True, "data": PhaseStatisticsOut(**stats).model_dump(mode="json")}


@router.post("/projects/{project_id}/items", status_code=201)
async def create_item(
    project_id: int,
    body: ChecklistItemCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    item = ChecklistService().create_item(
        db,
        principal=principal,
        project_id=project_id,
        phase_name=body.phase_name,
        task_title_ar=body.task_title_ar,
        task_title_en=body.task_title_en,
        section_name=body.section_name,
        display_order=body.display_order,
        request_id=_rid(request),
    )
    return _resp(item)


@router.delete("/items/{item_id}")
async def delete_item(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    ChecklistService().delete_item(db, principal=principal, item_id=item_id, request_id=_rid(request))
    return {"success": True, "data": {"id": item_id}}


@router.put("/items/{item_id}/client-notes")
async def update_client_notes(
    item_id: int,
    body: ClientNotesRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    item = ChecklistService().update_client_notes(
        db, principal=principal, item_id=item_id,
        client_notes=body.client_notes, request_id=_rid(request),
    )
    return _resp(item)


# ─────────────────────────────────────────────────────────────
# APPROVAL WORKFLOW
# ─────────────────────────────────────────────────────────────

@router.post("/items/{item_id}/toggle-completion")
async def toggle_completion(
    item_id: int,
    body: ToggleCompletionRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    item = ChecklistService().toggle_completion(
        db, principal=principal, item_id=item_id,
        is_completed=body.is_completed, request_id=_rid(request),
    )
    return _resp(item)


@router.post("/approve/engineer")
async def engineer_approve(
    body: EngineerApproveRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    results = ChecklistService().engineer_approve(
        db, principal=principal, item_ids=body.items, request_id=_rid(request),
    )
    return _batch_resp(results)


@router.delete("/approve/engineer/{item_id}")
async def withdraw_engineer_approval(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    item = ChecklistService().withdraw_engineer_approval(
        db, principal=principal, item_id=item_id, request_id=_rid(request),
    )
    return _resp(item)


@router.post("/approve/supervisor")
async def supervisor_approve(
    body: SupervisorApproveRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    results = ChecklistService().supervisor_approve(
        db, principal=principal, item_ids=body.items, level=body.level, request_id=_rid(request),
    )
    return _batch_resp(results)


@router.post("/items/{item_id}/revoke-engineer-approval")
async def revoke_engineer_approval(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    item = ChecklistService().revoke_engineer_approval(
        db, principal=principal, item_id=item_id, request_id=_rid(request),
    )
    return _resp(item)


@router.post("/items/{item_id}/revoke-supervisor-approval")
async def revoke_supervisor_approval(
    item_id: int,
    body: RevokeSupervisorRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    item = ChecklistService().revoke_supervisor_approval(
        db, principal=principal, item_id=item_id, level=body.level, request_id=_rid(request),
    )
    return _resp(item)
