# app/api/v1/phases.py
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.db.session import get_db
from app.models.phase import Phase
from app.policies.rbac import Principal
from app.schemas.common import NoteRequest
from app.schemas.phases import DelayRequest, PhaseDatesRequest, PhaseOut, WarningRequest
from app.schemas.work_logs import WorkLogOut
from app.services.phase_service import PhaseService
from app.services.work_log_service import WorkLogService

router = APIRouter(prefix="/phases")


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

def _rid(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def phase_to_schema(phase: Phase, actual_hours: Optional[Decimal] = None) -> PhaseOut:
    out = PhaseOut.model_validate(phase)
    if actual_hours is not None:
        out.actual_hours = float(actual_hours)
    return out


def _resp(phase: Phase) -> dict:
    return {"success": True, "data": phase_to_schema(phase).model_dump(mode="json")}


# ─────────────────────────────────────────────────────────────
# READS
# ─────────────────────────────────────────────────────────────

@router.get("/{phase_id}")
async def get_phase(
    phase_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    phase, hours = PhaseService().get_phase(db, phase_id=phase_id)
    return {"success": True, "data": phase_to_schema(phase, hours).model_dump(mode="json")}


@router.get("/{phase_id}/work-logs")
async def list_phase_work_logs(
    phase_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    PhaseService().get_phase(db, phase_id=phase_id)
    rows = WorkLogService().list_for_phase(db, phase_id)
    return {
        "success": True,
        "data": [WorkLogOut.model_validate(r).model_dump(mode="json") for r in rows],
    }


# ─────────────────────────────────────────────────────────────
# LIFECYCLE
# ─────────────────────────────────────────────────────────────

@router.post("/{phase_id}/start")
async def start_phase(
    phase_id: int,
    request: Request,
    body: Optional[NoteRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    phase = PhaseService().start(
        db, principal=principal, phase_id=phase_id,
        note=body.note if body else None, request_id=_rid(request),
    )
    return _resp(phase)


@router.post("/{phase_id}/submit")
async def submit_phase(
    phase_id: int,
    request: Request,
    body: Optional[NoteRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    phase = PhaseService().submit(
        db, principal=principal, phase_id=phase_id,
        note=body.note if body else None, request_id=_rid(request),
    )
    return _resp(phase)


@router.post("/{phase_id}/approve")
async def approve_phase(
    phase_id: int,
    request: Request,
    body: Optional[NoteRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    phase = PhaseService().approve(
        db, principal=principal, phase_id=phase_id,
        note=body.note if body else None, request_id=_rid(request),
    )
    return _resp(phase)


@router.post("/{phase_id}/complete")
async def complete_phase(
    phase_id: int,
    request: Request,
    body: Optional[NoteRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    phase = PhaseService().complete(
        db, principal=principal, phase_id=phase_id,
        note=body.note if body else None, request_id=_rid(request),
    )
    return _resp(phase)


# ─────────────────────────────────────────────────────────────
# EARLY ACCESS
# ─────────────────────────────────────────────────────────────

@router.post("/{phase_id}/grant-early-access")
async def grant_early_access(
    phase_id: int,
    request: Request,
    body: Optional[NoteRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    phase = PhaseService().grant_early_access(
        db, principal=principal, phase_id=phase_id,
        note=body.note if body else None, request_id=_rid(request),
    )
    return _resp(phase)


@router.post("/{phase_id}/revoke-early-access")
async def revoke_early_access(
    phase_id: int,
    request: Request,
    body: Optional[NoteRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    phase = PhaseService().revoke_early_access(
        db, principal=principal, phase_id=phase_id,
        note=body.note if body else None, request_id=_rid(request),
    )
    return _resp(phase)


# ─────────────────────────────────────────────────────────────
# ANNOTATIONS / DATES
# ─────────────────────────────────────────────────────────────

@router.post("/{phase_id}/warning")
async def mark_warning(
    phase_id: int,
    body: WarningRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    phase = PhaseService().mark_warning(
        db, principal=principal, phase_id=phase_id,
        flag=body.warning_flag, note=body.note, request_id=_rid(request),
    )
    return _resp(phase)


@router.post("/{phase_id}/delay")
async def handle_delay(
    phase_id: int,
    body: DelayRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    phase = PhaseService().handle_delay(
        db,
        principal=principal,
        phase_id=phase_id,
        delay_reason=body.delay_reason.value,
        additional_weeks=body.additional_weeks,
        new_end_date=body.new_end_date,
        note=body.note,
        request_id=_rid(request),
    )
    return _resp(phase)


@router.put("/{phase_id}/dates")
async def edit_phase_dates(
    phase_id: int,
    body: PhaseDatesRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    phase = PhaseService().edit_dates(
        db,
        principal=principal,
        phase_id=phase_id,
        submitted_date=body.submitted_date,
        approved_date=body.approved_date,
        actual_start_date=body.actual_start_date,
        actual_end_date=body.actual_end_date,
        note=body.note,
        request_id=_rid(request),
    )
    return _resp(phase)
