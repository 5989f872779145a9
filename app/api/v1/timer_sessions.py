# app/api/v1/timer_sessions.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.db.session import get_db
from app.models.timer_session import TimerSession
from app.policies.rbac import Principal
from app.schemas.timer_sessions import (
    TimerPauseRequest,
    TimerResumeRequest,
    TimerSessionOut,
    TimerSnapshot,
    TimerStartRequest,
    TimerStopOut,
    TimerStopRequest,
)
from app.schemas.work_logs import WorkLogOut
from app.services.timer_service import TimerService, snapshot

router = APIRouter(prefix="/timer-sessions")


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

def _rid(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def session_to_schema(s: TimerSession) -> TimerSessionOut:
    return TimerSessionOut(
        id=s.id,
        engineer_id=s.engineer_id,
        phase_id=s.phase_id,
        project_id=s.project_id,
        description=s.description,
        status=s.status,
        start_time=s.start_time,
        paused_at=s.paused_at,
        elapsed_time_ms=s.elapsed_time_ms,
        total_paused_ms=s.total_paused_ms,
        current=TimerSnapshot(**snapshot(s)),
    )


def _resp(s: TimerSession) -> dict:
    return {"success": True, "data": session_to_schema(s).model_dump(mode="json")}


# ─────────────────────────────────────────────────────────────
# ROUTES
# ─────────────────────────────────────────────────────────────

@router.get("/active")
async def get_active_session(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Caller's live session, if any. Clients reconcile local timer state against this.
    """
    s = TimerService().get_active(db, principal=principal)
    if s is None:
        return {"success": True, "data": None}
    return _resp(s)


@router.post("", status_code=201)
async def start_session(
    body: TimerStartRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    s = TimerService().start(
        db, principal=principal, phase_id=body.phase_id,
        description=body.description, request_id=_rid(request),
    )
    return _resp(s)


@router.put("/{session_id}/pause")
async def pause_session(
    session_id: int,
    request: Request,
    body: Optional[TimerPauseRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    s = TimerService().pause(
        db, principal=principal, session_id=session_id,
        elapsed_time_ms=body.elapsed_time_ms if body else None,
        request_id=_rid(request),
    )
    return _resp(s)


@router.put("/{session_id}/resume")
async def resume_session(
    session_id: int,
    request: Request,
    body: Optional[TimerResumeRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    s = TimerService().resume(
        db, principal=principal, session_id=session_id,
        total_paused_ms=body.total_paused_ms if body else None,
        request_id=_rid(request),
    )
    return _resp(s)


@router.put("/{session_id}/stop")
async def stop_session(
    session_id: int,
    request: Request,
    body: Optional[TimerStopRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    result = TimerService().stop(
        db,
        principal=principal,
        session_id=session_id,
        elapsed_time_ms=body.elapsed_time_ms if body else None,
        total_paused_ms=body.total_paused_ms if body else None,
        request_id=_rid(request),
    )
    out = TimerStopOut(
        work_log=WorkLogOut.model_validate(result.work_log),
        active_work_ms=result.active_work_ms,
        active_hours=float(result.active_hours),
        paused_hours=float(result.paused_hours),
    )
    return {"success": True, "data": out.model_dump(mode="json")}


@router.delete("/{session_id}")
async def cancel_session(
    session_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    TimerService().cancel(db, principal=principal, session_id=session_id, request_id=_rid(request))
    return {"success": True, "data": {"id": session_id}}
