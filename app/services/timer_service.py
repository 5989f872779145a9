# app/services/timer_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import (
    AuthorizationError,
    InvalidDuration,
    InvalidTransition,
    NotFoundError,
    SessionConflict,
    ValidationError,
)
from app.models.enums import WORKABLE_PHASE_STATUSES, TimerStatus, WorkLogSource
from app.models.phase import Phase
from app.models.timer_session import TimerSession
from app.models.work_log import WorkLog
from app.policies.rbac import ACTION_TIMER, Principal, require_action
from app.services.audit_service import AuditAction, AuditService
from app.services.work_log_service import WorkLogService, quantize_hours

logger = logging.getLogger(__name__)

MS_PER_HOUR = Decimal(3_600_000)


def _now():
    return datetime.now(timezone.utc)


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; stored values are always UTC
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


def _ms_between(start: datetime, end: datetime) -> int:
    return max(0, int((_aware(end) - _aware(start)).total_seconds() * 1000))


def snapshot(session: TimerSession, now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Server-side recovery view of a session.

    Active time comes from now - start_time, paused time from the persisted
    total plus the running pause, never from a client-held delta.
    """
    now = now or _now()
    elapsed = _ms_between(session.start_time, now)
    paused = int(session.total_paused_ms or 0)
    if session.status == TimerStatus.paused.value and session.paused_at is not None:
        paused += _ms_between(session.paused_at, now)
    return {
        "elapsed_time_ms": elapsed,
        "total_paused_ms": paused,
        "active_work_ms": max(0, elapsed - paused),
    }


@dataclass
class StopResult:
    work_log: WorkLog
    active_work_ms: int
    active_hours: Decimal
    paused_hours: Decimal


def _non_negative(name: str, value: Optional[int]) -> None:
    if value is not None and value < 0:
        raise ValidationError(f"{name} must be zero or positive.", {name: value})


class TimerService:
    """
    One live timer session per engineer: idle -> active <-> paused -> stopped | cancelled.

    Only active/paused sessions are stored. Stop turns the session into a
    WorkLog and deletes it in one transaction.
    """

    def __init__(
        self,
        audit: Optional[AuditService] = None,
        work_logs: Optional[WorkLogService] = None,
    ) -> None:
        self.audit = audit or AuditService()
        self.work_logs = work_logs or WorkLogService(self.audit)

    # ---------------------------
    # READS
    # ---------------------------

    def get_active(self, db: Session, *, principal: Principal) -> Optional[TimerSession]:
        return (
            db.execute(select(TimerSession).where(TimerSession.engineer_id == principal.user_id))
            .scalars()
            .one_or_none()
        )

    def _owned_for_update(self, db: Session, principal: Principal, session_id: int) -> TimerSession:
        session = (
            db.execute(select(TimerSession).where(TimerSession.id == session_id).with_for_update())
            .scalars()
            .one_or_none()
        )
        if session is None:
            raise NotFoundError("TimerSession", session_id)
        if session.engineer_id != principal.user_id:
            raise AuthorizationError(
                "Timer session belongs to another user.",
                {"session_id": session_id},
            )
        return session

    # ---------------------------
    # LIFECYCLE
    # ---------------------------

    def start(
        self,
        db: Session,
        *,
        principal: Principal,
        phase_id: int,
        description: str,
        request_id: Optional[str] = None,
    ) -> TimerSession:
        require_action(principal, ACTION_TIMER)

        settings = get_settings()
        description = (description or "").strip()
        if not (
            settings.timer_description_min_length
            <= len(description)
            <= settings.timer_description_max_length
        ):
            raise ValidationError(
                f"Description must be between {settings.timer_description_min_length} "
                f"and {settings.timer_description_max_length} characters.",
                {"length": len(description)},
            )

        existing = self.get_active(db, principal=principal)
        if existing is not None:
            logger.warning(
                "timer start rejected engineer=%s existing_session=%s",
                principal.user_id, existing.id,
            )
            raise SessionConflict(principal.user_id, existing.id)

        phase = db.get(Phase, phase_id)
        if phase is None:
            raise NotFoundError("Phase", phase_id)
        if phase.status not in WORKABLE_PHASE_STATUSES:
            raise InvalidTransition(
                "phase",
                current=phase.status,
                requested="start timer on",
                reason="phase must be ready, in_progress or submitted",
            )

        session = TimerSession(
            engineer_id=principal.user_id,
            phase_id=phase.id,
            project_id=phase.project_id,
            description=description,
            status=TimerStatus.active.value,
            start_time=_now(),
            paused_at=None,
            elapsed_time_ms=0,
            total_paused_ms=0,
        )
        db.add(session)
        try:
            db.flush()
        except IntegrityError:
            # a concurrent start won the unique engineer_id slot
            db.rollback()
            winner = self.get_active(db, principal=principal)
            logger.warning("timer start lost race engineer=%s", principal.user_id)
            raise SessionConflict(principal.user_id, winner.id if winner else None)

        self._audit(db, session, principal, AuditAction.TIMER_STARTED, request_id=request_id,
                    details={"phase_id": phase.id})
        db.commit()
        db.refresh(session)

        logger.info(
            "timer started session=%s engineer=%s phase=%s",
            session.id, principal.user_id, phase.id,
        )
        return session

    def pause(
        self,
        db: Session,
        *,
        principal: Principal,
        session_id: int,
        elapsed_time_ms: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> TimerSession:
        require_action(principal, ACTION_TIMER)
        _non_negative("elapsed_time_ms", elapsed_time_ms)
        session = self._owned_for_update(db, principal, session_id)

        if session.status != TimerStatus.active.value:
            self._reject(session, "pause")

        now = _now()
        if elapsed_time_ms is None:
            elapsed_time_ms = snapshot(session, now)["elapsed_time_ms"]
        if elapsed_time_ms < session.elapsed_time_ms:
            raise ValidationError(
                "elapsed_time_ms cannot decrease.",
                {"persisted": session.elapsed_time_ms, "received": elapsed_time_ms},
            )

        session.elapsed_time_ms = elapsed_time_ms
        session.paused_at = now
        session.status = TimerStatus.paused.value
        session.updated_at = now

        self._audit(db, session, principal, AuditAction.TIMER_PAUSED, request_id=request_id,
                    details={"elapsed_time_ms": elapsed_time_ms})
        db.commit()
        db.refresh(session)
        logger.info("timer paused session=%s elapsed_ms=%s", session.id, elapsed_time_ms)
        return session

    def resume(
        self,
        db: Session,
        *,
        principal: Principal,
        session_id: int,
        total_paused_ms: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> TimerSession:
        require_action(principal, ACTION_TIMER)
        _non_negative("total_paused_ms", total_paused_ms)
        session = self._owned_for_update(db, principal, session_id)

        if session.status != TimerStatus.paused.value:
            self._reject(session, "resume")

        now = _now()
        if total_paused_ms is None:
            total_paused_ms = snapshot(session, now)["total_paused_ms"]
        if total_paused_ms < session.total_paused_ms:
            raise ValidationError(
                "total_paused_ms cannot decrease.",
                {"persisted": session.total_paused_ms, "received": total_paused_ms},
            )

        session.total_paused_ms = total_paused_ms
        session.paused_at = None
        session.status = TimerStatus.active.value
        session.updated_at = now

        self._audit(db, session, principal, AuditAction.TIMER_RESUMED, request_id=request_id,
                    details={"total_paused_ms": total_paused_ms})
        db.commit()
        db.refresh(session)
        logger.info("timer resumed session=%s paused_ms=%s", session.id, total_paused_ms)
        return session

    def stop(
        self,
        db: Session,
        *,
        principal: Principal,
        session_id: int,
        elapsed_time_ms: Optional[int] = None,
        total_paused_ms: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> StopResult:
        require_action(principal, ACTION_TIMER)
        _non_negative("elapsed_time_ms", elapsed_time_ms)
        _non_negative("total_paused_ms", total_paused_ms)
        session = self._owned_for_update(db, principal, session_id)

        now = _now()
        recovered = snapshot(session, now)
        if elapsed_time_ms is None:
            elapsed_time_ms = recovered["elapsed_time_ms"]
        if total_paused_ms is None:
            total_paused_ms = recovered["total_paused_ms"]
        if elapsed_time_ms < session.elapsed_time_ms:
            raise ValidationError(
                "elapsed_time_ms cannot decrease.",
                {"persisted": session.elapsed_time_ms, "received": elapsed_time_ms},
            )
        if total_paused_ms < session.total_paused_ms:
            raise ValidationError(
                "total_paused_ms cannot decrease.",
                {"persisted": session.total_paused_ms, "received": total_paused_ms},
            )

        active_work_ms = elapsed_time_ms - total_paused_ms
        if active_work_ms <= 0:
            logger.warning(
                "timer stop rejected session=%s elapsed_ms=%s paused_ms=%s",
                session.id, elapsed_time_ms, total_paused_ms,
            )
            raise InvalidDuration(
                "No active work time to log.",
                {"elapsed_time_ms": elapsed_time_ms, "total_paused_ms": total_paused_ms},
            )

        hours = quantize_hours(Decimal(active_work_ms) / MS_PER_HOUR)
        if hours <= 0:
            raise InvalidDuration(
                "Active work time rounds to zero hours.",
                {"active_work_ms": active_work_ms},
            )
        paused_hours = quantize_hours(Decimal(total_paused_ms) / MS_PER_HOUR)

        work_log = self.work_logs.add(
            db,
            project_id=session.project_id,
            phase_id=session.phase_id,
            engineer_id=session.engineer_id,
            hours=hours,
            description=session.description,
            log_date=now.date(),
            source=WorkLogSource.timer,
        )
        db.flush()

        self._audit(db, session, principal, AuditAction.TIMER_STOPPED, request_id=request_id,
                    details={
                        "work_log_id": work_log.id,
                        "active_work_ms": active_work_ms,
                        "hours": str(hours),
                    })
        db.delete(session)
        db.commit()
        db.refresh(work_log)

        logger.info(
            "timer stopped session=%s engineer=%s work_log=%s hours=%s",
            session_id, principal.user_id, work_log.id, hours,
        )
        return StopResult(
            work_log=work_log,
            active_work_ms=active_work_ms,
            active_hours=hours,
            paused_hours=paused_hours,
        )

    def cancel(
        self,
        db: Session,
        *,
        principal: Principal,
        session_id: int,
        request_id: Optional[str] = None,
    ) -> None:
        require_action(principal, ACTION_TIMER)
        session = self._owned_for_update(db, principal, session_id)

        self._audit(db, session, principal, AuditAction.TIMER_CANCELLED, request_id=request_id,
                    details=snapshot(session))
        db.delete(session)
        db.commit()
        logger.info("timer cancelled session=%s engineer=%s", session_id, principal.user_id)

    # ---------------------------
    # INTERNALS
    # ---------------------------

    def _reject(self, session: TimerSession, action: str):
        logger.warning(
            "timer transition rejected session=%s action=%s status=%s",
            session.id, action, session.status,
        )
        raise InvalidTransition("timer session", current=session.status, requested=action)

    def _audit(
        self,
        db: Session,
        session: TimerSession,
        principal: Principal,
        action: str,
        *,
        request_id: Optional[str],
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.audit.record(
            db,
            entity_type="timer_session",
            entity_id=session.id,
            action=action,
            actor_id=principal.user_id,
            request_id=request_id,
            details=details,
        )
