# app/services/phase_service.py
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import InvalidTransition, NotFoundError, ValidationError, AuthorizationError
from app.core.phase_graph import PHASE_TRANSITION_TARGET, can_transition
from app.models.enums import DelayReason, EarlyAccessStatus, PhaseStatus
from app.models.phase import Phase, PhaseAssignment
from app.models.project import Project
from app.policies.rbac import (
    ACTION_PHASE_APPROVE,
    ACTION_PHASE_COMPLETE,
    ACTION_PHASE_DELAY,
    ACTION_PHASE_EARLY_ACCESS,
    ACTION_PHASE_EDIT_DATES,
    ACTION_PHASE_OVERVIEW,
    ACTION_PHASE_START,
    ACTION_PHASE_SUBMIT,
    ACTION_PHASE_WARNING,
    Principal,
    require_action,
)
from app.services.audit_service import AuditAction, AuditService
from app.services.work_log_service import WorkLogService

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


def _today() -> date:
    return _now().date()


class PhaseService:
    """
    Phase lifecycle engine.

    not_started -> ready -> in_progress -> submitted -> approved -> completed,
    plus the early access bypass and approved -> in_progress re-entry.

    Every mutation:
    - checks the caller's capability before reading state
    - locks the phase row (FOR UPDATE)
    - raises InvalidTransition without writing if the precondition fails
    - writes an audit row in the same transaction
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

    def get_phase(self, db: Session, *, phase_id: int) -> Tuple[Phase, Decimal]:
        """
        Returns (phase, actual_hours). Actual hours are summed from work logs.
        """
        phase = db.get(Phase, phase_id)
        if phase is None:
            raise NotFoundError("Phase", phase_id)
        return phase, self.work_logs.total_hours_for_phase(db, phase.id)

    def get_phase_for_update(self, db: Session, phase_id: int) -> Phase:
        phase = (
            db.execute(select(Phase).where(Phase.id == phase_id).with_for_update())
            .scalars()
            .one_or_none()
        )
        if phase is None:
            raise NotFoundError("Phase", phase_id)
        return phase

    def early_access_overview(
        self,
        db: Session,
        *,
        principal: Principal,
        project_id: int,
    ) -> Dict[str, Any]:
        require_action(principal, ACTION_PHASE_OVERVIEW)

        if db.get(Project, project_id) is None:
            raise NotFoundError("Project", project_id)

        phases = list(
            db.execute(
                select(Phase)
                .where(Phase.project_id == project_id, Phase.early_access_granted.is_(True))
                .order_by(Phase.phase_order.asc())
            ).scalars().all()
        )
        active = [
            p for p in phases
            if p.early_access_status
            in (EarlyAccessStatus.accessible.value, EarlyAccessStatus.in_progress.value)
        ]
        return {
            "project_id": project_id,
            "phases": phases,
            "total_early_access": len(phases),
            "active_early_access": len(active),
        }

    # ---------------------------
    # LIFECYCLE
    # ---------------------------

    def start(
        self,
        db: Session,
        *,
        principal: Principal,
        phase_id: int,
        note: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Phase:
        require_action(principal, ACTION_PHASE_START)
        phase = self.get_phase_for_update(db, phase_id)
        self._require_assignment(db, principal, phase)

        via_early_access = (
            phase.early_access_granted
            and phase.early_access_status == EarlyAccessStatus.accessible.value
        )
        if not (can_transition("start", phase.status) or via_early_access):
            self._reject(phase, "start", principal, reason="phase is not ready and has no usable early access")

        from_status = phase.status
        phase.status = PhaseStatus.in_progress.value
        phase.actual_start_date = _today()
        if via_early_access:
            phase.early_access_status = EarlyAccessStatus.in_progress.value
        phase.updated_at = _now()

        return self._finish(
            db, phase, principal,
            action=AuditAction.PHASE_START,
            from_status=from_status,
            note=note,
            request_id=request_id,
            details={"via_early_access": via_early_access},
        )

    def submit(
        self,
        db: Session,
        *,
        principal: Principal,
        phase_id: int,
        note: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Phase:
        require_action(principal, ACTION_PHASE_SUBMIT)
        phase = self.get_phase_for_update(db, phase_id)
        self._require_assignment(db, principal, phase)

        from_status = self._advance(phase, "submit", principal)
        phase.submitted_date = _today()

        return self._finish(
            db, phase, principal,
            action=AuditAction.PHASE_SUBMIT,
            from_status=from_status,
            note=note,
            request_id=request_id,
        )

    def approve(
        self,
        db: Session,
        *,
        principal: Principal,
        phase_id: int,
        note: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Phase:
        require_action(principal, ACTION_PHASE_APPROVE)
        phase = self.get_phase_for_update(db, phase_id)

        from_status = self._advance(phase, "approve", principal)
        phase.approved_date = _today()

        self._unlock_next(db, phase, principal, request_id=request_id)

        return self._finish(
            db, phase, principal,
            action=AuditAction.PHASE_APPROVE,
            from_status=from_status,
            note=note,
            request_id=request_id,
        )

    def complete(
        self,
        db: Session,
        *,
        principal: Principal,
        phase_id: int,
        note: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Phase:
        require_action(principal, ACTION_PHASE_COMPLETE)
        phase = self.get_phase_for_update(db, phase_id)

        from_status = self._advance(phase, "complete", principal)
        phase.actual_end_date = _today()

        return self._finish(
            db, phase, principal,
            action=AuditAction.PHASE_COMPLETE,
            from_status=from_status,
            note=note,
            request_id=request_id,
        )

    # ---------------------------
    # EARLY ACCESS
    # ---------------------------

    def grant_early_access(
        self,
        db: Session,
        *,
        principal: Principal,
        phase_id: int,
        note: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Phase:
        require_action(principal, ACTION_PHASE_EARLY_ACCESS)
        phase = self.get_phase_for_update(db, phase_id)

        if phase.status != PhaseStatus.not_started.value:
            self._reject(phase, "grant early access to", principal, reason="phase has already been unlocked")
        if phase.early_access_granted:
            self._reject(phase, "grant early access to", principal, reason="early access is already granted")

        phase.early_access_granted = True
        phase.early_access_status = EarlyAccessStatus.accessible.value
        phase.early_access_granted_by = principal.user_id
        phase.early_access_granted_at = _now()
        phase.early_access_note = note
        phase.updated_at = _now()

        return self._finish(
            db, phase, principal,
            action=AuditAction.EARLY_ACCESS_GRANTED,
            from_status=phase.status,
            note=note,
            request_id=request_id,
        )

    def revoke_early_access(
        self,
        db: Session,
        *,
        principal: Principal,
        phase_id: int,
        note: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Phase:
        require_action(principal, ACTION_PHASE_EARLY_ACCESS)
        phase = self.get_phase_for_update(db, phase_id)

        if not phase.early_access_granted:
            self._reject(phase, "revoke early access from", principal, reason="early access is not granted")
        if phase.early_access_status == EarlyAccessStatus.in_progress.value:
            self._reject(phase, "revoke early access from", principal, reason="work has already started under early access")
        if self.work_logs.exists_for_phase(db, phase.id):
            self._reject(phase, "revoke early access from", principal, reason="work has already been logged")

        phase.early_access_granted = False
        phase.early_access_status = EarlyAccessStatus.not_accessible.value
        phase.early_access_granted_by = None
        phase.early_access_granted_at = None
        phase.updated_at = _now()

        return self._finish(
            db, phase, principal,
            action=AuditAction.EARLY_ACCESS_REVOKED,
            from_status=phase.status,
            note=note,
            request_id=request_id,
        )

    # ---------------------------
    # ANNOTATIONS
    # ---------------------------

    def mark_warning(
        self,
        db: Session,
        *,
        principal: Principal,
        phase_id: int,
        flag: bool,
        note: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Phase:
        require_action(principal, ACTION_PHASE_WARNING)
        phase = self.get_phase_for_update(db, phase_id)

        phase.warning_flag = bool(flag)
        phase.updated_at = _now()

        return self._finish(
            db, phase, principal,
            action=AuditAction.PHASE_WARNING,
            from_status=phase.status,
            note=note,
            request_id=request_id,
            details={"warning_flag": phase.warning_flag},
        )

    def handle_delay(
        self,
        db: Session,
        *,
        principal: Principal,
        phase_id: int,
        delay_reason: str,
        additional_weeks: Optional[int] = None,
        new_end_date: Optional[date] = None,
        note: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Phase:
        """
        Record a delay and optionally move the planned end date.

        new_end_date wins over additional_weeks. A client delay pushes every
        later phase of the project by the same number of days.
        """
        require_action(principal, ACTION_PHASE_DELAY)

        if delay_reason not in (DelayReason.client.value, DelayReason.company.value):
            raise ValidationError(
                "delay_reason must be 'client' or 'company'.",
                {"delay_reason": delay_reason},
            )
        if additional_weeks is not None and additional_weeks <= 0:
            raise ValidationError(
                "additional_weeks must be a positive integer.",
                {"additional_weeks": additional_weeks},
            )

        phase = self.get_phase_for_update(db, phase_id)
        old_end = phase.planned_end_date

        target_end: Optional[date] = None
        if new_end_date is not None:
            target_end = new_end_date
        elif additional_weeks is not None:
            if old_end is None:
                raise ValidationError(
                    "Phase has no planned end date to extend.",
                    {"phase_id": phase.id},
                )
            target_end = old_end + timedelta(weeks=additional_weeks)

        if (
            target_end is not None
            and phase.planned_start_date is not None
            and target_end < phase.planned_start_date
        ):
            raise ValidationError(
                "New end date cannot be before the planned start date.",
                {"planned_start_date": phase.planned_start_date.isoformat(), "new_end_date": target_end.isoformat()},
            )

        phase.delay_reason = delay_reason
        if target_end is not None:
            phase.planned_end_date = target_end
        phase.updated_at = _now()

        shifted: List[int] = []
        if (
            delay_reason == DelayReason.client.value
            and old_end is not None
            and target_end is not None
            and target_end > old_end
        ):
            shifted = self._shift_later_phases(db, phase, (target_end - old_end).days)

        return self._finish(
            db, phase, principal,
            action=AuditAction.PHASE_DELAY,
            from_status=phase.status,
            note=note,
            request_id=request_id,
            details={
                "delay_reason": delay_reason,
                "old_end_date": old_end.isoformat() if old_end else None,
                "new_end_date": target_end.isoformat() if target_end else None,
                "shifted_phase_ids": shifted,
            },
        )

    def edit_dates(
        self,
        db: Session,
        *,
        principal: Principal,
        phase_id: int,
        submitted_date: Optional[date] = None,
        approved_date: Optional[date] = None,
        actual_start_date: Optional[date] = None,
        actual_end_date: Optional[date] = None,
        note: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Phase:
        """
        History dates editor. Only the dates passed are changed; status is never touched.
        """
        require_action(principal, ACTION_PHASE_EDIT_DATES)
        phase = self.get_phase_for_update(db, phase_id)

        start = actual_start_date if actual_start_date is not None else phase.actual_start_date
        end = actual_end_date if actual_end_date is not None else phase.actual_end_date
        submitted = submitted_date if submitted_date is not None else phase.submitted_date
        approved = approved_date if approved_date is not None else phase.approved_date

        if start is not None and end is not None and end < start:
            raise ValidationError(
                "actual_end_date cannot be before actual_start_date.",
                {"actual_start_date": start.isoformat(), "actual_end_date": end.isoformat()},
            )
        if submitted is not None and approved is not None and approved < submitted:
            raise ValidationError(
                "approved_date cannot be before submitted_date.",
                {"submitted_date": submitted.isoformat(), "approved_date": approved.isoformat()},
            )

        phase.actual_start_date = start
        phase.actual_end_date = end
        phase.submitted_date = submitted
        phase.approved_date = approved
        phase.updated_at = _now()

        return self._finish(
            db, phase, principal,
            action=AuditAction.PHASE_DATES_EDITED,
            from_status=phase.status,
            note=note,
            request_id=request_id,
            details={
                "actual_start_date": start.isoformat() if start else None,
                "actual_end_date": end.isoformat() if end else None,
                "submitted_date": submitted.isoformat() if submitted else None,
                "approved_date": approved.isoformat() if approved else None,
            },
        )

    # ---------------------------
    # INTERNALS
    # ---------------------------

    def _require_assignment(self, db: Session, principal: Principal, phase: Phase) -> None:
        if not principal.is_engineer:
            return
        assigned = db.execute(
            select(PhaseAssignment.id).where(
                PhaseAssignment.phase_id == phase.id,
                PhaseAssignment.engineer_id == principal.user_id,
            )
        ).first()
        if assigned is None:
            raise AuthorizationError(
                "Engineer is not assigned to this phase.",
                {"phase_id": phase.id, "engineer_id": principal.user_id},
            )

    def _advance(self, phase: Phase, action: str, principal: Principal) -> str:
        if not can_transition(action, phase.status):
            self._reject(phase, action, principal)
        from_status = phase.status
        phase.status = PHASE_TRANSITION_TARGET[action].value
        phase.updated_at = _now()
        return from_status

    def _reject(self, phase: Phase, action: str, principal: Principal, reason: Optional[str] = None):
        logger.warning(
            "phase transition rejected phase=%s action=%s status=%s actor=%s",
            phase.id, action, phase.status, principal.user_id,
        )
        raise InvalidTransition("phase", current=phase.status, requested=action, reason=reason)

    def _unlock_next(
        self,
        db: Session,
        phase: Phase,
        principal: Principal,
        *,
        request_id: Optional[str],
    ) -> None:
        nxt = (
            db.execute(
                select(Phase)
                .where(
                    Phase.project_id == phase.project_id,
                    Phase.phase_order == phase.phase_order + 1,
                )
                .with_for_update()
            )
            .scalars()
            .one_or_none()
        )
        if nxt is None or nxt.status != PhaseStatus.not_started.value:
            return

        nxt.status = PhaseStatus.ready.value
        nxt.updated_at = _now()
        self.audit.record(
            db,
            entity_type="phase",
            entity_id=nxt.id,
            action=AuditAction.PHASE_UNLOCK,
            actor_id=principal.user_id,
            request_id=request_id,
            details={"from": PhaseStatus.not_started.value, "to": PhaseStatus.ready.value, "unlocked_by_phase_id": phase.id},
        )
        logger.info("phase unlocked phase=%s by approval of phase=%s", nxt.id, phase.id)

    def _shift_later_phases(self, db: Session, phase: Phase, days: int) -> List[int]:
        later = db.execute(
            select(Phase)
            .where(Phase.project_id == phase.project_id, Phase.phase_order > phase.phase_order)
            .order_by(Phase.phase_order.asc())
            .with_for_update()
        ).scalars().all()

        delta = timedelta(days=days)
        shifted: List[int] = []
        for p in later:
            if p.planned_start_date is None and p.planned_end_date is None:
                continue
            if p.planned_start_date is not None:
                p.planned_start_date = p.planned_start_date + delta
            if p.planned_end_date is not None:
                p.planned_end_date = p.planned_end_date + delta
            p.updated_at = _now()
            shifted.append(p.id)
        return shifted

    def _finish(
        self,
        db: Session,
        phase: Phase,
        principal: Principal,
        *,
        action: str,
        from_status: str,
        note: Optional[str],
        request_id: Optional[str],
        details: Optional[Dict[str, Any]] = None,
    ) -> Phase:
        payload = {"from": from_status, "to": phase.status}
        payload.update(details or {})
        self.audit.record(
            db,
            entity_type="phase",
            entity_id=phase.id,
            action=action,
            actor_id=principal.user_id,
            note=note,
            request_id=request_id,
            details=payload,
        )
        db.commit()
        db.refresh(phase)

        logger.info(
            "phase %s phase=%s %s -> %s actor=%s",
            action, phase.id, from_status, phase.status, principal.user_id,
        )
        return phase
