# app/services/work_log_service.py
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import InvalidTransition, NotFoundError, ValidationError
from app.models.enums import WORKABLE_PHASE_STATUSES, WorkLogSource
from app.models.phase import Phase
from app.models.work_log import WorkLog
from app.policies.rbac import ACTION_WORK_LOG, Principal, require_action
from app.services.audit_service import AuditAction, AuditService

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


def quantize_hours(value: Decimal) -> Decimal:
    """Round hours half-up to the configured number of decimal places."""
    places = get_settings().work_log_hours_precision
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


class WorkLogService:
    """
    Durable ledger of hours worked per phase/engineer.

    Rows are never updated. Phase actual hours are the sum of this table.
    """

    def __init__(self, audit: Optional[AuditService] = None) -> None:
        self.audit = audit or AuditService()

    # ---------------------------
    # WRITES
    # ---------------------------

    def add(
        self,
        db: Session,
        *,
        project_id: int,
        phase_id: int,
        engineer_id: int,
        hours: Decimal,
        description: Optional[str],
        log_date: date,
        source: WorkLogSource = WorkLogSource.manual,
    ) -> WorkLog:
        """
        Stage a work log row. Caller owns the transaction.
        """
        if hours is None or hours <= 0:
            raise ValidationError("Hours must be greater than zero.", {"hours": str(hours)})

        row = WorkLog(
            project_id=project_id,
            phase_id=phase_id,
            engineer_id=engineer_id,
            hours=hours,
            description=description,
            date=log_date,
            source=source.value,
        )
        db.add(row)
        return row

    def create_manual(
        self,
        db: Session,
        *,
        principal: Principal,
        phase_id: int,
        hours,
        description: Optional[str],
        log_date: Optional[date] = None,
        request_id: Optional[str] = None,
    ) -> WorkLog:
        require_action(principal, ACTION_WORK_LOG)

        try:
            amount = quantize_hours(Decimal(str(hours)))
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError("Hours must be a number.", {"hours": hours})

        phase = db.get(Phase, phase_id)
        if phase is None:
            raise NotFoundError("Phase", phase_id)
        if phase.status not in WORKABLE_PHASE_STATUSES:
            raise InvalidTransition(
                "phase",
                current=phase.status,
                requested="log work",
                reason="phase must be ready, in_progress or submitted",
            )

        row = self.add(
            db,
            project_id=phase.project_id,
            phase_id=phase.id,
            engineer_id=principal.user_id,
            hours=amount,
            description=description,
            log_date=log_date or _now().date(),
            source=WorkLogSource.manual,
        )
        db.flush()
        self.audit.record(
            db,
            entity_type="work_log",
            entity_id=row.id,
            action=AuditAction.WORK_LOG_CREATED,
            actor_id=principal.user_id,
            request_id=request_id,
            details={"phase_id": phase.id, "hours": str(amount), "source": row.source},
        )
        db.commit()
        db.refresh(row)

        logger.info(
            "work log created id=%s phase=%s engineer=%s hours=%s",
            row.id, phase.id, principal.user_id, amount,
        )
        return row

    # ---------------------------
    # READS
    # ---------------------------

    def total_hours_for_phase(self, db: Session, phase_id: int) -> Decimal:
        total = db.execute(
            select(func.coalesce(func.sum(WorkLog.hours), 0)).where(WorkLog.phase_id == phase_id)
        ).scalar_one()
        return quantize_hours(Decimal(str(total)))

    def list_for_phase(self, db: Session, phase_id: int) -> List[WorkLog]:
        return list(
            db.execute(
                select(WorkLog)
                .where(WorkLog.phase_id == phase_id)
                .order_by(WorkLog.date.asc(), WorkLog.id.asc())
            ).scalars().all()
        )

    def exists_for_phase(self, db: Session, phase_id: int) -> bool:
        return (
            db.execute(select(WorkLog.id).where(WorkLog.phase_id == phase_id).limit(1)).first()
            is not None
        )
