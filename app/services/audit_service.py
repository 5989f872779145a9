from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog


class AuditAction:
    # Phase lifecycle
    PHASE_START = "PHASE_START"
    PHASE_SUBMIT = "PHASE_SUBMIT"
    PHASE_APPROVE = "PHASE_APPROVE"
    PHASE_COMPLETE = "PHASE_COMPLETE"
    PHASE_UNLOCK = "PHASE_UNLOCK"
    EARLY_ACCESS_GRANTED = "EARLY_ACCESS_GRANTED"
    EARLY_ACCESS_REVOKED = "EARLY_ACCESS_REVOKED"
    PHASE_WARNING = "PHASE_WARNING"
    PHASE_DELAY = "PHASE_DELAY"
    PHASE_DATES_EDITED = "PHASE_DATES_EDITED"

    # Checklist
    CHECKLIST_GENERATED = "CHECKLIST_GENERATED"
    CHECKLIST_ITEM_CREATED = "CHECKLIST_ITEM_CREATED"
    CHECKLIST_ITEM_DELETED = "CHECKLIST_ITEM_DELETED"
    CHECKLIST_COMPLETION = "CHECKLIST_COMPLETION"
    ENGINEER_APPROVED = "ENGINEER_APPROVED"
    ENGINEER_APPROVAL_WITHDRAWN = "ENGINEER_APPROVAL_WITHDRAWN"
    ENGINEER_APPROVAL_REVOKED = "ENGINEER_APPROVAL_REVOKED"
    SUPERVISOR_APPROVED = "SUPERVISOR_APPROVED"
    SUPERVISOR_APPROVAL_REVOKED = "SUPERVISOR_APPROVAL_REVOKED"
    CLIENT_NOTES_UPDATED = "CLIENT_NOTES_UPDATED"

    # Timer / work logs
    TIMER_STARTED = "TIMER_STARTED"
    TIMER_PAUSED = "TIMER_PAUSED"
    TIMER_RESUMED = "TIMER_RESUMED"
    TIMER_STOPPED = "TIMER_STOPPED"
    TIMER_CANCELLED = "TIMER_CANCELLED"
    WORK_LOG_CREATED = "WORK_LOG_CREATED"


class AuditService:
    def record(
        self,
        db: Session,
        *,
        entity_type: str,
        entity_id: int,
        action: str,
        actor_id: Optional[int],
        note: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        """
        Stage an append-only audit row. The caller commits it together with
        the state change it describes.
        """
        row = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            note=note,
            request_id=request_id,
            details_json=details or {},
        )
        db.add(row)
        return row
