# app/services/checklist_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.core.errors import (
    DomainError,
    InvalidTransition,
    NotFoundError,
    PreconditionNotMet,
    ValidationError,
)
from app.models.checklist_item import ChecklistEngineerApproval, ChecklistItem, ChecklistTemplate
from app.models.enums import CHECKLIST_PHASE_NAMES
from app.models.project import Project
from app.policies.rbac import (
    ACTION_CHECKLIST_CLIENT_NOTES,
    ACTION_CHECKLIST_ENGINEER_APPROVE,
    ACTION_CHECKLIST_MANAGE,
    ACTION_CHECKLIST_REVOKE,
    ACTION_CHECKLIST_SUPERVISOR_APPROVE,
    ACTION_CHECKLIST_TOGGLE,
    Principal,
    require_action,
)
from app.services.audit_service import AuditAction, AuditService

logger = logging.getLogger(__name__)

SUPERVISOR_LEVELS = (1, 2, 3)


def _now():
    return datetime.now(timezone.utc)


@dataclass
class ItemResult:
    """Outcome of one item inside a batch operation."""

    item_id: int
    success: bool
    item: Optional[ChecklistItem] = None
    error: Optional[DomainError] = None


def _unique(ids: Iterable[int]) -> List[int]:
    seen = set()
    out: List[int] = []
    for i in ids:
        if i not in seen:
            seen.add(i)
            out.append(i)
    return out


def _validate_level(level: int) -> None:
    if level not in SUPERVISOR_LEVELS:
        raise ValidationError("level must be 1, 2 or 3.", {"level": level})


class ChecklistService:
    """
    Checklist approval engine.

    Gates stack in order: completion -> engineer -> S1 -> S2 -> S3.
    Approvals are monotonic per level; revocations and un-completing do not
    cascade to higher levels.
    """

    def __init__(self, audit: Optional[AuditService] = None) -> None:
        self.audit = audit or AuditService()

    # ---------------------------
    # READS
    # ---------------------------

    def get_item_for_update(self, db: Session, item_id: int) -> ChecklistItem:
        item = (
            db.execute(select(ChecklistItem).where(ChecklistItem.id == item_id).with_for_update())
            .scalars()
            .one_or_none()
        )
        if item is None:
            raise NotFoundError("ChecklistItem", item_id)
        return item

    def list_for_phase(self, db: Session, *, project_id: int, phase_name: str) -> List[ChecklistItem]:
        return list(
            db.execute(
                select(ChecklistItem)
                .where(ChecklistItem.project_id == project_id, ChecklistItem.phase_name == phase_name)
                .order_by(ChecklistItem.display_order.asc(), ChecklistItem.id.asc())
            ).scalars().all()
        )

    def phase_statistics(self, db: Session, *, project_id: int, phase_name: str) -> Dict[str, Any]:
        items = self.list_for_phase(db, project_id=project_id, phase_name=phase_name)
        total = len(items)
        completed = sum(1 for i in items if i.is_completed)

        if total:
            pct = (Decimal(completed) * 100 / Decimal(total)).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_UP
            )
        else:
            pct = Decimal("0.00")

        return {
            "project_id": project_id,
            "phase_name": phase_name,
            "total_tasks": total,
            "completed_tasks": completed,
            "engineer_approved_tasks": sum(1 for i in items if i.engineer_approved_by is not None),
            "supervisor_1_approved_tasks": sum(1 for i in items if i.supervisor_1_approved_by is not None),
            "supervisor_2_approved_tasks": sum(1 for i in items if i.supervisor_2_approved_by is not None),
            "supervisor_3_approved_tasks": sum(1 for i in items if i.supervisor_3_approved_by is not None),
            "completion_percentage": float(pct),
        }

    # ---------------------------
    # ITEM MANAGEMENT
    # ---------------------------

    def add_phase_checklist(
        self,
        db: Session,
        *,
        principal: Principal,
        project_id: int,
        phase_name: str,
        request_id: Optional[str] = None,
    ) -> List[ChecklistItem]:
        """
        Copy the active templates of a phase into the project.
        A phase with no templates gets one placeholder item.
        """
        require_action(principal, ACTION_CHECKLIST_MANAGE)

        if phase_name not in CHECKLIST_PHASE_NAMES:
            raise ValidationError(
                f"Invalid phase name. Must be one of: {', '.join(CHECKLIST_PHASE_NAMES)}",
                {"phase_name": phase_name},
            )
        if db.get(Project, project_id) is None:
            raise NotFoundError("Project", project_id)

        existing = db.execute(
            select(func.count(ChecklistItem.id)).where(
                ChecklistItem.project_id == project_id,
                ChecklistItem.phase_name == phase_name,
            )
        ).scalar_one()
        if existing:
            raise ValidationError(
                f"Phase {phase_name} already exists for this project",
                {"project_id": project_id, "phase_name": phase_name},
            )

        templates = db.execute(
            select(ChecklistTemplate)
            .where(ChecklistTemplate.phase_name == phase_name, ChecklistTemplate.is_active.is_(True))
            .order_by(ChecklistTemplate.display_order.asc(), ChecklistTemplate.id.asc())
        ).scalars().all()

        if templates:
            items = [
                ChecklistItem(
                    project_id=project_id,
                    phase_name=t.phase_name,
                    section_name=t.section_name,
                    task_title_ar=t.task_title_ar,
                    task_title_en=t.task_title_en,
                    display_order=t.display_order,
                    is_custom=False,
                )
                for t in templates
            ]
        else:
            # placeholder, replaced by custom items later
            items = [
                ChecklistItem(
                    project_id=project_id,
                    phase_name=phase_name,
                    section_name=None,
                    task_title_ar=f"مهام {phase_name}",
                    task_title_en=f"{phase_name} Tasks - Add items using \"Add New Item\" button",
                    display_order=1,
                    is_custom=True,
                )
            ]

        db.add_all(items)
        db.flush()
        self.audit.record(
            db,
            entity_type="project",
            entity_id=project_id,
            action=AuditAction.CHECKLIST_GENERATED,
            actor_id=principal.user_id,
            request_id=request_id,
            details={"phase_name": phase_name, "items": len(items), "from_templates": bool(templates)},
        )
        db.commit()

        logger.info(
            "checklist generated project=%s phase=%s items=%s actor=%s",
            project_id, phase_name, len(items), principal.user_id,
        )
        return self.list_for_phase(db, project_id=project_id, phase_name=phase_name)

    def create_item(
        self,
        db: Session,
        *,
        principal: Principal,
        project_id: int,
        phase_name: str,
        task_title_ar: str,
        display_order: int,
        task_title_en: Optional[str] = None,
        section_name: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> ChecklistItem:
        require_action(principal, ACTION_CHECKLIST_MANAGE)

        if not phase_name or not (task_title_ar or "").strip():
            raise ValidationError("phase_name and task_title_ar are required.")
        if display_order is None or display_order < 0:
            raise ValidationError("display_order must be zero or positive.", {"display_order": display_order})
        if db.get(Project, project_id) is None:
            raise NotFoundError("Project", project_id)

        item = ChecklistItem(
            project_id=project_id,
            phase_name=phase_name,
            section_name=section_name,
            task_title_ar=task_title_ar.strip(),
            task_title_en=task_title_en,
            display_order=display_order,
            is_custom=True,
        )
        db.add(item)
        db.flush()
        self._audit(db, item, principal, AuditAction.CHECKLIST_ITEM_CREATED, request_id=request_id)
        db.commit()
        db.refresh(item)
        logger.info("checklist item created item=%s project=%s actor=%s", item.id, project_id, principal.user_id)
        return item

    def delete_item(
        self,
        db: Session,
        *,
        principal: Principal,
        item_id: int,
        request_id: Optional[str] = None,
    ) -> None:
        require_action(principal, ACTION_CHECKLIST_MANAGE)
        item = self.get_item_for_update(db, item_id)

        if not item.is_custom:
            raise InvalidTransition(
                "checklist item",
                current="template",
                requested="delete",
                reason="only custom items can be removed",
            )

        self._audit(db, item, principal, AuditAction.CHECKLIST_ITEM_DELETED, request_id=request_id)
        db.delete(item)
        db.commit()
        logger.info("checklist item deleted item=%s actor=%s", item_id, principal.user_id)

    def update_client_notes(
        self,
        db: Session,
        *,
        principal: Principal,
        item_id: int,
        client_notes: Optional[str],
        request_id: Optional[str] = None,
    ) -> ChecklistItem:
        require_action(principal, ACTION_CHECKLIST_CLIENT_NOTES)
        item = self.get_item_for_update(db, item_id)

        item.client_notes = client_notes
        item.updated_at = _now()
        self._audit(db, item, principal, AuditAction.CLIENT_NOTES_UPDATED, request_id=request_id)
        db.commit()
        db.refresh(item)
        return item

    # ---------------------------
    # COMPLETION
    # ---------------------------

    def toggle_completion(
        self,
        db: Session,
        *,
        principal: Principal,
        item_id: int,
        is_completed: bool,
        request_id: Optional[str] = None,
    ) -> ChecklistItem:
        """
        Set the completion flag. Un-completing leaves existing approvals in place.
        """
        require_action(principal, ACTION_CHECKLIST_TOGGLE)
        item = self.get_item_for_update(db, item_id)

        previous = item.is_completed
        item.is_completed = bool(is_completed)
        item.updated_at = _now()
        self._audit(
            db, item, principal, AuditAction.CHECKLIST_COMPLETION,
            request_id=request_id,
            details={"from": previous, "to": item.is_completed},
        )
        db.commit()
        db.refresh(item)

        logger.info(
            "checklist completion item=%s %s -> %s actor=%s",
            item.id, previous, item.is_completed, principal.user_id,
        )
        return item

    # ---------------------------
    # APPROVALS (BATCH)
    # ---------------------------

    def engineer_approve(
        self,
        db: Session,
        *,
        principal: Principal,
        item_ids: List[int],
        request_id: Optional[str] = None,
    ) -> List[ItemResult]:
        """
        Add the caller's approval to each completed item.
        Re-approving an item the caller already approved is a no-op.
        """
        require_action(principal, ACTION_CHECKLIST_ENGINEER_APPROVE)

        def apply(item: ChecklistItem) -> None:
            if not item.is_completed:
                raise PreconditionNotMet(
                    "Task must be completed before engineer approval.",
                    {"item_id": item.id, "gate": "completion"},
                )
            if any(a.engineer_id == principal.user_id for a in item.engineer_approvals):
                return

            now = _now()
            item.engineer_approvals.append(
                ChecklistEngineerApproval(
                    engineer_id=principal.user_id,
                    engineer_name=principal.display_name,
                    approved_at=now,
                )
            )
            if item.engineer_approved_by is None:
                item.engineer_approved_by = principal.user_id
                item.engineer_approved_at = now
            item.updated_at = now
            self._audit(db, item, principal, AuditAction.ENGINEER_APPROVED, request_id=request_id)

        return self._run_batch(db, item_ids, apply, principal=principal, op="engineer_approve")

    def supervisor_approve(
        self,
        db: Session,
        *,
        principal: Principal,
        item_ids: List[int],
        level: int,
        request_id: Optional[str] = None,
    ) -> List[ItemResult]:
        """
        Set supervisor approval `level` on each item whose previous gate is satisfied.
        An already-set level keeps its original approver.
        """
        require_action(principal, ACTION_CHECKLIST_SUPERVISOR_APPROVE)
        _validate_level(level)

        def apply(item: ChecklistItem) -> None:
            if level == 1:
                satisfied = item.engineer_approved_by is not None
                gate = "engineer"
            else:
                satisfied = getattr(item, f"supervisor_{level - 1}_approved_by") is not None
                gate = f"supervisor_{level - 1}"
            if not satisfied:
                raise PreconditionNotMet(
                    f"Level {level} approval requires {gate} approval first.",
                    {"item_id": item.id, "gate": gate, "level": level},
                )
            if getattr(item, f"supervisor_{level}_approved_by") is not None:
                return

            now = _now()
            setattr(item, f"supervisor_{level}_approved_by", principal.user_id)
            setattr(item, f"supervisor_{level}_approved_name", principal.display_name)
            setattr(item, f"supervisor_{level}_approved_at", now)
            item.updated_at = now
            self._audit(
                db, item, principal, AuditAction.SUPERVISOR_APPROVED,
                request_id=request_id,
                details={"level": level},
            )

        return self._run_batch(db, item_ids, apply, principal=principal, op=f"supervisor_approve_l{level}")

    # ---------------------------
    # REVOCATIONS
    # ---------------------------

    def revoke_engineer_approval(
        self,
        db: Session,
        *,
        principal: Principal,
        item_id: int,
        request_id: Optional[str] = None,
    ) -> ChecklistItem:
        """
        Clear every engineer approval of an item. Supervisor levels stay as they are.
        """
        require_action(principal, ACTION_CHECKLIST_REVOKE)
        item = self.get_item_for_update(db, item_id)

        removed = [a.engineer_id for a in item.engineer_approvals]
        item.engineer_approvals.clear()
        item.engineer_approved_by = None
        item.engineer_approved_at = None
        item.updated_at = _now()

        self._audit(
            db, item, principal, AuditAction.ENGINEER_APPROVAL_REVOKED,
            request_id=request_id,
            details={"removed_engineer_ids": removed},
        )
        db.commit()
        db.refresh(item)
        logger.info("engineer approval revoked item=%s actor=%s", item.id, principal.user_id)
        return item

    def revoke_supervisor_approval(
        self,
        db: Session,
        *,
        principal: Principal,
        item_id: int,
        level: int,
        request_id: Optional[str] = None,
    ) -> ChecklistItem:
        require_action(principal, ACTION_CHECKLIST_REVOKE)
        _validate_level(level)
        item = self.get_item_for_update(db, item_id)

        previous = getattr(item, f"supervisor_{level}_approved_by")
        setattr(item, f"supervisor_{level}_approved_by", None)
        setattr(item, f"supervisor_{level}_approved_name", None)
        setattr(item, f"supervisor_{level}_approved_at", None)
        item.updated_at = _now()

        self._audit(
            db, item, principal, AuditAction.SUPERVISOR_APPROVAL_REVOKED,
            request_id=request_id,
            details={"level": level, "previous_approver": previous},
        )
        db.commit()
        db.refresh(item)
        logger.info("supervisor approval revoked item=%s level=%s actor=%s", item.id, level, principal.user_id)
        return item

    def withdraw_engineer_approval(
        self,
        db: Session,
        *,
        principal: Principal,
        item_id: int,
        request_id: Optional[str] = None,
    ) -> ChecklistItem:
        """
        Remove the caller's own engineer approval.

        With no approvals left the item goes back to not completed; otherwise
        the earliest remaining approver becomes `engineer_approved_by`.
        """
        require_action(principal, ACTION_CHECKLIST_ENGINEER_APPROVE)
        item = self.get_item_for_update(db, item_id)

        mine = next((a for a in item.engineer_approvals if a.engineer_id == principal.user_id), None)
        if mine is None:
            raise NotFoundError("EngineerApproval", item_id)

        item.engineer_approvals.remove(mine)
        if item.engineer_approvals:
            first = item.engineer_approvals[0]
            item.engineer_approved_by = first.engineer_id
            item.engineer_approved_at = first.approved_at
        else:
            item.engineer_approved_by = None
            item.engineer_approved_at = None
            item.is_completed = False
        item.updated_at = _now()

        self._audit(
            db, item, principal, AuditAction.ENGINEER_APPROVAL_WITHDRAWN,
            request_id=request_id,
            details={"remaining": len(item.engineer_approvals)},
        )
        db.commit()
        db.refresh(item)
        logger.info("engineer approval withdrawn item=%s actor=%s", item.id, principal.user_id)
        return item

    # ---------------------------
    # INTERNALS
    # ---------------------------

    def _run_batch(
        self,
        db: Session,
        item_ids: List[int],
        apply: Callable[[ChecklistItem], None],
        *,
        principal: Principal,
        op: str,
    ) -> List[ItemResult]:
        """
        Apply `apply` to each item independently. Items that fail are reported
        and left untouched; the rest are committed together.
        """
        if not item_ids:
            raise ValidationError("Items array is required.")

        results: List[ItemResult] = []
        for item_id in _unique(item_ids):
            try:
                item = self.get_item_for_update(db, item_id)
                apply(item)
            except DomainError as exc:
                logger.warning(
                    "checklist %s rejected item=%s code=%s actor=%s",
                    op, item_id, exc.code, principal.user_id,
                )
                results.append(ItemResult(item_id=item_id, success=False, error=exc))
                continue
            results.append(ItemResult(item_id=item_id, success=True, item=item))

        db.commit()
        for r in results:
            if r.item is not None:
                db.refresh(r.item)

        logger.info(
            "checklist %s applied=%s rejected=%s actor=%s",
            op,
            sum(1 for r in results if r.success),
            sum(1 for r in results if not r.success),
            principal.user_id,
        )
        return results

    def _audit(
        self,
        db: Session,
        item: ChecklistItem,
        principal: Principal,
        action: str,
        *,
        request_id: Optional[str],
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.audit.record(
            db,
            entity_type="checklist_item",
            entity_id=item.id,
            action=action,
            actor_id=principal.user_id,
            request_id=request_id,
            details=details,
        )
