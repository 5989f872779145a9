# app/models/checklist_item.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy import (
    String,
    DateTime,
    Integer,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class ChecklistItem(Base):
    """
    Single task of a phase checklist.

    Gates, in order: completion -> engineer -> supervisor 1 -> 2 -> 3.
    `engineer_approved_by` mirrors the first entry of `engineer_approvals`.
    """

    __tablename__ = "project_checklist_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    project_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    phase_name: Mapped[str] = mapped_column(String(64), nullable=False)
    section_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    task_title_ar: Mapped[str] = mapped_column(sa.Text, nullable=False)
    task_title_en: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    is_custom: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false())

    is_completed: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false())

    engineer_approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    engineer_approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    supervisor_1_approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    supervisor_1_approved_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    supervisor_1_approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    supervisor_2_approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    supervisor_2_approved_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    supervisor_2_approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    supervisor_3_approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    supervisor_3_approved_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    supervisor_3_approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    client_notes: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    engineer_approvals: Mapped[List["ChecklistEngineerApproval"]] = relationship(
        "ChecklistEngineerApproval",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by=lambda: (ChecklistEngineerApproval.approved_at, ChecklistEngineerApproval.id),
    )

    __table_args__ = (
        Index("ix_checklist_items_project_phase", "project_id", "phase_name"),
    )

    def supervisor_approval(self, level: int) -> Optional[dict]:
        user_id = getattr(self, f"supervisor_{level}_approved_by")
        if user_id is None:
            return None
        return {
            "user_id": user_id,
            "name": getattr(self, f"supervisor_{level}_approved_name"),
            "approved_at": getattr(self, f"supervisor_{level}_approved_at"),
        }


class ChecklistEngineerApproval(Base):
    """
    One engineer's sign-off on a checklist item. Append-only set keyed by engineer.
    """

    __tablename__ = "checklist_item_engineer_approvals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    item_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("project_checklist_items.id", ondelete="CASCADE"),
        nullable=False,
    )
    engineer_id: Mapped[int] = mapped_column(Integer, nullable=False)
    engineer_name: Mapped[str] = mapped_column(String(256), nullable=False)
    approved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    item = relationship("ChecklistItem", back_populates="engineer_approvals")

    __table_args__ = (
        UniqueConstraint("item_id", "engineer_id", name="uq_checklist_engineer_approval"),
    )


class ChecklistTemplate(Base):
    """
    Template task copied into a project when a phase checklist is generated.
    """

    __tablename__ = "checklist_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    phase_name: Mapped[str] = mapped_column(String(64), nullable=False)
    section_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    task_title_ar: Mapped[str] = mapped_column(sa.Text, nullable=False)
    task_title_en: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.true())

    __table_args__ = (
        CheckConstraint("display_order >= 0", name="ck_checklist_templates_order"),
        Index("ix_checklist_templates_phase", "phase_name", "display_order"),
    )
