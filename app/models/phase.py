# app/models/phase.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy import (
    String,
    Date,
    DateTime,
    Integer,
    Numeric,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.enums import PhaseStatus, EarlyAccessStatus, DelayReason


class Phase(Base):
    """
    Ordered stage of a project's execution.

    `status` is owned by the phase engine; `early_access_status` only means
    something while `early_access_granted` is true.
    """

    __tablename__ = "project_phases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    project_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )

    phase_name: Mapped[str] = mapped_column(String(128), nullable=False)
    phase_order: Mapped[int] = mapped_column(Integer, nullable=False)
    is_custom: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false())

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        server_default=text(f"'{PhaseStatus.not_started.value}'"),
    )

    # early access
    early_access_granted: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, server_default=sa.false()
    )
    early_access_status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        server_default=text(f"'{EarlyAccessStatus.not_accessible.value}'"),
    )
    early_access_granted_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    early_access_granted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    early_access_note: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)

    # annotations
    warning_flag: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false())
    delay_reason: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        server_default=text(f"'{DelayReason.none.value}'"),
    )

    # schedule
    planned_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    planned_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    actual_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    actual_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    submitted_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    approved_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    predicted_hours: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    project = relationship("Project", back_populates="phases")

    assignments: Mapped[List["PhaseAssignment"]] = relationship(
        "PhaseAssignment",
        back_populates="phase",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("project_id", "phase_order", name="uq_phases_project_order"),
        CheckConstraint("phase_order > 0", name="ck_phases_order_positive"),
        CheckConstraint(
            "status IN ('not_started','ready','in_progress','submitted','approved','completed')",
            name="ck_phases_status_valid",
        ),
        CheckConstraint(
            "early_access_status IN ('not_accessible','accessible','in_progress')",
            name="ck_phases_early_access_status_valid",
        ),
        CheckConstraint(
            "delay_reason IN ('none','client','company')",
            name="ck_phases_delay_reason_valid",
        ),
        Index("ix_phases_project_status", "project_id", "status"),
    )


class PhaseAssignment(Base):
    """
    Engineer assigned to a phase. Engineers may only start/submit phases
    they are assigned to.
    """

    __tablename__ = "phase_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    phase_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("project_phases.id", ondelete="CASCADE"),
        nullable=False,
    )
    engineer_id: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    phase = relationship("Phase", back_populates="assignments")

    __table_args__ = (
        UniqueConstraint("phase_id", "engineer_id", name="uq_phase_assignment"),
        Index("ix_phase_assignments_engineer", "engineer_id"),
    )
