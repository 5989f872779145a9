# app/models/work_log.py
from __future__ import annotations

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    Date,
    DateTime,
    Integer,
    Numeric,
    ForeignKey,
    CheckConstraint,
    Index,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.enums import WorkLogSource


class WorkLog(Base):
    """
    Hours an engineer spent on a phase on a given date.
    Append-only (never UPDATE); phase actual hours are summed from here.
    """

    __tablename__ = "work_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    project_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    phase_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("project_phases.id", ondelete="RESTRICT"),
        nullable=False,
    )
    engineer_id: Mapped[int] = mapped_column(Integer, nullable=False)

    hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    date: Mapped[date_type] = mapped_column(Date, nullable=False)

    source: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text(f"'{WorkLogSource.manual.value}'")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("hours > 0", name="ck_work_logs_hours_positive"),
        Index("ix_work_logs_phase", "phase_id"),
        Index("ix_work_logs_engineer_date", "engineer_id", "date"),
    )
