# app/models/timer_session.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Integer,
    BigInteger,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.enums import TimerStatus


class TimerSession(Base):
    """
    Server-tracked running/paused work interval.

    Only non-terminal sessions are stored: stop converts the row into a
    WorkLog and deletes it, cancel deletes it. The unique engineer_id
    constraint is the "one live session per engineer" guarantee.
    """

    __tablename__ = "timer_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    engineer_id: Mapped[int] = mapped_column(Integer, nullable=False)

    phase_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("project_phases.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(String(1000), nullable=False)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text(f"'{TimerStatus.active.value}'")
    )

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    paused_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    elapsed_time_ms: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    total_paused_ms: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    phase = relationship("Phase")

    __table_args__ = (
        UniqueConstraint("engineer_id", name="uq_timer_sessions_one_per_engineer"),
        CheckConstraint("status IN ('active','paused')", name="ck_timer_sessions_status"),
        CheckConstraint("elapsed_time_ms >= 0", name="ck_timer_sessions_elapsed_nonneg"),
        CheckConstraint("total_paused_ms >= 0", name="ck_timer_sessions_paused_nonneg"),
    )
