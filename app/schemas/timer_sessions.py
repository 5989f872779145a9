from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models.enums import TimerStatus
from app.schemas.work_logs import WorkLogOut


class TimerStartRequest(BaseModel):
    phase_id: int
    description: str


class TimerPauseRequest(BaseModel):
    elapsed_time_ms: Optional[int] = Field(default=None, ge=0)


class TimerResumeRequest(BaseModel):
    total_paused_ms: Optional[int] = Field(default=None, ge=0)


class TimerStopRequest(BaseModel):
    elapsed_time_ms: Optional[int] = Field(default=None, ge=0)
    total_paused_ms: Optional[int] = Field(default=None, ge=0)


class TimerSnapshot(BaseModel):
    """Server recovery view: derived from start_time and persisted pause totals."""
    elapsed_time_ms: int
    total_paused_ms: int
    active_work_ms: int


class TimerSessionOut(BaseModel):
    id: int
    engineer_id: int
    phase_id: int
    project_id: int
    description: str
    status: TimerStatus
    start_time: datetime
    paused_at: Optional[datetime] = None
    elapsed_time_ms: int
    total_paused_ms: int
    current: TimerSnapshot


class TimerStopOut(BaseModel):
    work_log: WorkLogOut
    active_work_ms: int
    active_hours: float
    paused_hours: float
