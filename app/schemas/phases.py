from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import DelayReason, EarlyAccessStatus, PhaseStatus
from app.schemas.common import NoteRequest


class WarningRequest(NoteRequest):
    warning_flag: bool


class DelayRequest(NoteRequest):
    delay_reason: DelayReason
    additional_weeks: Optional[int] = Field(default=None, ge=1, le=520)
    new_end_date: Optional[date] = None


class PhaseDatesRequest(NoteRequest):
    submitted_date: Optional[date] = None
    approved_date: Optional[date] = None
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None


class PhaseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    phase_name: str
    phase_order: int
    is_custom: bool
    status: PhaseStatus

    early_access_granted: bool
    early_access_status: EarlyAccessStatus
    early_access_granted_by: Optional[int] = None
    early_access_granted_at: Optional[datetime] = None
    early_access_note: Optional[str] = None

    warning_flag: bool
    delay_reason: DelayReason

    planned_start_date: Optional[date] = None
    planned_end_date: Optional[date] = None
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    submitted_date: Optional[date] = None
    approved_date: Optional[date] = None

    predicted_hours: Optional[float] = None
    actual_hours: Optional[float] = None


class EarlyAccessOverview(BaseModel):
    project_id: int
    phases: List[PhaseOut]
    total_early_access: int
    active_early_access: int
