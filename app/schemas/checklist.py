from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import ErrorBody


class ToggleCompletionRequest(BaseModel):
    is_completed: bool


class EngineerApproveRequest(BaseModel):
    items: List[int] = Field(..., min_length=1)


class SupervisorApproveRequest(BaseModel):
    items: List[int] = Field(..., min_length=1)
    level: int = Field(..., ge=1, le=3)


class RevokeSupervisorRequest(BaseModel):
    level: int = Field(..., ge=1, le=3)


class ClientNotesRequest(BaseModel):
    client_notes: Optional[str] = Field(default=None, max_length=5000)


class AddPhaseChecklistRequest(BaseModel):
    phase_name: str = Field(..., min_length=1)


class ChecklistItemCreateRequest(BaseModel):
    phase_name: str = Field(..., min_length=1)
    task_title_ar: str = Field(..., min_length=1)
    task_title_en: Optional[str] = None
    section_name: Optional[str] = None
    display_order: int = Field(..., ge=0)


class EngineerApprovalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    engineer_id: int
    engineer_name: str
    approved_at: datetime


class SupervisorApprovalOut(BaseModel):
    user_id: int
    name: Optional[str] = None
    approved_at: Optional[datetime] = None


class ChecklistItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    phase_name: str
    section_name: Optional[str] = None
    task_title_ar: str
    task_title_en: Optional[str] = None
    display_order: int
    is_custom: bool
    is_completed: bool

    engineer_approved_by: Optional[int] = None
    engineer_approved_at: Optional[datetime] = None
    engineer_approvals: List[EngineerApprovalOut] = []

    supervisor_1_approved_by: Optional[SupervisorApprovalOut] = None
    supervisor_2_approved_by: Optional[SupervisorApprovalOut] = None
    supervisor_3_approved_by: Optional[SupervisorApprovalOut] = None

    client_notes: Optional[str] = None


class ItemResultOut(BaseModel):
    item_id: int
    success: bool
    item: Optional[ChecklistItemOut] = None
    error: Optional[ErrorBody] = None


class PhaseStatisticsOut(BaseModel):
    project_id: int
    phase_name: str
    total_tasks: int
    completed_tasks: int
    engineer_approved_tasks: int
    supervisor_1_approved_tasks: int
    supervisor_2_approved_tasks: int
    supervisor_3_approved_tasks: int
    completion_percentage: float
