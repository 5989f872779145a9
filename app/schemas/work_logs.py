from __future__ import annotations

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import WorkLogSource


class WorkLogCreateRequest(BaseModel):
    phase_id: int
    hours: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=1000)
    date: Optional[date_type] = None


class WorkLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    phase_id: int
    engineer_id: int
    hours: float
    description: Optional[str] = None
    date: date_type
    source: WorkLogSource
    created_at: Optional[datetime] = None
