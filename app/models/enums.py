#app/models/enums.py
from __future__ import annotations
from enum import Enum


class UserRole(str, Enum):
    ENGINEER = "engineer"
    SUPERVISOR = "supervisor"
    ADMINISTRATOR = "administrator"


class PhaseStatus(str, Enum):
    not_started = "not_started"
    ready = "ready"
    in_progress = "in_progress"
    submitted = "submitted"
    approved = "approved"
    completed = "completed"


class EarlyAccessStatus(str, Enum):
    not_accessible = "not_accessible"
    accessible = "accessible"
    in_progress = "in_progress"


class DelayReason(str, Enum):
    none = "none"
    client = "client"
    company = "company"


class TimerStatus(str, Enum):
    # only non-terminal states are persisted; stop/cancel delete the row
    active = "active"
    paused = "paused"


class WorkLogSource(str, Enum):
    manual = "manual"
    timer = "timer"


# Phases engineers may log time against
WORKABLE_PHASE_STATUSES = frozenset(
    {PhaseStatus.ready.value, PhaseStatus.in_progress.value, PhaseStatus.submitted.value}
)

# Predefined phases that carry a checklist
CHECKLIST_PHASE_NAMES = ("VIS", "DD", "License", "Working", "BOQ")
