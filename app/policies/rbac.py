#app/policies/rbac.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Set

from app.core.errors import AuthorizationError
from app.models.enums import UserRole


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: UserRole
    display_name: str

    @property
    def is_engineer(self) -> bool:
        return self.role == UserRole.ENGINEER


# --- Phase actions ---
ACTION_PHASE_START = "PHASE_START"
ACTION_PHASE_SUBMIT = "PHASE_SUBMIT"
ACTION_PHASE_APPROVE = "PHASE_APPROVE"
ACTION_PHASE_COMPLETE = "PHASE_COMPLETE"
ACTION_PHASE_EARLY_ACCESS = "PHASE_EARLY_ACCESS"
ACTION_PHASE_WARNING = "PHASE_WARNING"
ACTION_PHASE_DELAY = "PHASE_DELAY"
ACTION_PHASE_EDIT_DATES = "PHASE_EDIT_DATES"
ACTION_PHASE_OVERVIEW = "PHASE_OVERVIEW"

# --- Checklist actions ---
ACTION_CHECKLIST_TOGGLE = "CHECKLIST_TOGGLE"
ACTION_CHECKLIST_ENGINEER_APPROVE = "CHECKLIST_ENGINEER_APPROVE"
ACTION_CHECKLIST_SUPERVISOR_APPROVE = "CHECKLIST_SUPERVISOR_APPROVE"
ACTION_CHECKLIST_REVOKE = "CHECKLIST_REVOKE"
ACTION_CHECKLIST_CLIENT_NOTES = "CHECKLIST_CLIENT_NOTES"
ACTION_CHECKLIST_MANAGE = "CHECKLIST_MANAGE"

# --- Time tracking ---
ACTION_TIMER = "TIMER"
ACTION_WORK_LOG = "WORK_LOG"


_SUPERVISOR_ACTIONS: Set[str] = {
    ACTION_PHASE_START,
    ACTION_PHASE_SUBMIT,
    ACTION_PHASE_APPROVE,
    ACTION_PHASE_COMPLETE,
    ACTION_PHASE_EARLY_ACCESS,
    ACTION_PHASE_WARNING,
    ACTION_PHASE_DELAY,
    ACTION_PHASE_EDIT_DATES,
    ACTION_PHASE_OVERVIEW,
    ACTION_CHECKLIST_TOGGLE,
    ACTION_CHECKLIST_SUPERVISOR_APPROVE,
    ACTION_CHECKLIST_REVOKE,
    ACTION_CHECKLIST_CLIENT_NOTES,
    ACTION_CHECKLIST_MANAGE,
    ACTION_TIMER,
    ACTION_WORK_LOG,
}

_ENGINEER_ACTIONS: Set[str] = {
    ACTION_PHASE_START,
    ACTION_PHASE_SUBMIT,
    ACTION_CHECKLIST_TOGGLE,
    ACTION_CHECKLIST_ENGINEER_APPROVE,
    ACTION_TIMER,
    ACTION_WORK_LOG,
}


def allowed_actions(role: UserRole) -> Set[str]:
    """
    Pure RBAC: which actions a role may attempt.
    """

    if role == UserRole.SUPERVISOR:
        return _SUPERVISOR_ACTIONS

    if role == UserRole.ENGINEER:
        return _ENGINEER_ACTIONS

    # administrators are read-only
    return set()


def require_action(principal: Principal, action: str) -> None:
    if action not in allowed_actions(principal.role):
        raise AuthorizationError(
            f"Role {principal.role.value} not permitted for action {action}.",
            {"role": principal.role.value, "action": action},
        )
