# app/core/phase_graph.py
from app.models.enums import PhaseStatus

# action -> statuses the phase may be in for the action to apply
ALLOWED_PHASE_TRANSITIONS = {
    "start": {PhaseStatus.ready, PhaseStatus.approved},
    "submit": {PhaseStatus.in_progress},
    "approve": {PhaseStatus.submitted},
    "complete": {PhaseStatus.approved},
}

# action -> resulting status
PHASE_TRANSITION_TARGET = {
    "start": PhaseStatus.in_progress,
    "submit": PhaseStatus.submitted,
    "approve": PhaseStatus.approved,
    "complete": PhaseStatus.completed,
}


def can_transition(action: str, current: str) -> bool:
    allowed = ALLOWED_PHASE_TRANSITIONS.get(action, set())
    return current in {s.value for s in allowed}
