"""
Domain exception hierarchy shared by the phase, checklist and timer engines.

Engines raise these; the API layer registers one handler per class in
``app.main.create_app`` and renders ``{"success": false, "error": ...}``.

Usage:
    from app.core.errors import InvalidTransition, NotFoundError

    raise NotFoundError("Phase", phase_id)
    raise InvalidTransition("phase", current="submitted", requested="complete")
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class. ``code`` is the stable machine-readable error kind."""

    code = "DOMAIN_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(DomainError, ValueError):
    """Malformed or missing input (zero hours, unknown level, bad dates)."""

    code = "VALIDATION_ERROR"
    status_code = 400


class InvalidDuration(ValidationError):
    """Timer stop with no positive active work time."""

    code = "INVALID_DURATION"


class AuthorizationError(DomainError, PermissionError):
    """Caller's role (or ownership) does not allow the action."""

    code = "AUTHORIZATION_ERROR"
    status_code = 403


class NotFoundError(DomainError, LookupError):
    """Referenced entity does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: Any = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" {resource_id}"
        msg += " not found"
        super().__init__(msg, {"resource": resource, "id": resource_id})


class InvalidTransition(DomainError):
    """
    State precondition not met for a lifecycle transition.

    ``current`` and ``requested`` are always reported so the client can
    render a precise message.
    """

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(
        self,
        entity: str,
        *,
        current: str,
        requested: str,
        reason: Optional[str] = None,
    ) -> None:
        self.entity = entity
        self.current = current
        self.requested = requested
        msg = f"Cannot {requested} {entity} in status '{current}'"
        if reason:
            msg += f": {reason}"
        super().__init__(
            msg,
            {"entity": entity, "current": current, "requested": requested},
        )


class PreconditionNotMet(DomainError):
    """Checklist approval gate below the requested one is not satisfied."""

    code = "PRECONDITION_NOT_MET"
    status_code = 409


class SessionConflict(DomainError):
    """Engineer already owns a non-terminal timer session."""

    code = "SESSION_CONFLICT"
    status_code = 409

    def __init__(self, engineer_id: int, existing_session_id: Optional[int] = None) -> None:
        super().__init__(
            "An active timer session already exists. Stop or cancel it first.",
            {"engineer_id": engineer_id, "existing_session_id": existing_session_id},
        )


class InfrastructureError(DomainError):
    """Storage unavailable or failing. Callers may retry; engines never do."""

    code = "INFRASTRUCTURE_ERROR"
    status_code = 503
