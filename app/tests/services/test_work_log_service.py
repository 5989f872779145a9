from datetime import date
from decimal import Decimal

import pydantic
import pytest

from app.core.config import Settings
from app.core.errors import AuthorizationError, InvalidTransition, NotFoundError, ValidationError
from app.models.audit_log import AuditLog
from app.models.enums import PhaseStatus, UserRole
from app.policies.rbac import Principal
from app.services.work_log_service import WorkLogService

ENGINEER = Principal(user_id=10, role=UserRole.ENGINEER, display_name="Eng. Sara")
ADMINISTRATOR = Principal(user_id=30, role=UserRole.ADMINISTRATOR, display_name="Admin")


def test_manual_log_is_rounded_and_audited(db, make_project, make_phase):
    phase = make_phase(make_project(), status=PhaseStatus.submitted)

    row = WorkLogService().create_manual(
        db, principal=ENGINEER, phase_id=phase.id, hours="2.345",
        description="Elevations", log_date=date(2026, 4, 2),
    )

    assert row.hours == Decimal("2.35")
    assert row.source == "manual"
    assert row.date == date(2026, 4, 2)
    assert db.query(AuditLog).filter_by(action="WORK_LOG_CREATED").count() == 1


@pytest.mark.parametrize("hours", ["0", "-1", "0.001", "abc"])
def test_manual_log_rejects_non_positive_hours(db, make_project, make_phase, hours):
    phase = make_phase(make_project())
    with pytest.raises(ValidationError):
        WorkLogService().create_manual(db, principal=ENGINEER, phase_id=phase.id, hours=hours, description=None)


def test_manual_log_requires_workable_phase(db, make_project, make_phase):
    phase = make_phase(make_project(), status=PhaseStatus.completed)
    with pytest.raises(InvalidTransition):
        WorkLogService().create_manual(db, principal=ENGINEER, phase_id=phase.id, hours=1, description=None)


def test_manual_log_checks_phase_and_role(db, make_project, make_phase):
    svc = WorkLogService()
    with pytest.raises(NotFoundError):
        svc.create_manual(db, principal=ENGINEER, phase_id=404, hours=1, description=None)

    phase = make_phase(make_project())
    with pytest.raises(AuthorizationError):
        svc.create_manual(db, principal=ADMINISTRATOR, phase_id=phase.id, hours=1, description=None)


def test_totals_and_listing(db, make_project, make_phase):
    svc = WorkLogService()
    project = make_project()
    phase = make_phase(project)
    other = make_phase(project, order=2)

    assert svc.exists_for_phase(db, phase.id) is False
    assert svc.total_hours_for_phase(db, phase.id) == Decimal("0.00")

    svc.create_manual(db, principal=ENGINEER, phase_id=phase.id, hours="1.5", description="a", log_date=date(2026, 1, 2))
    svc.create_manual(db, principal=ENGINEER, phase_id=phase.id, hours="0.75", description="b", log_date=date(2026, 1, 1))
    svc.create_manual(db, principal=ENGINEER, phase_id=other.id, hours="8", description="c")

    assert svc.exists_for_phase(db, phase.id) is True
    assert svc.total_hours_for_phase(db, phase.id) == Decimal("2.25")
    assert [r.description for r in svc.list_for_phase(db, phase.id)] == ["b", "a"]


@pytest.mark.parametrize("precision", [3, -1])
def test_hours_precision_cannot_exceed_stored_scale(monkeypatch, precision):
    monkeypatch.setenv("WORK_LOG_HOURS_PRECISION", str(precision))
    with pytest.raises(pydantic.ValidationError):
        Settings()


def test_hours_precision_within_stored_scale_is_accepted(monkeypatch):
    monkeypatch.setenv("WORK_LOG_HOURS_PRECISION", "1")
    assert Settings().work_log_hours_precision == 1
