from datetime import date, timedelta
from decimal import Decimal

import pytest

from app.core.errors import AuthorizationError, InvalidTransition, NotFoundError, ValidationError
from app.models.audit_log import AuditLog
from app.models.enums import EarlyAccessStatus, PhaseStatus, UserRole
from app.models.phase import Phase
from app.policies.rbac import Principal
from app.services.phase_service import PhaseService
from app.services.work_log_service import WorkLogService

ENGINEER = Principal(user_id=10, role=UserRole.ENGINEER, display_name="Eng. Sara")
OTHER_ENGINEER = Principal(user_id=11, role=UserRole.ENGINEER, display_name="Eng. Omar")
SUPERVISOR = Principal(user_id=20, role=UserRole.SUPERVISOR, display_name="Sup. Huda")
ADMINISTRATOR = Principal(user_id=30, role=UserRole.ADMINISTRATOR, display_name="Admin")


def test_full_lifecycle_moves_along_edges(db, make_project, make_phase):
    svc = PhaseService()
    project = make_project()
    phase = make_phase(project, status=PhaseStatus.ready, assign=[ENGINEER])

    p = svc.start(db, principal=ENGINEER, phase_id=phase.id)
    assert p.status == PhaseStatus.in_progress.value
    assert p.actual_start_date is not None

    p = svc.submit(db, principal=ENGINEER, phase_id=phase.id)
    assert p.status == PhaseStatus.submitted.value
    assert p.submitted_date is not None

    p = svc.approve(db, principal=SUPERVISOR, phase_id=phase.id)
    assert p.status == PhaseStatus.approved.value
    assert p.approved_date is not None

    p = svc.complete(db, principal=SUPERVISOR, phase_id=phase.id)
    assert p.status == PhaseStatus.completed.value
    assert p.actual_end_date is not None


@pytest.mark.parametrize(
    "status,action",
    [
        (PhaseStatus.not_started, "start"),
        (PhaseStatus.in_progress, "start"),
        (PhaseStatus.ready, "submit"),
        (PhaseStatus.in_progress, "approve"),
        (PhaseStatus.submitted, "complete"),
        (PhaseStatus.completed, "start"),
        (PhaseStatus.completed, "complete"),
    ],
)
def test_illegal_transition_is_rejected_without_write(db, make_project, make_phase, status, action):
    svc = PhaseService()
    project = make_project()
    phase = make_phase(project, status=status)

    with pytest.raises(InvalidTransition) as exc:
        getattr(svc, action)(db, principal=SUPERVISOR, phase_id=phase.id)

    assert exc.value.current == status.value
    assert exc.value.requested == action
    db.expire_all()
    assert db.get(Phase, phase.id).status == status.value
    assert db.query(AuditLog).count() == 0


def test_approved_phase_can_be_reopened(db, make_project, make_phase):
    svc = PhaseService()
    phase = make_phase(make_project(), status=PhaseStatus.approved)

    p = svc.start(db, principal=SUPERVISOR, phase_id=phase.id)
    assert p.status == PhaseStatus.in_progress.value


def test_scenario_early_access_start(db, make_project, make_phase):
    svc = PhaseService()
    phase = make_phase(make_project(), status=PhaseStatus.not_started, assign=[ENGINEER])

    p = svc.grant_early_access(db, principal=SUPERVISOR, phase_id=phase.id, note="client rush")
    assert p.status == PhaseStatus.not_started.value
    assert p.early_access_granted is True
    assert p.early_access_status == EarlyAccessStatus.accessible.value
    assert p.early_access_granted_by == SUPERVISOR.user_id

    p = svc.start(db, principal=ENGINEER, phase_id=phase.id)
    assert p.status == PhaseStatus.in_progress.value
    assert p.early_access_status == EarlyAccessStatus.in_progress.value


def test_grant_early_access_requires_not_started(db, make_project, make_phase):
    svc = PhaseService()
    phase = make_phase(make_project(), status=PhaseStatus.ready)

    with pytest.raises(InvalidTransition):
        svc.grant_early_access(db, principal=SUPERVISOR, phase_id=phase.id)


def test_grant_early_access_twice_is_rejected(db, make_project, make_phase):
    svc = PhaseService()
    phase = make_phase(make_project(), status=PhaseStatus.not_started)
    svc.grant_early_access(db, principal=SUPERVISOR, phase_id=phase.id)

    with pytest.raises(InvalidTransition):
        svc.grant_early_access(db, principal=SUPERVISOR, phase_id=phase.id)


def test_revoke_early_access_keeps_status(db, make_project, make_phase):
    svc = PhaseService()
    phase = make_phase(make_project(), status=PhaseStatus.not_started)
    svc.grant_early_access(db, principal=SUPERVISOR, phase_id=phase.id)

    p = svc.revoke_early_access(db, principal=SUPERVISOR, phase_id=phase.id)
    assert p.early_access_granted is False
    assert p.early_access_status == EarlyAccessStatus.not_accessible.value
    assert p.early_access_granted_by is None
    assert p.status == PhaseStatus.not_started.value

    with pytest.raises(InvalidTransition):
        svc.start(db, principal=SUPERVISOR, phase_id=phase.id)


def test_revoke_early_access_when_not_granted(db, make_project, make_phase):
    svc = PhaseService()
    phase = make_phase(make_project(), status=PhaseStatus.not_started)

    with pytest.raises(InvalidTransition):
        svc.revoke_early_access(db, principal=SUPERVISOR, phase_id=phase.id)


def test_revoke_early_access_blocked_once_work_started(db, make_project, make_phase):
    svc = PhaseService()
    phase = make_phase(make_project(), status=PhaseStatus.not_started)
    svc.grant_early_access(db, principal=SUPERVISOR, phase_id=phase.id)
    svc.start(db, principal=SUPERVISOR, phase_id=phase.id)

    with pytest.raises(InvalidTransition):
        svc.revoke_early_access(db, principal=SUPERVISOR, phase_id=phase.id)


def test_revoke_early_access_blocked_by_work_logs(db, make_project, make_phase):
    svc = PhaseService()
    project = make_project()
    phase = make_phase(project, status=PhaseStatus.not_started)
    svc.grant_early_access(db, principal=SUPERVISOR, phase_id=phase.id)

    WorkLogService().add(
        db,
        project_id=project.id,
        phase_id=phase.id,
        engineer_id=ENGINEER.user_id,
        hours=Decimal("1.50"),
        description="prep",
        log_date=date.today(),
    )
    db.commit()

    with pytest.raises(InvalidTransition):
        svc.revoke_early_access(db, principal=SUPERVISOR, phase_id=phase.id)


def test_engineer_cannot_approve(db, make_project, make_phase):
    svc = PhaseService()
    phase = make_phase(make_project(), status=PhaseStatus.submitted, assign=[ENGINEER])

    with pytest.raises(AuthorizationError):
        svc.approve(db, principal=ENGINEER, phase_id=phase.id)


def test_engineer_must_be_assigned_to_start(db, make_project, make_phase):
    svc = PhaseService()
    phase = make_phase(make_project(), status=PhaseStatus.ready, assign=[ENGINEER])

    with pytest.raises(AuthorizationError):
        svc.start(db, principal=OTHER_ENGINEER, phase_id=phase.id)


def test_administrator_is_read_only(db, make_project, make_phase):
    svc = PhaseService()
    phase = make_phase(make_project(), status=PhaseStatus.ready)

    with pytest.raises(AuthorizationError):
        svc.start(db, principal=ADMINISTRATOR, phase_id=phase.id)
    with pytest.raises(AuthorizationError):
        svc.mark_warning(db, principal=ADMINISTRATOR, phase_id=phase.id, flag=True)


def test_missing_phase_is_not_found(db):
    with pytest.raises(NotFoundError):
        PhaseService().start(db, principal=SUPERVISOR, phase_id=999)


def test_approve_unlocks_next_phase(db, make_project, make_phase):
    svc = PhaseService()
    project = make_project()
    first = make_phase(project, order=1, status=PhaseStatus.submitted)
    second = make_phase(project, order=2, status=PhaseStatus.not_started)
    third = make_phase(project, order=3, status=PhaseStatus.not_started)

    svc.approve(db, principal=SUPERVISOR, phase_id=first.id)

    db.expire_all()
    assert db.get(Phase, second.id).status == PhaseStatus.ready.value
    assert db.get(Phase, third.id).status == PhaseStatus.not_started.value


def test_approve_leaves_started_next_phase_alone(db, make_project, make_phase):
    svc = PhaseService()
    project = make_project()
    first = make_phase(project, order=1, status=PhaseStatus.submitted)
    second = make_phase(project, order=2, status=PhaseStatus.in_progress)

    svc.approve(db, principal=SUPERVISOR, phase_id=first.id)

    db.expire_all()
    assert db.get(Phase, second.id).status == PhaseStatus.in_progress.value


def test_mark_warning_is_independent_of_status(db, make_project, make_phase):
    svc = PhaseService()
    phase = make_phase(make_project(), status=PhaseStatus.completed)

    p = svc.mark_warning(db, principal=SUPERVISOR, phase_id=phase.id, flag=True)
    assert p.warning_flag is True
    assert p.status == PhaseStatus.completed.value

    p = svc.mark_warning(db, principal=SUPERVISOR, phase_id=phase.id, flag=False)
    assert p.warning_flag is False


def test_delay_with_additional_weeks(db, make_project, make_phase):
    svc = PhaseService()
    end = date(2026, 3, 1)
    phase = make_phase(
        make_project(),
        status=PhaseStatus.in_progress,
        planned_start_date=date(2026, 1, 1),
        planned_end_date=end,
    )

    p = svc.handle_delay(db, principal=SUPERVISOR, phase_id=phase.id, delay_reason="company", additional_weeks=2)
    assert p.delay_reason == "company"
    assert p.planned_end_date == end + timedelta(weeks=2)
    assert p.status == PhaseStatus.in_progress.value


def test_delay_new_end_date_wins(db, make_project, make_phase):
    svc = PhaseService()
    phase = make_phase(
        make_project(),
        planned_start_date=date(2026, 1, 1),
        planned_end_date=date(2026, 3, 1),
    )

    p = svc.handle_delay(
        db, principal=SUPERVISOR, phase_id=phase.id,
        delay_reason="company", additional_weeks=10, new_end_date=date(2026, 3, 15),
    )
    assert p.planned_end_date == date(2026, 3, 15)


def test_client_delay_shifts_later_phases(db, make_project, make_phase):
    svc = PhaseService()
    project = make_project()
    first = make_phase(project, order=1, planned_start_date=date(2026, 1, 1), planned_end_date=date(2026, 2, 1))
    second = make_phase(
        project, order=2, status=PhaseStatus.not_started,
        planned_start_date=date(2026, 2, 1), planned_end_date=date(2026, 3, 1),
    )

    svc.handle_delay(db, principal=SUPERVISOR, phase_id=first.id, delay_reason="client", additional_weeks=1)

    db.expire_all()
    shifted = db.get(Phase, second.id)
    assert shifted.planned_start_date == date(2026, 2, 8)
    assert shifted.planned_end_date == date(2026, 3, 8)


def test_company_delay_does_not_shift_later_phases(db, make_project, make_phase):
    svc = PhaseService()
    project = make_project()
    first = make_phase(project, order=1, planned_start_date=date(2026, 1, 1), planned_end_date=date(2026, 2, 1))
    second = make_phase(
        project, order=2, status=PhaseStatus.not_started,
        planned_start_date=date(2026, 2, 1), planned_end_date=date(2026, 3, 1),
    )

    svc.handle_delay(db, principal=SUPERVISOR, phase_id=first.id, delay_reason="company", additional_weeks=1)

    db.expire_all()
    assert db.get(Phase, second.id).planned_start_date == date(2026, 2, 1)


def test_delay_rejects_unknown_reason(db, make_project, make_phase):
    phase = make_phase(make_project())
    with pytest.raises(ValidationError):
        PhaseService().handle_delay(db, principal=SUPERVISOR, phase_id=phase.id, delay_reason="none")


def test_delay_weeks_need_planned_end(db, make_project, make_phase):
    phase = make_phase(make_project())
    with pytest.raises(ValidationError):
        PhaseService().handle_delay(
            db, principal=SUPERVISOR, phase_id=phase.id, delay_reason="client", additional_weeks=1,
        )


def test_edit_dates_validates_order(db, make_project, make_phase):
    svc = PhaseService()
    phase = make_phase(make_project(), status=PhaseStatus.approved)

    with pytest.raises(ValidationError):
        svc.edit_dates(
            db, principal=SUPERVISOR, phase_id=phase.id,
            actual_start_date=date(2026, 2, 1), actual_end_date=date(2026, 1, 1),
        )
    with pytest.raises(ValidationError):
        svc.edit_dates(
            db, principal=SUPERVISOR, phase_id=phase.id,
            submitted_date=date(2026, 2, 1), approved_date=date(2026, 1, 31),
        )

    p = svc.edit_dates(
        db, principal=SUPERVISOR, phase_id=phase.id,
        submitted_date=date(2026, 1, 10), approved_date=date(2026, 1, 12),
    )
    assert p.submitted_date == date(2026, 1, 10)
    assert p.approved_date == date(2026, 1, 12)
    assert p.status == PhaseStatus.approved.value


def test_edit_dates_is_supervisor_only(db, make_project, make_phase):
    phase = make_phase(make_project(), assign=[ENGINEER])
    with pytest.raises(AuthorizationError):
        PhaseService().edit_dates(db, principal=ENGINEER, phase_id=phase.id, submitted_date=date(2026, 1, 1))


def test_get_phase_sums_work_log_hours(db, make_project, make_phase):
    project = make_project()
    phase = make_phase(project, status=PhaseStatus.in_progress)
    logs = WorkLogService()
    for h in ("1.25", "2.50"):
        logs.add(
            db, project_id=project.id, phase_id=phase.id, engineer_id=ENGINEER.user_id,
            hours=Decimal(h), description=None, log_date=date.today(),
        )
    db.commit()

    _, hours = PhaseService().get_phase(db, phase_id=phase.id)
    assert hours == Decimal("3.75")


def test_early_access_overview(db, make_project, make_phase):
    svc = PhaseService()
    project = make_project()
    a = make_phase(project, order=1, status=PhaseStatus.not_started)
    b = make_phase(project, order=2, status=PhaseStatus.not_started)
    make_phase(project, order=3, status=PhaseStatus.not_started)

    svc.grant_early_access(db, principal=SUPERVISOR, phase_id=a.id)
    svc.grant_early_access(db, principal=SUPERVISOR, phase_id=b.id)
    svc.start(db, principal=SUPERVISOR, phase_id=b.id)

    view = svc.early_access_overview(db, principal=SUPERVISOR, project_id=project.id)
    assert view["total_early_access"] == 2
    assert view["active_early_access"] == 2
    assert [p.id for p in view["phases"]] == [a.id, b.id]


def test_transitions_are_audited(db, make_project, make_phase):
    svc = PhaseService()
    phase = make_phase(make_project(), status=PhaseStatus.ready)

    svc.start(db, principal=SUPERVISOR, phase_id=phase.id, note="kickoff", request_id="req-1")

    row = db.query(AuditLog).filter(AuditLog.entity_type == "phase").one()
    assert row.action == "PHASE_START"
    assert row.actor_id == SUPERVISOR.user_id
    assert row.note == "kickoff"
    assert row.request_id == "req-1"
    assert row.details_json["from"] == "ready"
    assert row.details_json["to"] == "in_progress"
