import os

# Settings are read at import time by app.db.session
os.environ.setdefault("DATABASE_URL", os.getenv("TEST_DATABASE_URL", "sqlite://"))
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# FORCE model registration
import app.models  # noqa
from app.core.security import create_access_token
from app.db.base import Base
from app.db.session import get_db
from app.models.checklist_item import ChecklistItem, ChecklistTemplate
from app.models.enums import PhaseStatus, UserRole
from app.models.phase import Phase, PhaseAssignment
from app.models.project import Project
from app.policies.rbac import Principal

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")

if TEST_DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(TEST_DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False)


@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(engine)
    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def client(db):
    from app.main import app

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(principal: Principal) -> dict:
    token = create_access_token(
        str(principal.user_id),
        {"role": principal.role.value, "name": principal.display_name},
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    return auth_headers


# ─────────────────────────────────────────────────────────────
# Factories
# ─────────────────────────────────────────────────────────────

@pytest.fixture
def make_project(db):
    def _make(name="Test Project"):
        p = Project(name=name)
        db.add(p)
        db.commit()
        return p
    return _make


@pytest.fixture
def make_phase(db):
    def _make(project, order=1, status=PhaseStatus.ready, assign=(), **fields):
        phase = Phase(
            project_id=project.id,
            phase_name=fields.pop("phase_name", f"Phase {order}"),
            phase_order=order,
            status=status.value if isinstance(status, PhaseStatus) else status,
            **fields,
        )
        db.add(phase)
        db.flush()
        for engineer in assign:
            db.add(PhaseAssignment(phase_id=phase.id, engineer_id=engineer.user_id))
        db.commit()
        return phase
    return _make


@pytest.fixture
def make_item(db):
    def _make(project, phase_name="VIS", order=1, **fields):
        item = ChecklistItem(
            project_id=project.id,
            phase_name=phase_name,
            task_title_ar=fields.pop("task_title_ar", f"مهمة {order}"),
            task_title_en=fields.pop("task_title_en", f"Task {order}"),
            display_order=order,
            **fields,
        )
        db.add(item)
        db.commit()
        return item
    return _make


@pytest.fixture
def make_template(db):
    def _make(phase_name, order=1, is_active=True):
        t = ChecklistTemplate(
            phase_name=phase_name,
            section_name="General",
            task_title_ar=f"قالب {order}",
            task_title_en=f"Template {order}",
            display_order=order,
            is_active=is_active,
        )
        db.add(t)
        db.commit()
        return t
    return _make
