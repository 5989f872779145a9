from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.checklist_item import ChecklistTemplate
from app.models.enums import CHECKLIST_PHASE_NAMES, PhaseStatus
from app.models.phase import Phase
from app.models.project import Project

# phase_name -> [(section, title_ar, title_en)]; BOQ has no templates
TEMPLATES = {
    "VIS": [
        ("Site", "زيارة الموقع", "Site visit"),
        ("Site", "تصوير الموقع", "Site photography"),
        ("Concept", "الفكرة المبدئية", "Initial concept"),
    ],
    "DD": [
        ("Architecture", "المخططات المعمارية", "Architectural drawings"),
        ("Structure", "المخططات الإنشائية", "Structural drawings"),
    ],
    "License": [
        ("Authority", "تقديم طلب الرخصة", "Submit license application"),
        ("Authority", "استلام الرخصة", "Receive license"),
    ],
    "Working": [
        ("Architecture", "مخططات تنفيذية معمارية", "Architectural working drawings"),
        ("MEP", "مخططات الكهرباء والميكانيك", "MEP working drawings"),
    ],
}


def seed_templates(db: Session) -> None:
    if db.execute(select(ChecklistTemplate.id).limit(1)).first() is not None:
        return
    for phase_name, rows in TEMPLATES.items():
        for order, (section, title_ar, title_en) in enumerate(rows, start=1):
            db.add(
                ChecklistTemplate(
                    phase_name=phase_name,
                    section_name=section,
                    task_title_ar=title_ar,
                    task_title_en=title_en,
                    display_order=order,
                )
            )
    db.commit()


def seed_project(db: Session, name: str = "Seed Villa") -> Project:
    project = Project(name=name)
    db.add(project)
    db.flush()

    start = date.today()
    for order, phase_name in enumerate(CHECKLIST_PHASE_NAMES, start=1):
        db.add(
            Phase(
                project_id=project.id,
                phase_name=phase_name,
                phase_order=order,
                # first phase is workable immediately, the rest unlock on approval
                status=PhaseStatus.ready.value if order == 1 else PhaseStatus.not_started.value,
                planned_start_date=start + timedelta(weeks=4 * (order - 1)),
                planned_end_date=start + timedelta(weeks=4 * order),
            )
        )
    db.commit()
    return project


def seed():
    db: Session = SessionLocal()
    try:
        seed_templates(db)
        seed_project(db)
    finally:
        db.close()


if __name__ == "__main__":
    seed()
