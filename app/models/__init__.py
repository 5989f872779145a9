# Import every model so Base.metadata is complete for create_all / alembic.
from app.models.project import Project  # noqa: F401
from app.models.phase import Phase, PhaseAssignment  # noqa: F401
from app.models.checklist_item import (  # noqa: F401
    ChecklistItem,
    ChecklistEngineerApproval,
    ChecklistTemplate,
)
from app.models.timer_session import TimerSession  # noqa: F401
from app.models.work_log import WorkLog  # noqa: F401
from app.models.audit_log import AuditLog  # noqa: F401
