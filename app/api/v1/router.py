from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.projects import router as projects_router
from app.api.v1.phases import router as phases_router
from app.api.v1.checklist import router as checklist_router
from app.api.v1.timer_sessions import router as timer_sessions_router
from app.api.v1.work_logs import router as work_logs_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])

# ------------------------------------------------------------------
# PHASES
# ------------------------------------------------------------------
v1_router.include_router(projects_router, tags=["projects"])
v1_router.include_router(phases_router, tags=["phases"])

# ------------------------------------------------------------------
# CHECKLISTS
# ------------------------------------------------------------------
v1_router.include_router(checklist_router, tags=["checklist"])

# ------------------------------------------------------------------
# TIME TRACKING
# ------------------------------------------------------------------
v1_router.include_router(timer_sessions_router, tags=["timer-sessions"])
v1_router.include_router(work_logs_router, tags=["work-logs"])
