from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db.session import get_db

router = APIRouter()


@router.get("/health")
async def health(request: Request, db: Session = Depends(get_db)):
    # storage failures surface as 503 through the SQLAlchemyError handler
    db.execute(text("SELECT 1"))
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.environment,
        "database": "ok",
        "request_id": getattr(request.state, "request_id", None),
    }
