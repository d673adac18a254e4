import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db.session import get_db

router = APIRouter()

logger = logging.getLogger(__name__)


@router.get("/health")
def health(request: Request, db: Session = Depends(get_db)):
    """
    Liveness plus a one-statement database probe. Always 200: a failed probe
    is reported in the body, not as an error status.
    """
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logger.warning("health check database probe failed", exc_info=True)
        database = "unavailable"

    settings = get_settings()
    return {
        "status": "ok",
        "environment": settings.environment,
        "database": database,
        "request_id": getattr(request.state, "request_id", None),
    }
