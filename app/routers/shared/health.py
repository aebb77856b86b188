from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.config.settings import settings
from app.db.session import get_sync_session
from app.utils.logging import get_logger
from app.utils.responses import ResponseBuilder

logger = get_logger()

health_router = APIRouter()


@health_router.get("")
async def health_check(request: Request, db: Session = Depends(get_sync_session)):
    """
    Basic health check endpoint

    Returns application status, database reachability and the scheduling setup
    """
    data = {
        "status": "healthy",
        "service": settings.NAME,
        "version": settings.VERSION,
        "schedulerMode": settings.SCHEDULER_MODE,
        "timezone": settings.TARGET_TIMEZONE,
        "database": "ok",
    }

    try:
        await run_in_threadpool(db.execute, text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check database probe failed: {e}")
        data["status"] = "degraded"
        data["database"] = "unreachable"
        return ResponseBuilder.warning(
            request=request,
            data=data,
            message="Service is running but the database is unreachable",
            warnings=["Database is unreachable"],
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return ResponseBuilder.success(
        request=request, data=data, message="Service is running"
    )
