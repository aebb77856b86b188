from fastapi import APIRouter

from .notifications import notifications_router

admin_router = APIRouter()

admin_router.include_router(
    notifications_router, prefix="/notifications", tags=["Admin - Reminders"]
)
