from fastapi import APIRouter

from app.routers.admin import admin_router
from app.routers.shared import shared_router

main_router = APIRouter()

# Reminders are managed at {API_PREFIX}/notifications, health at {API_PREFIX}/health
main_router.include_router(admin_router)
main_router.include_router(shared_router)
