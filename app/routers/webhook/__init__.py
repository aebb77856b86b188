from fastapi import APIRouter

from .delivery import delivery_router

webhook_router = APIRouter()

webhook_router.include_router(
    delivery_router, prefix="/notifications", tags=["Reminder Delivery Webhook"]
)
