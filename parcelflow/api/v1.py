"""Centralized v1 API router: all module routers are included here."""

from fastapi import APIRouter

from parcelflow.modules.notifications.router import router as notifications_router
from parcelflow.modules.tracking.router import (
    disputes_router,
    shipments_router,
    tracking_router,
)

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(shipments_router)
v1_router.include_router(tracking_router)
v1_router.include_router(disputes_router)
v1_router.include_router(notifications_router)
