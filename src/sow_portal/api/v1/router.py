"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.sow_portal.api.v1 import deals, notifications

router = APIRouter(prefix="/api/v1")

router.include_router(deals.router)
router.include_router(notifications.router)
