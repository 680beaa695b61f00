"""Health check endpoint.

Liveness only. The BFF holds no connections of its own; backend
reachability shows up per request as 502 responses.
"""

from __future__ import annotations

from fastapi import APIRouter

from src.sow_portal.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}
