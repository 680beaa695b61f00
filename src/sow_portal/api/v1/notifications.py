"""Notification endpoints of the BFF."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from src.sow_portal.api.deps import get_api_client
from src.sow_portal.clients.api import SowApiClient
from src.sow_portal.clients.schemas import Notification
from src.sow_portal.notifications.inbox import navigation_target

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationView(Notification):
    navigation_target: str | None = None


class NotificationListResponse(BaseModel):
    notifications: list[NotificationView]
    unread_count: int
    total: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkReadResponse(BaseModel):
    message: str
    updated: int | None = None


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    limit: int = Query(default=20, ge=1, le=100),
    unread_only: bool = False,
    search: str | None = None,
    type: str | None = None,
    date_filter: str | None = None,
    api: SowApiClient = Depends(get_api_client),
) -> NotificationListResponse:
    """Notifications for the caller, each with the dashboard route it opens."""
    page = await api.get_notifications(
        limit=limit,
        unread_only=unread_only,
        search=search,
        type=type,
        date_filter=date_filter,
    )
    return NotificationListResponse(
        notifications=[
            NotificationView(**n.model_dump(), navigation_target=navigation_target(n))
            for n in page.notifications
        ],
        unread_count=max(0, page.unread_count),
        total=page.total,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(api: SowApiClient = Depends(get_api_client)) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=max(0, await api.get_unread_count()))


@router.put("/mark-all-read", response_model=MarkReadResponse)
async def mark_all_read(api: SowApiClient = Depends(get_api_client)) -> MarkReadResponse:
    data = await api.mark_all_notifications_read()
    return MarkReadResponse(
        message=data.get("message", "All notifications marked as read"),
        updated=data.get("updated"),
    )


@router.put("/{notification_id}/read", response_model=MarkReadResponse)
async def mark_read(
    notification_id: str,
    api: SowApiClient = Depends(get_api_client),
) -> MarkReadResponse:
    data = await api.mark_notification_read(notification_id)
    return MarkReadResponse(message=data.get("message", "Notification marked as read"))
