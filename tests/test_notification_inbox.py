"""Tests for the notification inbox and its optimistic read state."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.sow_portal.clients.errors import ApiError
from src.sow_portal.clients.schemas import Notification, NotificationsPage
from src.sow_portal.notifications.inbox import NotificationInbox, navigation_target

from conftest import make_notification


def _api() -> MagicMock:
    api = MagicMock()
    api.get_notifications = AsyncMock()
    api.get_unread_count = AsyncMock(return_value=0)
    api.mark_notification_read = AsyncMock(return_value={})
    api.mark_all_notifications_read = AsyncMock(return_value={})
    api.mark_visible_notifications_viewed = AsyncMock(return_value={})
    return api


def _page(*notifications: dict, unread_count: int | None = None) -> NotificationsPage:
    items = [Notification.model_validate(n) for n in notifications]
    if unread_count is None:
        unread_count = sum(1 for n in items if not n.is_read)
    return NotificationsPage(notifications=items, unread_count=unread_count, total=len(items))


def _inbox(*notifications: dict, unread_count: int | None = None) -> tuple[NotificationInbox, MagicMock]:
    api = _api()
    inbox = NotificationInbox(api)
    inbox.load(_page(*notifications, unread_count=unread_count))
    return inbox, api


class TestNavigationTarget:
    """Tests for navigation_target."""

    def test_review_notifications_open_artifacts(self):
        for kind in ("SOW_READY_FOR_REVIEW", "SOW_FLAGGED_FOR_REWORK"):
            n = Notification.model_validate(make_notification(type=kind, deal_id="d-9"))
            assert navigation_target(n) == "/deals/d-9?tab=artifacts"

    def test_other_notifications_open_deal(self):
        n = Notification.model_validate(make_notification(type="DEAL_STATUS_UPDATED", deal_id="d-9"))
        assert navigation_target(n) == "/deals/d-9"

    def test_no_deal_no_target(self):
        n = Notification.model_validate(make_notification(deal_id=None))
        assert navigation_target(n) is None


class TestSync:
    """Tests for loading and push delivery."""

    @pytest.mark.asyncio
    async def test_refresh_replaces_mirror(self):
        api = _api()
        api.get_notifications.return_value = _page(make_notification("n-1"), make_notification("n-2"))
        inbox = NotificationInbox(api)

        await inbox.refresh(limit=50)

        api.get_notifications.assert_awaited_once_with(limit=50)
        assert [n.id for n in inbox.notifications] == ["n-1", "n-2"]
        assert inbox.unread_count == 2

    def test_receive_prepends_and_counts(self):
        inbox, _ = _inbox(make_notification("n-1"))
        inbox.receive(Notification.model_validate(make_notification("n-2")))

        assert [n.id for n in inbox.notifications] == ["n-2", "n-1"]
        assert inbox.unread_count == 2

    def test_receive_ignores_duplicates(self):
        inbox, _ = _inbox(make_notification("n-1"))
        inbox.receive(Notification.model_validate(make_notification("n-1")))
        assert len(inbox.notifications) == 1
        assert inbox.unread_count == 1

    def test_receive_read_notification_keeps_count(self):
        inbox, _ = _inbox()
        inbox.receive(Notification.model_validate(make_notification("n-3", is_read=True)))
        assert inbox.unread_count == 0

    def test_negative_server_count_clamped(self):
        inbox, _ = _inbox(unread_count=-4)
        assert inbox.unread_count == 0

    @pytest.mark.asyncio
    async def test_refresh_unread_count(self):
        inbox, api = _inbox()
        api.get_unread_count.return_value = 7
        assert await inbox.refresh_unread_count() == 7

    def test_clear(self):
        inbox, _ = _inbox(make_notification("n-1"))
        inbox.clear()
        assert inbox.notifications == []
        assert inbox.unread_count == 0


class TestMarkRead:
    """Tests for NotificationInbox.mark_read."""

    @pytest.mark.asyncio
    async def test_shown_read_while_in_flight_then_confirmed(self):
        inbox, api = _inbox(make_notification("n-1"), make_notification("n-2"))
        during: list[tuple[bool, int]] = []

        async def mark(notification_id):
            during.append((inbox.get(notification_id).is_read, inbox.unread_count))
            return {}

        api.mark_notification_read.side_effect = mark

        assert await inbox.mark_read("n-1") is True

        assert during == [(True, 1)]
        assert inbox.get("n-1").is_read is True
        assert inbox.unread_count == 1
        api.mark_notification_read.assert_awaited_once_with("n-1")

    @pytest.mark.asyncio
    async def test_failure_rolls_back(self):
        inbox, api = _inbox(make_notification("n-1"))
        api.mark_notification_read.side_effect = ApiError("Server error", status_code=500)

        with pytest.raises(ApiError):
            await inbox.mark_read("n-1")

        assert inbox.get("n-1").is_read is False
        assert inbox.unread_count == 1

    @pytest.mark.asyncio
    async def test_unknown_or_already_read_is_noop(self):
        inbox, api = _inbox(make_notification("n-1", is_read=True))

        assert await inbox.mark_read("n-1") is False
        assert await inbox.mark_read("missing") is False
        api.mark_notification_read.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_count_never_negative(self):
        """A stale server count of zero stays at zero after a local read."""
        inbox, _ = _inbox(make_notification("n-1"), unread_count=0)
        await inbox.mark_read("n-1")
        assert inbox.unread_count == 0


class TestMarkMany:
    """Tests for mark_all_read and mark_visible_viewed."""

    @pytest.mark.asyncio
    async def test_mark_all_zeroes_count_immediately(self):
        """The count drops to zero even for unread items not loaded locally."""
        inbox, api = _inbox(make_notification("n-1"), unread_count=12)
        during: list[int] = []

        async def mark_all():
            during.append(inbox.unread_count)
            return {}

        api.mark_all_notifications_read.side_effect = mark_all

        await inbox.mark_all_read()

        assert during == [0]
        assert inbox.unread_count == 0
        assert all(n.is_read for n in inbox.notifications)

    @pytest.mark.asyncio
    async def test_mark_all_failure_restores_count_and_state(self):
        inbox, api = _inbox(make_notification("n-1"), make_notification("n-2"), unread_count=5)
        api.mark_all_notifications_read.side_effect = ApiError("Unavailable", status_code=503)

        with pytest.raises(ApiError):
            await inbox.mark_all_read()

        assert inbox.unread_count == 5
        assert not any(n.is_read for n in inbox.notifications)

    @pytest.mark.asyncio
    async def test_visible_viewed_marks_loaded_unread_and_zeroes_count(self):
        """Opening the dropdown clears the badge even with unread items not loaded."""
        inbox, api = _inbox(
            make_notification("n-1"),
            make_notification("n-2", is_read=True),
            make_notification("n-3"),
            unread_count=6,
        )

        ids = await inbox.mark_visible_viewed()

        assert ids == ["n-1", "n-3"]
        api.mark_visible_notifications_viewed.assert_awaited_once_with(["n-1", "n-3"])
        assert inbox.unread_count == 0

    @pytest.mark.asyncio
    async def test_visible_viewed_without_unread_skips_backend(self):
        inbox, api = _inbox(make_notification("n-1", is_read=True))

        assert await inbox.mark_visible_viewed() == []
        api.mark_visible_notifications_viewed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_visible_viewed_failure_rolls_back(self):
        inbox, api = _inbox(make_notification("n-1"), make_notification("n-2"))
        api.mark_visible_notifications_viewed.side_effect = ApiError("Bad", status_code=400)

        with pytest.raises(ApiError):
            await inbox.mark_visible_viewed()

        assert inbox.unread_count == 2
        assert [n.is_read for n in inbox.notifications] == [False, False]
