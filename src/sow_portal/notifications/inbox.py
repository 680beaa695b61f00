"""Local mirror of the user's notifications with optimistic read state.

Marking notifications read updates the mirror immediately through pending
overrides; the backend call then confirms or rolls the change back. The
unread count never goes below zero.
"""

from __future__ import annotations

import structlog

from src.sow_portal.clients.api import SowApiClient
from src.sow_portal.clients.errors import ApiError
from src.sow_portal.clients.schemas import Notification, NotificationsPage, NotificationType
from src.sow_portal.state.optimistic import OverrideTable, PendingOverride

logger = structlog.get_logger(__name__)

REVIEW_NOTIFICATION_TYPES: frozenset[NotificationType] = frozenset({
    NotificationType.SOW_READY_FOR_REVIEW,
    NotificationType.SOW_FLAGGED_FOR_REWORK,
})


def navigation_target(notification: Notification) -> str | None:
    """Dashboard route a notification opens, or None when it has no deal."""
    if not notification.deal_id:
        return None
    if notification.type in REVIEW_NOTIFICATION_TYPES:
        return f"/deals/{notification.deal_id}?tab=artifacts"
    return f"/deals/{notification.deal_id}"


class NotificationInbox:
    def __init__(self, api: SowApiClient) -> None:
        self._api = api
        self._notifications: list[Notification] = []
        self._server_unread = 0
        self._read: OverrideTable[str, bool] = OverrideTable()
        self._count: PendingOverride[int] | None = None

    # ── Server Sync ─────────────────────────────────────────────────────────

    def load(self, page: NotificationsPage) -> None:
        """Replace the mirror with a freshly fetched page."""
        self._notifications = list(page.notifications)
        self._server_unread = max(0, page.unread_count)

    def clear(self) -> None:
        self._notifications = []
        self._server_unread = 0
        self._read.clear()
        self._count = None

    async def refresh(self, limit: int = 20) -> None:
        self.load(await self._api.get_notifications(limit=limit))

    async def refresh_unread_count(self) -> int:
        self._server_unread = max(0, await self._api.get_unread_count())
        return self.unread_count

    def receive(self, notification: Notification) -> None:
        """Prepend a notification delivered over the push channel."""
        if any(n.id == notification.id for n in self._notifications):
            return
        self._notifications.insert(0, notification)
        if not notification.is_read:
            self._server_unread += 1

    # ── Views ───────────────────────────────────────────────────────────────

    def _is_read(self, notification: Notification) -> bool:
        return self._read.resolve(notification.id, notification.is_read)

    @property
    def notifications(self) -> list[Notification]:
        return [
            n if self._is_read(n) == n.is_read else n.model_copy(update={"is_read": self._is_read(n)})
            for n in self._notifications
        ]

    @property
    def unread_count(self) -> int:
        if self._count is not None and self._count.pending:
            return max(0, self._count.current)
        locally_read = sum(
            1 for n in self._notifications if not n.is_read and self._is_read(n)
        )
        return max(0, self._server_unread - locally_read)

    def get(self, notification_id: str) -> Notification | None:
        for notification in self.notifications:
            if notification.id == notification_id:
                return notification
        return None

    def _unread_ids(self) -> list[str]:
        return [n.id for n in self._notifications if not self._is_read(n)]

    def _commit_read(self, ids: set[str]) -> None:
        newly_read = 0
        updated: list[Notification] = []
        for n in self._notifications:
            if n.id in ids and not n.is_read:
                newly_read += 1
                n = n.model_copy(update={"is_read": True})
            updated.append(n)
        self._notifications = updated
        self._server_unread = max(0, self._server_unread - newly_read)

    # ── Mutations ───────────────────────────────────────────────────────────

    async def mark_read(self, notification_id: str) -> bool:
        """Mark one notification read.

        Returns:
            False when the notification is unknown or already read.

        Raises:
            ApiError: The backend call failed; the notification is unread again.
        """
        target = next((n for n in self._notifications if n.id == notification_id), None)
        if target is None or self._is_read(target):
            return False

        override = self._read.begin(notification_id, target.is_read, True)
        try:
            await self._api.mark_notification_read(notification_id)
        except ApiError:
            override.rollback()
            self._read.settle(notification_id, override)
            logger.warning("notifications.mark_read_rolled_back", notification_id=notification_id)
            raise

        override.confirm()
        self._read.settle(notification_id, override)
        self._commit_read({notification_id})
        return True

    async def _mark_many(self, ids: list[str], *, clear_count: bool, visible_only: bool) -> None:
        overrides = [
            (notification_id, self._read.begin(notification_id, False, True))
            for notification_id in ids
        ]
        count = PendingOverride(self._server_unread)
        if clear_count:
            count.apply(0)
            self._count = count

        try:
            if visible_only:
                await self._api.mark_visible_notifications_viewed(ids)
            else:
                await self._api.mark_all_notifications_read()
        except ApiError:
            for notification_id, override in overrides:
                override.rollback()
                self._read.settle(notification_id, override)
            count.rollback()
            if self._count is count:
                self._count = None
            logger.warning(
                "notifications.mark_many_rolled_back",
                count=len(ids),
                visible_only=visible_only,
            )
            raise

        for notification_id, override in overrides:
            override.confirm()
            self._read.settle(notification_id, override)
        self._commit_read(set(ids))
        if clear_count:
            self._server_unread = count.confirm()
            if self._count is count:
                self._count = None

    async def mark_all_read(self) -> None:
        """Mark every notification read, including ones not loaded locally.

        Raises:
            ApiError: The backend call failed; read state and count are restored.
        """
        await self._mark_many(self._unread_ids(), clear_count=True, visible_only=False)

    async def mark_visible_viewed(self) -> list[str]:
        """Mark the loaded unread notifications as viewed (dropdown opened).

        The unread count drops to zero at once, as for mark_all_read.

        Returns:
            The ids that were marked; empty when nothing was unread, in which
            case the backend is not called.

        Raises:
            ApiError: The backend call failed; read state and count are restored.
        """
        ids = self._unread_ids()
        if not ids:
            return []
        await self._mark_many(ids, clear_count=True, visible_only=True)
        return ids
