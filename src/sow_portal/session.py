"""A signed-in dashboard session.

PortalSession owns the pieces that share one user's lifetime:

- the AppState container (rehydrated from the local auth cache),
- the SowApiClient, whose unrecoverable 401s sign the user out,
- the PushListener and any GenerationTrackers fed by it,
- the notification inbox and the assignment board.

Logging out drops every session-scoped cache.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from src.sow_portal.auth.state import AppState, FileStateStorage, StateStorage
from src.sow_portal.clients.api import SowApiClient, TokenProvider
from src.sow_portal.config import Settings, get_settings
from src.sow_portal.notifications.inbox import NotificationInbox
from src.sow_portal.realtime.listener import PushListener
from src.sow_portal.state.optimistic import AssignmentBoard
from src.sow_portal.workflow.polling import ExecutionPoller
from src.sow_portal.workflow.tracker import GenerationKind, GenerationTracker

logger = structlog.get_logger(__name__)


class PortalSession:
    def __init__(
        self,
        token_provider: TokenProvider,
        settings: Settings | None = None,
        *,
        storage: StateStorage | None = None,
        api: SowApiClient | None = None,
        listener: PushListener | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.state = AppState()
        self._storage = storage or FileStateStorage(self.settings.AUTH_STATE_PATH)
        self.api = api or SowApiClient.from_settings(
            self.settings,
            token_provider,
            on_auth_failure=self._on_auth_failure,
            transport=transport,
        )
        self.listener = listener or PushListener.from_settings(self.settings, token_provider)
        self.inbox = NotificationInbox(self.api)
        self.assignments = AssignmentBoard(self.api)
        self._poller = ExecutionPoller(self.api, self.settings.EXECUTION_POLL_INTERVAL)
        self._trackers: dict[GenerationKind, GenerationTracker] = {}
        self._listener_task: asyncio.Task[None] | None = None
        self._stopped_polls: set[asyncio.Task[Any]] = set()

    async def start(self, *, listen: bool = True) -> None:
        await self.state.initialize(self._storage)
        self.state.add_logout_listener(self._clear_caches)
        if listen and self.settings.WEBSOCKET_ENDPOINT:
            self._listener_task = asyncio.create_task(self.listener.run())
        logger.info("session.started", is_authenticated=self.state.auth.is_authenticated)

    def tracker(self, kind: GenerationKind) -> GenerationTracker:
        """Tracker for one generation kind, subscribed to the push channel."""
        tracker = self._trackers.get(kind)
        if tracker is None:
            tracker = GenerationTracker(kind, self._poller)
            self.listener.subscribe(tracker.handle_push)
            self._trackers[kind] = tracker
        return tracker

    async def _on_auth_failure(self) -> None:
        logger.warning("session.auth_failed_signing_out")
        self.state.logout()

    def _clear_caches(self) -> None:
        self.inbox.clear()
        self.assignments.clear()
        trackers, self._trackers = self._trackers, {}
        for tracker in trackers.values():
            self.listener.unsubscribe(tracker.handle_push)
            task = tracker.stop()
            if task is not None:
                self._stopped_polls.add(task)
                task.add_done_callback(self._stopped_polls.discard)

    async def close(self) -> None:
        for tracker in self._trackers.values():
            await tracker.aclose()
        if self._stopped_polls:
            await asyncio.gather(*self._stopped_polls, return_exceptions=True)
        await self.listener.disconnect()
        task, self._listener_task = self._listener_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.state.teardown()
        await self.api.aclose()
        logger.info("session.closed")
