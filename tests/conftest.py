"""Shared fixtures for the SOW portal test suite.

Provides:
- make_client: SowApiClient over httpx.MockTransport (no retry wait)
- RefreshingTokenProvider: token provider double with a scripted refresh
- make_deal / make_notification: payload builders
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest_asyncio

from src.sow_portal.clients.api import SowApiClient

BASE_URL = "https://api.test"


class RefreshingTokenProvider:
    """Token provider double; ``refresh()`` returns the next scripted token."""

    def __init__(self, token: str | None = "id-token", refreshed: str | None = None) -> None:
        self.token = token
        self.refreshed = refreshed
        self.refresh_calls = 0

    async def get_token(self) -> str | None:
        return self.token

    async def refresh(self) -> str | None:
        self.refresh_calls += 1
        if self.refreshed:
            self.token = self.refreshed
        return self.refreshed


@pytest_asyncio.fixture
async def make_client() -> AsyncGenerator[Callable[..., SowApiClient], None]:
    """Factory building clients around a request handler; closes them afterwards."""
    clients: list[SowApiClient] = []

    def _make(
        handler: Callable[[httpx.Request], httpx.Response],
        token_provider: Any = None,
        **kwargs: Any,
    ) -> SowApiClient:
        kwargs.setdefault("retry_wait", 0)
        client = SowApiClient(
            BASE_URL,
            token_provider,
            transport=httpx.MockTransport(handler),
            **kwargs,
        )
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()


def make_deal(deal_id: str = "d-1", **overrides: Any) -> dict[str, Any]:
    deal: dict[str, Any] = {
        "id": deal_id,
        "dealname": "Acme Migration",
        "amount": "125000",
        "dealstage": "12717221",
        "company_id": "c-1",
        "phase": "TECHNICAL_REVIEW",
    }
    deal.update(overrides)
    return deal


def make_notification(notification_id: str = "n-1", **overrides: Any) -> dict[str, Any]:
    notification: dict[str, Any] = {
        "id": notification_id,
        "type": "DEAL_ASSIGNED",
        "title": "Deal assigned",
        "message": "Acme Migration was assigned to you",
        "deal_id": "d-1",
        "is_read": False,
        "created_at": "2025-03-01T10:00:00Z",
    }
    notification.update(overrides)
    return notification
