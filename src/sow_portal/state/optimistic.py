"""Optimistic updates as explicit pending overrides.

A mutation that the dashboard shows before the server confirms it is held as
a PendingOverride next to the last server value. The server response then
either confirms it (the override becomes the server value) or rolls it back
(the server value is shown again). Nothing else mutates the displayed value.
"""

from __future__ import annotations

from collections.abc import Hashable
from typing import Generic, TypeVar

import structlog

from src.sow_portal.clients.api import SowApiClient
from src.sow_portal.clients.errors import ApiError
from src.sow_portal.deals.schemas import Deal, DealAssignee

logger = structlog.get_logger(__name__)

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)

_UNSET: object = object()


class PendingOverride(Generic[T]):
    """Server value plus an optional local override awaiting confirmation."""

    def __init__(self, server_value: T) -> None:
        self._server_value = server_value
        self._override: object = _UNSET

    @property
    def server_value(self) -> T:
        return self._server_value

    @property
    def pending(self) -> bool:
        return self._override is not _UNSET

    @property
    def current(self) -> T:
        if self._override is _UNSET:
            return self._server_value
        return self._override  # type: ignore[return-value]

    def apply(self, value: T) -> None:
        """Show ``value`` locally until confirm() or rollback().

        Applying again while pending replaces the override; the server value
        recorded by the first apply is kept.
        """
        self._override = value

    def confirm(self) -> T:
        """The server accepted the change; the override becomes the server value."""
        if self._override is not _UNSET:
            self._server_value = self._override  # type: ignore[assignment]
            self._override = _UNSET
        return self._server_value

    def rollback(self) -> T:
        """The server rejected the change; restore and return the server value."""
        self._override = _UNSET
        return self._server_value


class OverrideTable(Generic[K, T]):
    """Pending overrides keyed per entity (deal id, notification id, ...)."""

    def __init__(self) -> None:
        self._entries: dict[K, PendingOverride[T]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def begin(self, key: K, server_value: T, value: T) -> PendingOverride[T]:
        """Start an override for ``key`` and return it.

        A newer override for the same key supersedes an older in-flight one.
        """
        override: PendingOverride[T] = PendingOverride(server_value)
        override.apply(value)
        self._entries[key] = override
        return override

    def resolve(self, key: K, server_value: T) -> T:
        """Value to display for ``key``: the override while pending, else server_value."""
        entry = self._entries.get(key)
        if entry is not None and entry.pending:
            return entry.current
        return server_value

    def pending_items(self) -> list[tuple[K, PendingOverride[T]]]:
        return list(self._entries.items())

    def settle(self, key: K, override: PendingOverride[T]) -> None:
        """Drop ``override`` once confirmed or rolled back.

        Leaves the table untouched when a newer override has replaced it.
        """
        if self._entries.get(key) is override:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()


# ── Deal Assignments ────────────────────────────────────────────────────────


class AssignmentBoard:
    """Deal assignees with optimistic reassignment.

    The board shows the new assignee as soon as a change starts, confirms it
    when the backend accepts, and restores the previous assignee (re-raising
    the error) when it does not.
    """

    def __init__(self, api: SowApiClient) -> None:
        self._api = api
        self._assignments: dict[str, DealAssignee | None] = {}
        self._overrides: OverrideTable[str, DealAssignee | None] = OverrideTable()

    def load(self, deals: list[Deal]) -> None:
        """Seed server values from a deals page."""
        for deal in deals:
            self._assignments[deal.id] = deal.assignee

    async def refresh(self) -> None:
        """Reload server values from GET /deals/assignments."""
        assignments = await self._api.get_deal_assignments()
        for deal_id, assignment in assignments.items():
            self._assignments[deal_id] = DealAssignee(
                id=assignment.assignee_id,
                name=assignment.assignee_name,
                assigned_at=assignment.assigned_at,
                assigned_by=assignment.assigned_by,
            )

    def clear(self) -> None:
        self._assignments.clear()
        self._overrides.clear()

    def assignee_for(self, deal_id: str) -> DealAssignee | None:
        return self._overrides.resolve(deal_id, self._assignments.get(deal_id))

    def is_pending(self, deal_id: str) -> bool:
        return deal_id in self._overrides

    async def change_assignee(
        self,
        deal: Deal | str,
        assignee: DealAssignee | None,
    ) -> DealAssignee | None:
        """Assign (or with ``None`` unassign) a deal.

        Returns:
            The confirmed assignee.

        Raises:
            ApiError: The backend rejected the change; the previous assignee
                is shown again.
        """
        deal_id = deal if isinstance(deal, str) else deal.id
        deal_name = None if isinstance(deal, str) else deal.dealname

        override = self._overrides.begin(deal_id, self._assignments.get(deal_id), assignee)
        try:
            if assignee is None:
                await self._api.unassign_deal(deal_id)
            else:
                await self._api.assign_deal(deal_id, assignee.id, assignee.name, deal_name)
        except ApiError as exc:
            override.rollback()
            self._overrides.settle(deal_id, override)
            logger.warning(
                "assignment.rolled_back",
                deal_id=deal_id,
                status_code=exc.status_code,
                error=exc.message,
            )
            raise

        confirmed = override.confirm()
        self._assignments[deal_id] = confirmed
        self._overrides.settle(deal_id, override)
        logger.info(
            "assignment.confirmed",
            deal_id=deal_id,
            assignee_id=confirmed.id if confirmed else None,
        )
        return confirmed
