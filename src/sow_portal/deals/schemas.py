"""Pydantic schemas for deals as mirrored from HubSpot by the SOW backend.

Deals are read-only here apart from the assignee. Deal metadata carries the
two backend-owned workflow fields, ``status`` and ``sow_gen_progress``.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DealCompany(BaseModel):
    id: str
    name: str


class DealAssignee(BaseModel):
    """Solutions Architect currently assigned to a deal."""

    id: str
    name: str
    assigned_at: str | None = None
    assigned_by: str | None = None


class Deal(BaseModel):
    """HubSpot deal record plus backend assignment and metadata fields."""

    id: str
    dealname: str
    description: str | None = None
    amount: float | None = None
    closedate: str | None = None
    dealstage: str | None = None
    dealstage_label: str | None = None
    pipeline: str | None = None
    createdate: str | None = None
    lastmodifieddate: str | None = None
    company_id: str | None = None
    company: DealCompany | None = None
    hubspot_owner_id: str | None = None
    hubspot_owner_name: str | None = None
    customer_segment: str | None = None
    assignee: DealAssignee | None = None
    target_date: str | None = None
    phase: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> float | None:
        # HubSpot sends amounts as strings, sometimes empty.
        if value is None or value == "":
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None


class DealMetadata(BaseModel):
    """Backend-owned workflow metadata for a deal."""

    deal_id: str
    status: str | None = None
    sow_gen_progress: str | None = None
    target_date: str | None = None
    assignee_id: str | None = None
    assignee_name: str | None = None
    updated_at: str | None = None


class DealOwner(BaseModel):
    id: str
    name: str
    email: str | None = None


class DealAssignment(BaseModel):
    assignee_id: str
    assignee_name: str
    assigned_at: str | None = None
    assigned_by: str | None = None


class DealPage(BaseModel):
    """One page of deal search results with HubSpot-style cursor paging."""

    results: list[Deal] = Field(default_factory=list)
    total: int = 0
    has_more: bool = Field(default=False, alias="hasMore")
    after: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class DealListFilter(BaseModel):
    """Query filters for the deals list.

    Multi-value filters are sent comma-joined; empty values are omitted.
    ``status`` is the HubSpot deal stage category, ``phase_status`` the
    SOW workflow status.
    """

    limit: int = Field(default=20, ge=1, le=100)
    after: str | None = None
    q: str | None = None
    status: str | None = None
    phase_status: list[str] = Field(default_factory=list)
    owner_ids: list[str] = Field(default_factory=list)
    assignee_ids: list[str] = Field(default_factory=list)
    unassigned_only: bool = False
    target_date_start: date | None = None
    target_date_end: date | None = None
    company_id: str | None = None

    def to_params(self) -> dict[str, str | int]:
        """Render as query parameters for GET /deals."""
        params: dict[str, str | int] = {"limit": self.limit}
        for key in ("after", "q", "status", "company_id"):
            value = getattr(self, key)
            if value:
                params[key] = value
        for key in ("phase_status", "owner_ids", "assignee_ids"):
            values = getattr(self, key)
            if values:
                params[key] = ",".join(values)
        if self.unassigned_only:
            params["unassigned_only"] = "true"
        if self.target_date_start:
            params["target_date_start"] = self.target_date_start.isoformat()
        if self.target_date_end:
            params["target_date_end"] = self.target_date_end.isoformat()
        return params
