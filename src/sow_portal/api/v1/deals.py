"""Deal endpoints of the BFF.

Deals are proxied from the SOW backend and enriched with the display labels
and workflow gates the dashboard renders, so clients never re-derive them.
"""

from __future__ import annotations

from datetime import date

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from src.sow_portal.api.deps import get_api_client, get_caller_permissions, get_caller_role
from src.sow_portal.auth.permissions import (
    BASE_DEAL_TABS,
    DealTab,
    Permissions,
    resolve_active_tab,
    visible_deal_tabs,
)
from src.sow_portal.auth.roles import UserRole
from src.sow_portal.clients.api import SowApiClient
from src.sow_portal.clients.errors import ApiError, NetworkError
from src.sow_portal.deals.dealstage import get_dealstage_category, get_dealstage_label
from src.sow_portal.deals.labels import (
    StatusBadge,
    expand_status_filter,
    get_phase_display_label,
    get_status_badge,
    get_status_label,
)
from src.sow_portal.deals.progress import StageProjection, project_stage, unloaded_projection
from src.sow_portal.deals.schemas import Deal, DealAssignee, DealListFilter, DealMetadata
from src.sow_portal.utils.formatting import format_currency

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/deals", tags=["deals"])


# ── Response Schemas ─────────────────────────────────────────────────────────


class DealView(Deal):
    """Deal plus the labels shown in the deals table."""

    phase_label: str
    status_label: str
    badge: StatusBadge | None = None
    dealstage_category: str
    amount_display: str


class DealListResponse(BaseModel):
    results: list[DealView]
    total: int
    has_more: bool
    after: str | None = None


class WorkflowResponse(BaseModel):
    """Generation workflow gates for one deal as seen by the caller."""

    deal_id: str
    role: UserRole | None
    metadata: DealMetadata | None
    projection: StageProjection
    visible_tabs: list[DealTab]
    active_tab: DealTab


class AssignmentResponse(BaseModel):
    deal_id: str
    assignee: DealAssignee | None


# ── Request Schemas ──────────────────────────────────────────────────────────


class AssignDealRequest(BaseModel):
    assignee_id: str
    assignee_name: str
    deal_name: str | None = None


# ── Helpers ──────────────────────────────────────────────────────────────────


def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _to_view(deal: Deal) -> DealView:
    return DealView(
        **deal.model_dump(exclude={"dealstage_label"}),
        dealstage_label=deal.dealstage_label or get_dealstage_label(deal.dealstage),
        phase_label=get_phase_display_label(deal.phase),
        status_label=get_status_label(deal.phase),
        badge=get_status_badge(deal.phase),
        dealstage_category=get_dealstage_category(deal.dealstage),
        amount_display=format_currency(deal.amount),
    )


def _require_assign_permission(permissions: Permissions) -> None:
    if not permissions.can_assign_deals:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only Leadership can assign deals",
        )


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("", response_model=DealListResponse)
async def list_deals(
    limit: int = Query(default=20, ge=1, le=100),
    after: str | None = None,
    q: str | None = None,
    deal_stage: str | None = Query(default=None, alias="status"),
    phase_status: str | None = Query(default=None, description="Comma-separated workflow statuses"),
    owner_ids: str | None = None,
    assignee_ids: str | None = None,
    unassigned_only: bool = False,
    target_date_start: date | None = None,
    target_date_end: date | None = None,
    api: SowApiClient = Depends(get_api_client),
) -> DealListResponse:
    """List deals with workflow labels and formatted amounts."""
    filters = DealListFilter(
        limit=limit,
        after=after,
        q=q,
        status=deal_stage,
        phase_status=expand_status_filter(_split(phase_status)),
        owner_ids=_split(owner_ids),
        assignee_ids=_split(assignee_ids),
        unassigned_only=unassigned_only,
        target_date_start=target_date_start,
        target_date_end=target_date_end,
    )
    page = await api.list_deals(filters)
    return DealListResponse(
        results=[_to_view(deal) for deal in page.results],
        total=page.total,
        has_more=page.has_more,
        after=page.after,
    )


@router.get("/{deal_id}/workflow", response_model=WorkflowResponse)
async def get_deal_workflow(
    deal_id: str,
    tab: str | None = None,
    role: UserRole | None = Depends(get_caller_role),
    api: SowApiClient = Depends(get_api_client),
) -> WorkflowResponse:
    """Workflow gates for a deal.

    When the backend cannot be reached the projection is the neutral
    ``loaded=False`` one, never a guessed stage.
    """
    metadata: DealMetadata | None
    try:
        metadata = await api.get_deal_metadata(deal_id)
    except ApiError as exc:
        if not isinstance(exc, NetworkError) and (exc.status_code or 0) < 500:
            raise
        logger.warning(
            "deals.workflow_unavailable",
            deal_id=deal_id,
            status_code=exc.status_code,
            error=exc.message,
        )
        metadata = None

    if metadata is None:
        projection = unloaded_projection()
        deal_status = None
        tabs = list(BASE_DEAL_TABS)
    else:
        deal_status = metadata.status
        projection = project_stage(metadata.sow_gen_progress, deal_status, role)
        tabs = visible_deal_tabs(role, deal_status)

    return WorkflowResponse(
        deal_id=deal_id,
        role=role,
        metadata=metadata,
        projection=projection,
        visible_tabs=tabs,
        active_tab=resolve_active_tab(tab, role, deal_status, visible=tabs),
    )


@router.put("/{deal_id}/assignment", response_model=AssignmentResponse)
async def assign_deal(
    deal_id: str,
    body: AssignDealRequest,
    permissions: Permissions = Depends(get_caller_permissions),
    api: SowApiClient = Depends(get_api_client),
) -> AssignmentResponse:
    """Assign a deal to a Solutions Architect (Leadership only)."""
    _require_assign_permission(permissions)
    data = await api.assign_deal(deal_id, body.assignee_id, body.assignee_name, body.deal_name)
    assignment = data.get("assignment") or {}
    return AssignmentResponse(
        deal_id=deal_id,
        assignee=DealAssignee(
            id=body.assignee_id,
            name=body.assignee_name,
            assigned_at=assignment.get("assigned_at"),
            assigned_by=assignment.get("assigned_by"),
        ),
    )


@router.delete("/{deal_id}/assignment", response_model=AssignmentResponse)
async def unassign_deal(
    deal_id: str,
    permissions: Permissions = Depends(get_caller_permissions),
    api: SowApiClient = Depends(get_api_client),
) -> AssignmentResponse:
    """Remove the assignee from a deal (Leadership only)."""
    _require_assign_permission(permissions)
    await api.unassign_deal(deal_id)
    return AssignmentResponse(deal_id=deal_id, assignee=None)
