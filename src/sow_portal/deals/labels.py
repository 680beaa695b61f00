"""Display labels, badge styles and filter options for deal statuses.

The ``status`` field of deal metadata carries either a pre-review phase
(UN_ASSIGNED, SA_ASSIGNED, SOW_IN_PROGRESS) or a review workflow status.
The deals table groups review statuses by phase, while search and detail
views use the finer STATUS_LABELS.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict

from src.sow_portal.deals.progress import DealPhase, DealStatus, SowGenProgress


class StatusBadge(BaseModel):
    """Badge shown next to a deal in the deals table."""

    model_config = ConfigDict(frozen=True)

    label: str
    variant: Literal["blue", "green", "orange", "gray"]


class FilterOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    label: str


PHASE_DISPLAY_LABELS: dict[str, str] = {
    DealPhase.UN_ASSIGNED.value: "Unassigned",
    DealPhase.SA_ASSIGNED.value: "SA Assigned",
    DealPhase.SOW_IN_PROGRESS.value: "SOW In Progress",
    DealStatus.TECHNICAL_REVIEW.value: "Technical Review",
    DealStatus.SOW_APPROVED_TECHNICALLY.value: "Technical Review",
    DealStatus.SOW_FLAGGED_FOR_REWORK_TECHNICAL.value: "Technical Review",
    DealStatus.DEAL_DESK_REVIEW.value: "Deal Desk Review",
    DealStatus.SOW_APPROVED_ON_DEAL_DESK.value: "Deal Desk Review",
    DealStatus.SOW_FLAGGED_FOR_REWORK_DEAL_DESK.value: "Deal Desk Review",
}

# SowGenProgress.SOW_IN_PROGRESS shares its value with DealPhase.SOW_IN_PROGRESS.
STATUS_LABELS: dict[str, str] = {
    DealPhase.UN_ASSIGNED.value: "Unassigned",
    DealPhase.SA_ASSIGNED.value: "SA Assigned",
    DealPhase.SOW_IN_PROGRESS.value: "SOW In Progress",
    SowGenProgress.NOT_STARTED.value: "Not Started",
    SowGenProgress.SOW_GENERATED.value: "SOW Generated",
    SowGenProgress.ARCHITECTURE_IN_PROGRESS.value: "Architecture In Progress",
    SowGenProgress.ARCHITECTURE_GENERATED.value: "Architecture Generated",
    SowGenProgress.TCO_IN_PROGRESS.value: "TCO In Progress",
    SowGenProgress.TCO_GENERATED.value: "TCO Generated",
    SowGenProgress.READY_FOR_SUBMISSION.value: "Ready for Submission",
    SowGenProgress.SUBMITTED_FOR_REVIEW.value: "Submitted for Review",
    DealStatus.TECHNICAL_REVIEW.value: "Pending Review (Technical)",
    DealStatus.SOW_APPROVED_TECHNICALLY.value: "Deal Desk Pending",
    DealStatus.DEAL_DESK_REVIEW.value: "Pending Review (Deal Desk)",
    DealStatus.SOW_APPROVED_ON_DEAL_DESK.value: "Approved (Deal Desk)",
    DealStatus.SOW_FLAGGED_FOR_REWORK_TECHNICAL.value: "Rework (Technical)",
    DealStatus.SOW_FLAGGED_FOR_REWORK_DEAL_DESK.value: "Rework (Deal Desk)",
}

STATUS_BADGE_CONFIG: dict[str, StatusBadge] = {
    DealStatus.TECHNICAL_REVIEW.value: StatusBadge(label="Pending Review", variant="blue"),
    DealStatus.SOW_APPROVED_TECHNICALLY.value: StatusBadge(label="Deal Desk Pending", variant="blue"),
    DealStatus.SOW_FLAGGED_FOR_REWORK_TECHNICAL.value: StatusBadge(label="Rework", variant="orange"),
    DealStatus.DEAL_DESK_REVIEW.value: StatusBadge(label="Pending Review", variant="blue"),
    DealStatus.SOW_APPROVED_ON_DEAL_DESK.value: StatusBadge(label="Approved", variant="green"),
    DealStatus.SOW_FLAGGED_FOR_REWORK_DEAL_DESK.value: StatusBadge(label="Rework", variant="orange"),
}

# ── Filters ─────────────────────────────────────────────────────────────────

SOW_SUBMISSION_PENDING_FILTER = "__SOW_SUBMISSION_PENDING__"

# Pre-submission stages that the "SOW Submission (Pending)" option expands to.
PRE_SUBMISSION_STAGES: tuple[str, ...] = (
    DealPhase.SA_ASSIGNED.value,
    DealPhase.SOW_IN_PROGRESS.value,
)

STATUS_FILTER_OPTIONS: tuple[FilterOption, ...] = (
    FilterOption(value=SOW_SUBMISSION_PENDING_FILTER, label="SOW Submission (Pending)"),
    FilterOption(value=DealStatus.TECHNICAL_REVIEW.value, label="Pending Review (Technical)"),
    FilterOption(value=DealStatus.SOW_APPROVED_TECHNICALLY.value, label="Pending Review (Deal Desk)"),
    FilterOption(value=DealStatus.SOW_APPROVED_ON_DEAL_DESK.value, label="Approved (Deal Desk)"),
    FilterOption(value=DealStatus.SOW_FLAGGED_FOR_REWORK_TECHNICAL.value, label="Rework (Technical)"),
    FilterOption(value=DealStatus.SOW_FLAGGED_FOR_REWORK_DEAL_DESK.value, label="Rework (Deal Desk)"),
)

DEAL_STAGE_FILTER_OPTIONS: tuple[FilterOption, ...] = (
    FilterOption(value="technical_validation", label="Technical Validation"),
    FilterOption(value="business_validation", label="Business Validation"),
    FilterOption(value="committed", label="Committed"),
    FilterOption(value="deal_lost", label="Deal Lost"),
)


def _raw(value: str | Enum | None) -> str | None:
    return value.value if isinstance(value, Enum) else value


def get_status_label(status: str | Enum | None) -> str:
    raw = _raw(status)
    if not raw:
        return "Unknown"
    return STATUS_LABELS.get(raw, raw)


def get_phase_display_label(status: str | Enum | None) -> str:
    raw = _raw(status)
    if not raw:
        return "Unknown"
    return PHASE_DISPLAY_LABELS.get(raw, raw)


def get_status_badge(status: str | Enum | None) -> StatusBadge | None:
    raw = _raw(status)
    if not raw:
        return None
    return STATUS_BADGE_CONFIG.get(raw)


def expand_status_filter(values: Iterable[str] | None) -> list[str]:
    """Replace the pending-submission sentinel with the stages it stands for.

    Order is preserved and duplicates are dropped.
    """
    expanded: list[str] = []
    for value in values or ():
        targets = PRE_SUBMISSION_STAGES if value == SOW_SUBMISSION_PENDING_FILTER else (value,)
        for target in targets:
            if target not in expanded:
                expanded.append(target)
    return expanded
